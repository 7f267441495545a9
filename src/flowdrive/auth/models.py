"""Credential data model.

Credential is the live, in-memory state of one identity. PersistedRecord is
the durable projection written (encrypted) to the host settings object.
Timestamps are epoch milliseconds, matching the provider's expiry_date field.
"""

from __future__ import annotations

__all__ = [
    "Credential",
    "CredentialStatus",
    "PersistedRecord",
    "TokenResponse",
    "now_ms",
]

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from flowdrive.constants import PERSISTED_CREDENTIAL_FIELDS


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


class PersistedRecord(BaseModel):
    """Refreshable subset of a credential, as stored encrypted at rest."""

    access_token: str | None = None
    refresh_token: str | None = None
    expiry_date: int | None = None
    refresh_token_expiry_date: int | None = None

    @property
    def is_complete(self) -> bool:
        """True when both access and refresh token are present."""
        return bool(self.access_token and self.refresh_token)


class Credential(BaseModel):
    """Live credential of one identity.

    Invariants:
    - access_token and refresh_token are both set ("complete") or the
      identity is unauthorized.
    - csrf_token only exists between handshake start and callback and is
      never persisted.
    """

    model_config = ConfigDict(validate_assignment=True)

    client_id: str | None = None
    client_secret: str | None = Field(default=None, repr=False)
    access_token: str | None = Field(default=None, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expiry_date: int | None = None
    refresh_token_expiry_date: int | None = None
    csrf_token: str | None = Field(default=None, repr=False)

    @property
    def is_complete(self) -> bool:
        """True when both access and refresh token are present."""
        return bool(self.access_token and self.refresh_token)

    def is_access_token_expired(self, at_ms: int | None = None) -> bool:
        """True when the access token expiry lies in the past.

        A credential without an expiry is never considered expired.
        """
        if self.expiry_date is None:
            return False
        return (at_ms if at_ms is not None else now_ms()) > self.expiry_date

    def to_persisted(self) -> PersistedRecord:
        """Extract the refreshable fields for durable storage."""
        return PersistedRecord(**{field: getattr(self, field) for field in PERSISTED_CREDENTIAL_FIELDS})

    def merge_persisted(self, record: PersistedRecord) -> None:
        """Overlay restored token fields onto this credential."""
        for field in PERSISTED_CREDENTIAL_FIELDS:
            setattr(self, field, getattr(record, field))

    def with_tokens(self, tokens: "TokenResponse", *, fallback_expiry_date: int, received_at_ms: int) -> "Credential":
        """Return a copy with a token response applied.

        A response without refresh_token keeps the current one. A response
        without expiry uses fallback_expiry_date.
        """
        update: dict[str, Any] = {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token or self.refresh_token,
            "expiry_date": tokens.expiry_date or fallback_expiry_date,
        }
        if tokens.refresh_token_expires_in:
            update["refresh_token_expiry_date"] = received_at_ms + tokens.refresh_token_expires_in * 1000
        return self.model_copy(update=update)


class CredentialStatus(BaseModel):
    """Presence flags and expiry timestamps; never raw token material."""

    has_access_token: bool
    has_refresh_token: bool
    expiry_date: int | None = None
    refresh_token_expiry_date: int | None = None

    @classmethod
    def from_credential(cls, credential: Credential) -> "CredentialStatus":
        return cls(
            has_access_token=bool(credential.access_token),
            has_refresh_token=bool(credential.refresh_token),
            expiry_date=credential.expiry_date or None,
            refresh_token_expiry_date=credential.refresh_token_expiry_date or None,
        )


class TokenResponse(BaseModel):
    """Parsed token endpoint response.

    expiry_date is computed from expires_in at receipt time;
    refresh_token_expires_in is Google-specific and optional.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str | None = None
    refresh_token: str | None = None
    expiry_date: int | None = None
    refresh_token_expires_in: int | None = None
    scope: str | None = None
    token_type: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], received_at_ms: int | None = None) -> "TokenResponse":
        """Build from the raw token endpoint JSON.

        Args:
            data: Decoded JSON body.
            received_at_ms: Receipt time (defaults to now).

        Returns:
            TokenResponse with absolute expiry_date when expires_in was given.
        """
        received = received_at_ms if received_at_ms is not None else now_ms()
        expires_in = data.get("expires_in")
        expiry_date = received + int(expires_in) * 1000 if expires_in else None
        return cls(
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
            expiry_date=expiry_date,
            refresh_token_expires_in=data.get("refresh_token_expires_in"),
            scope=data.get("scope"),
            token_type=data.get("token_type"),
        )
