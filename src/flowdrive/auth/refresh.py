"""Token refresh controller (refresh-token grant).

Refresh never mutates the credential it is given. The caller (the lifecycle
manager, holding the identity lock) swaps in the returned credential on
success and keeps the previous one live on failure.
"""

from __future__ import annotations

__all__ = [
    "RefreshController",
    "RefreshResult",
    "RefreshResultStatus",
]

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from flowdrive.auth.models import Credential, now_ms
from flowdrive.auth.oauth_client import GoogleOAuthClient, TokenEndpointError
from flowdrive.constants import DEFAULT_TOKEN_EXPIRY_DAYS
from flowdrive.exceptions import RefreshError
from flowdrive.security.vault import CredentialVault
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()

_MS_PER_DAY = 24 * 60 * 60 * 1000


class RefreshResultStatus(str, Enum):
    """Result status for refresh operations."""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass
class RefreshResult:
    """Result of a token refresh.

    credential is set on success only. error is a short message without
    token material.
    """

    status: RefreshResultStatus
    identity_id: str
    credential: Credential | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is RefreshResultStatus.SUCCESS


class RefreshController:
    """Mints new access tokens from stored refresh tokens and persists them.

    Usage:
        controller = RefreshController(vault)
        result = await controller.refresh("node1", credential, client)
        if result.ok:
            live = result.credential
    """

    def __init__(
        self,
        vault: CredentialVault,
        *,
        default_expiry_days: int = DEFAULT_TOKEN_EXPIRY_DAYS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize refresh controller.

        Args:
            vault: Vault used to persist refreshed tokens.
            default_expiry_days: Expiry assumed when the provider sends none.
            clock: Epoch-milliseconds clock.
        """
        self._vault = vault
        self._default_expiry_ms = default_expiry_days * _MS_PER_DAY
        self._clock = clock

    async def refresh(
        self,
        identity_id: str,
        credential: Credential,
        client: GoogleOAuthClient,
    ) -> RefreshResult:
        """Run the refresh-token grant for one identity.

        Args:
            identity_id: Identity being refreshed.
            credential: Current credential (not modified).
            client: OAuth client holding the identity's client id/secret.

        Returns:
            RefreshResult; never raises for provider or persistence failures.
        """
        try:
            updated = await self._refresh(credential, client)
        except RefreshError as e:
            logger.error(
                {
                    "event": "token_refresh_failed",
                    "node_id": identity_id,
                    "message": e.message,
                }
            )
            return RefreshResult(
                status=RefreshResultStatus.FAILED,
                identity_id=identity_id,
                error=e.message,
            )

        try:
            await self._vault.persist(identity_id, updated)
        except (OSError, ValueError) as e:
            # Tokens stay valid in memory; only durability is lost
            logger.error(
                {
                    "event": "credential_persist_failed",
                    "node_id": identity_id,
                    "error_type": type(e).__name__,
                }
            )

        logger.info(
            {
                "event": "token_refreshed",
                "node_id": identity_id,
                "expiry_date": updated.expiry_date,
            }
        )
        return RefreshResult(
            status=RefreshResultStatus.SUCCESS,
            identity_id=identity_id,
            credential=updated,
        )

    async def _refresh(self, credential: Credential, client: GoogleOAuthClient) -> Credential:
        if not credential.refresh_token:
            raise RefreshError("No refresh token available")

        received_at = self._clock()
        try:
            tokens = await client.refresh_access_token(credential.refresh_token, received_at_ms=received_at)
        except TokenEndpointError as e:
            raise RefreshError(str(e)) from e

        if not tokens.access_token:
            raise RefreshError("Refresh response did not contain an access token")

        return credential.with_tokens(
            tokens,
            fallback_expiry_date=received_at + self._default_expiry_ms,
            received_at_ms=received_at,
        )
