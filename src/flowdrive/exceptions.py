"""Exception hierarchy for flowdrive.

Every error carries the HTTP status the admin surface answers with, so routes
can translate failures without a mapping table of their own.

Taxonomy:
- ConfigurationError: client id/secret/redirect missing, user must reconfigure
- HandshakeRejectedError: security rejection, handshake aborted, no mutation
- TokenExchangeError / RefreshError: provider or network failure, previous
  credential retained, retry deferred to the next trigger
- DecryptionError / CorruptedCredentialError: persisted record unreadable,
  treated as absent

Messages never contain token or secret material.
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "CorruptedCredentialError",
    "CsrfMismatchError",
    "DecryptionError",
    "DriveAPIError",
    "FlowDriveError",
    "HandshakeRejectedError",
    "InvalidStateError",
    "MissingParameterError",
    "MissingSecretError",
    "RefreshError",
    "TokenExchangeError",
    "UnknownIdentityError",
]


class FlowDriveError(Exception):
    """Base exception for flowdrive."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(FlowDriveError):
    """Client id, client secret or redirect URI missing."""

    status_code = 400


class MissingParameterError(ConfigurationError):
    """A required handshake parameter was not supplied."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(f"Missing one or more parameters: {', '.join(missing)}")


class MissingSecretError(ConfigurationError):
    """Client credentials are not configured for the identity."""

    status_code = 401


# =============================================================================
# Handshake rejections
# =============================================================================


class HandshakeRejectedError(FlowDriveError):
    """The callback was rejected before any token exchange took place."""

    status_code = 400


class InvalidStateError(HandshakeRejectedError):
    """OAuth state parameter is missing or malformed."""


class UnknownIdentityError(HandshakeRejectedError):
    """No credential is registered for the identity."""

    def __init__(self, identity_id: str) -> None:
        self.identity_id = identity_id
        super().__init__("Node not found")


class CsrfMismatchError(HandshakeRejectedError):
    """The CSRF token in the state does not match the issued one."""

    status_code = 401

    def __init__(self) -> None:
        super().__init__("CSRF token mismatch")


# =============================================================================
# Provider failures
# =============================================================================


class TokenExchangeError(FlowDriveError):
    """Exchanging the authorization code for tokens failed."""

    status_code = 502


class RefreshError(FlowDriveError):
    """Refreshing the access token failed."""

    status_code = 502


# =============================================================================
# Persistence
# =============================================================================


class DecryptionError(FlowDriveError):
    """Envelope is malformed, the key is wrong or the ciphertext was altered."""


class CorruptedCredentialError(FlowDriveError):
    """A persisted credential record could not be decrypted."""

    def __init__(self, identity_id: str) -> None:
        self.identity_id = identity_id
        super().__init__(f"Persisted credential for node {identity_id} could not be decrypted")


# =============================================================================
# Downstream consumers
# =============================================================================


class DriveAPIError(FlowDriveError):
    """Google Drive API returned an error response."""

    status_code = 502
