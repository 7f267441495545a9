"""OAuth authorization-code handshake with CSRF-bound state.

Per identity the handshake is Idle -> AwaitingCallback -> Idle:
1. start(): issue a CSRF token, attach it to the live credential and build
   the provider redirect with state "<identity_id>:<csrf_token>"
2. complete(): validate the echoed state, exchange the code for tokens,
   persist them and return to Idle

Security rejections (bad state, unknown identity, CSRF mismatch) abort before
any token exchange and leave the credential untouched.
"""

from __future__ import annotations

__all__ = [
    "HandshakeController",
    "HandshakeOutcome",
    "HandshakeStart",
    "HandshakeState",
    "HandshakeStatus",
    "generate_csrf_token",
]

import base64
import hmac
import os
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from flowdrive.auth.models import now_ms
from flowdrive.auth.oauth_client import TokenEndpointError
from flowdrive.constants import CSRF_TOKEN_BYTES, DEFAULT_SCOPES, DEFAULT_TOKEN_EXPIRY_DAYS, STATE_SEPARATOR
from flowdrive.exceptions import (
    ConfigurationError,
    CsrfMismatchError,
    InvalidStateError,
    MissingParameterError,
    MissingSecretError,
    TokenExchangeError,
)
from flowdrive.runtime.registry import CredentialRegistry
from flowdrive.security.vault import CredentialVault
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()

_MS_PER_DAY = 24 * 60 * 60 * 1000

AUTHORIZED_MESSAGE = "Authorization successful. You can close this window."


class HandshakeState(str, Enum):
    """Handshake state of one identity."""

    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"


class HandshakeStatus(str, Enum):
    """How a callback ended (rejections and exchange failures raise)."""

    AUTHORIZED = "authorized"
    PROVIDER_ERROR = "provider_error"


@dataclass(frozen=True)
class HandshakeStart:
    """Redirect target and the CSRF token to set as a cookie."""

    identity_id: str
    redirect_url: str
    csrf_token: str


@dataclass(frozen=True)
class HandshakeOutcome:
    """Result of a handshake callback."""

    status: HandshakeStatus
    message: str
    identity_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is HandshakeStatus.AUTHORIZED


def generate_csrf_token() -> str:
    """Random URL-safe CSRF token (18 random bytes, base64 with '/' -> '-', '+' -> '_')."""
    raw = base64.b64encode(os.urandom(CSRF_TOKEN_BYTES)).decode("ascii")
    return raw.replace("/", "-").replace("+", "_")


class HandshakeController:
    """Drives the authorization-code handshake for all registered identities.

    Usage:
        controller = HandshakeController(registry, vault)
        start = await controller.start(client_id, "node1", callback_url, scopes)
        # redirect the browser to start.redirect_url ...
        outcome = await controller.complete(code, state)
    """

    def __init__(
        self,
        registry: CredentialRegistry,
        vault: CredentialVault,
        *,
        default_expiry_days: int = DEFAULT_TOKEN_EXPIRY_DAYS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize handshake controller.

        Args:
            registry: Lifecycle managers by identity id.
            vault: Vault used to persist the obtained tokens.
            default_expiry_days: Expiry assumed when the provider sends none.
            clock: Epoch-milliseconds clock.
        """
        self._registry = registry
        self._vault = vault
        self._default_expiry_ms = default_expiry_days * _MS_PER_DAY
        self._clock = clock
        self._states: dict[str, HandshakeState] = {}

    def state_of(self, identity_id: str) -> HandshakeState:
        return self._states.get(identity_id, HandshakeState.IDLE)

    async def start(
        self,
        client_id: str | None,
        identity_id: str | None,
        callback_url: str | None,
        scopes: str | None = None,
    ) -> HandshakeStart:
        """Begin a handshake for one identity.

        Args:
            client_id: OAuth client id entered in the editor.
            identity_id: Identity to authorize.
            callback_url: Redirect URI sent to the provider.
            scopes: Space-separated scopes (node scopes when omitted).

        Returns:
            HandshakeStart with the provider URL and the issued CSRF token.

        Raises:
            MissingParameterError: If a parameter or the client secret is missing.
            UnknownIdentityError: If no manager is registered for identity_id.
        """
        missing = [
            name
            for name, value in (("clientId", client_id), ("id", identity_id), ("callback", callback_url))
            if not value
        ]
        if missing:
            raise MissingParameterError(missing)
        assert identity_id is not None and client_id is not None and callback_url is not None

        manager = self._registry.require(identity_id)
        csrf_token = generate_csrf_token()

        async with manager.locked() as credential:
            if not credential.client_secret:
                raise MissingParameterError(["clientSecret"])
            credential.csrf_token = csrf_token

        self._states[identity_id] = HandshakeState.AWAITING_CALLBACK
        redirect_url = manager.get_oauth_client().generate_auth_url(
            scopes=scopes or manager.node.scopes or DEFAULT_SCOPES,
            state=f"{identity_id}{STATE_SEPARATOR}{csrf_token}",
            client_id=client_id,
            redirect_uri=callback_url,
        )
        logger.info({"event": "handshake_started", "node_id": identity_id})
        return HandshakeStart(identity_id=identity_id, redirect_url=redirect_url, csrf_token=csrf_token)

    async def complete(
        self,
        code: str | None,
        state: str | None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> HandshakeOutcome:
        """Finish a handshake from the provider callback.

        Args:
            code: Authorization code.
            state: Echoed state "<identity_id>:<csrf_token>".
            error: Provider error code, if the user denied or the provider failed.
            error_description: Provider error text.

        Returns:
            HandshakeOutcome (authorized, or provider_error without mutation).

        Raises:
            InvalidStateError: If state is missing, has no separator or no identity id.
            UnknownIdentityError: If the identity is not registered.
            ConfigurationError: If the client id is not configured.
            MissingSecretError: If the client secret is not configured.
            CsrfMismatchError: If the CSRF token does not match.
            TokenExchangeError: If the code exchange fails.
        """
        if error:
            logger.error(
                {
                    "event": "handshake_provider_error",
                    "error": error,
                    "error_description": error_description,
                }
            )
            return HandshakeOutcome(
                status=HandshakeStatus.PROVIDER_ERROR,
                message=f"OAuth2 error: {error_description}",
            )

        if not state:
            raise InvalidStateError("Missing state parameter")
        identity_id, separator, presented_csrf = state.partition(STATE_SEPARATOR)
        if not separator:
            raise InvalidStateError("Malformed state parameter")
        if not identity_id:
            raise InvalidStateError("Missing node ID in state parameter")

        manager = self._registry.require(identity_id)

        async with manager.locked() as credential:
            if not credential.client_id:
                raise ConfigurationError("Missing client_id in credentials")
            if not credential.client_secret:
                raise MissingSecretError("Missing credentials")

            expected_csrf = credential.csrf_token
            if not expected_csrf or not hmac.compare_digest(presented_csrf.encode(), expected_csrf.encode()):
                logger.warning({"event": "csrf_mismatch", "node_id": identity_id})
                raise CsrfMismatchError()

            if not code:
                self._states[identity_id] = HandshakeState.IDLE
                raise TokenExchangeError("Missing authorization code")

            received_at = self._clock()
            try:
                tokens = await manager.get_oauth_client().exchange_code(
                    code, manager.node.redirect_uri or None, received_at_ms=received_at
                )
            except TokenEndpointError as e:
                self._states[identity_id] = HandshakeState.IDLE
                logger.error({"event": "token_exchange_failed", "node_id": identity_id, "message": str(e)})
                raise TokenExchangeError(str(e)) from e

            if not tokens.access_token:
                self._states[identity_id] = HandshakeState.IDLE
                logger.error({"event": "token_exchange_failed", "node_id": identity_id, "message": "No access token"})
                raise TokenExchangeError("No access token received from Google")
            if not tokens.refresh_token:
                logger.warning({"event": "refresh_token_missing", "node_id": identity_id})

            updated = credential.with_tokens(
                tokens,
                fallback_expiry_date=received_at + self._default_expiry_ms,
                received_at_ms=received_at,
            )
            updated.csrf_token = None
            manager.replace_credential(updated)
            self._states[identity_id] = HandshakeState.IDLE

            try:
                await self._vault.persist(identity_id, updated)
            except (OSError, ValueError) as e:
                logger.error(
                    {
                        "event": "credential_persist_failed",
                        "node_id": identity_id,
                        "error_type": type(e).__name__,
                    }
                )

        logger.info({"event": "handshake_completed", "node_id": identity_id})
        return HandshakeOutcome(status=HandshakeStatus.AUTHORIZED, message=AUTHORIZED_MESSAGE, identity_id=identity_id)
