"""Credential lifecycle manager: one per identity.

Owns the live Credential and the OAuth client that signs requests for it.
Handshake and refresh mutations both run under the identity's asyncio.Lock,
so a callback and a refresh for the same identity never interleave their
read-mutate-persist sequences.

Lifecycle:
1. Construction: static client id/secret from the host credential store
2. start(): restore the persisted record, refresh if already expired
3. Runtime: handshake callbacks and refreshes replace the credential
"""

from __future__ import annotations

__all__ = [
    "CredentialLifecycleManager",
]

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Callable

import httpx

from flowdrive.auth.models import Credential, CredentialStatus, PersistedRecord, now_ms
from flowdrive.auth.oauth_client import GoogleOAuthClient
from flowdrive.auth.refresh import RefreshController, RefreshResult
from flowdrive.constants import OAUTH_CLIENT_TIMEOUT_SECONDS
from flowdrive.exceptions import CorruptedCredentialError
from flowdrive.security.vault import CredentialVault
from flowdrive.telemetry.system.system_logger import get_system_logger

if TYPE_CHECKING:
    from flowdrive.config import CredentialsNodeConfig
    from flowdrive.runtime.host import RuntimeHost

logger = get_system_logger()


class CredentialLifecycleManager:
    """Live credential, OAuth client and lock for one identity.

    Usage:
        manager = CredentialLifecycleManager(node, host, vault, refresher)
        await manager.start()
        client = await manager.ensure_fresh()
        headers = client.authorization_headers()
    """

    def __init__(
        self,
        node: "CredentialsNodeConfig",
        host: "RuntimeHost",
        vault: CredentialVault,
        refresher: RefreshController,
        *,
        oauth_timeout: float = OAUTH_CLIENT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize manager.

        Args:
            node: Node configuration (id, redirect URI, scopes).
            host: Host capability object (static client credentials).
            vault: Credential vault for restore.
            refresher: Refresh controller.
            oauth_timeout: Token endpoint timeout (seconds).
            transport: Optional httpx transport for the OAuth client.
            clock: Epoch-milliseconds clock.
        """
        self._node = node
        self._vault = vault
        self._refresher = refresher
        self._clock = clock

        static = host.credentials.get_credentials(node.id)
        self._credential = Credential(
            client_id=static.client_id if static else None,
            client_secret=static.client_secret if static else None,
        )
        self._client = GoogleOAuthClient(
            self._credential.client_id,
            self._credential.client_secret,
            node.redirect_uri or None,
            timeout=oauth_timeout,
            transport=transport,
        )
        self._lock = asyncio.Lock()

    @property
    def identity_id(self) -> str:
        return self._node.id

    @property
    def node(self) -> "CredentialsNodeConfig":
        return self._node

    # -------------------------------------------------------------------------
    # Startup recovery
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Restore persisted tokens and refresh them if already expired.

        Restore, merge and refresh all run under the identity lock. Tokens
        installed by a handshake before recovery got the lock are newer than
        any persisted record and are kept.

        Never raises: a missing or unreadable record leaves the identity
        unauthorized until the next handshake.
        """
        async with self._lock:
            if self._credential.is_complete:
                logger.info({"event": "credential_restore_skipped", "node_id": self.identity_id})
                return

            record = await self._read_persisted()
            if record is None or not record.is_complete:
                logger.warning(
                    {
                        "event": "credential_tokens_missing",
                        "node_id": self.identity_id,
                        "message": "[google-credentials] Missing access or refresh token",
                    }
                )
                return

            self._credential.merge_persisted(record)
            self._sync_client()
            logger.info({"event": "credential_restored", "node_id": self.identity_id})

            if self._credential.is_access_token_expired(self._clock()):
                await self._refresh_locked()

    async def _read_persisted(self) -> PersistedRecord | None:
        try:
            return await self._vault.restore(self.identity_id)
        except CorruptedCredentialError as e:
            logger.error(
                {
                    "event": "credential_restore_failed",
                    "node_id": self.identity_id,
                    "message": e.message,
                    "hint": "Credential secret changed or record tampered with; re-authorize the node",
                }
            )
        except (OSError, ValueError) as e:
            logger.error(
                {
                    "event": "settings_read_failed",
                    "node_id": self.identity_id,
                    "error_type": type(e).__name__,
                }
            )
        return None

    # -------------------------------------------------------------------------
    # Read accessors
    # -------------------------------------------------------------------------

    def get_live_credential(self) -> Credential:
        """Copy of the live credential. Does not wait for the lock."""
        return self._credential.model_copy()

    def get_oauth_client(self) -> GoogleOAuthClient:
        """Request signer for downstream consumers."""
        return self._client

    def status(self) -> CredentialStatus:
        """Presence flags and expiry timestamps only."""
        return CredentialStatus.from_credential(self._credential)

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def locked(self) -> AsyncIterator[Credential]:
        """Hold the identity lock and yield the live credential.

        Changes made to the yielded credential are pushed into the OAuth
        client when the block exits without error.
        """
        async with self._lock:
            yield self._credential
            self._sync_client()

    def replace_credential(self, credential: Credential) -> None:
        """Install a new live credential. Caller must hold locked()."""
        self._credential = credential
        self._sync_client()

    async def refresh(self) -> RefreshResult:
        """Refresh the access token now, under the identity lock."""
        async with self._lock:
            return await self._refresh_locked()

    async def ensure_fresh(self) -> GoogleOAuthClient:
        """Refresh if the access token is expired, then return the signer."""
        async with self._lock:
            if self._credential.access_token and self._credential.is_access_token_expired(self._clock()):
                await self._refresh_locked()
        return self._client

    async def _refresh_locked(self) -> RefreshResult:
        result = await self._refresher.refresh(self.identity_id, self._credential, self._client)
        if result.ok and result.credential is not None:
            self.replace_credential(result.credential)
        return result

    def _sync_client(self) -> None:
        self._client.set_credentials(self._credential.access_token, self._credential.refresh_token)
