"""Wire the credential subsystem together from configuration."""

from __future__ import annotations

__all__ = [
    "FlowDriveRuntime",
    "build_runtime",
]

from dataclasses import dataclass

import httpx

from flowdrive.auth.handshake import HandshakeController
from flowdrive.auth.lifecycle import CredentialLifecycleManager
from flowdrive.auth.refresh import RefreshController
from flowdrive.config import AppConfig
from flowdrive.runtime.host import RuntimeHost
from flowdrive.runtime.registry import CredentialRegistry
from flowdrive.security.vault import CredentialVault
from flowdrive.storage.settings_store import CredentialStoreAdapter


@dataclass
class FlowDriveRuntime:
    """Everything the admin surface and downstream nodes need."""

    config: AppConfig
    host: RuntimeHost
    vault: CredentialVault
    registry: CredentialRegistry
    refresher: RefreshController
    handshake: HandshakeController


def build_runtime(
    config: AppConfig,
    *,
    host: RuntimeHost | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FlowDriveRuntime:
    """Build vault, controllers and one lifecycle manager per configured node.

    Managers are registered but not started; call registry.start_all()
    (the API server does so on startup).

    Args:
        config: Application configuration.
        host: Host capability object (built from config when omitted).
        transport: Optional httpx transport for all OAuth clients.

    Returns:
        FlowDriveRuntime.
    """
    host = host or RuntimeHost.from_config(config)
    vault = CredentialVault(
        CredentialStoreAdapter(host.storage),
        credential_secret=host.credential_secret,
        cipher=config.vault.cipher,
    )
    refresher = RefreshController(vault, default_expiry_days=config.oauth.default_expiry_days)

    registry = CredentialRegistry()
    for node in config.nodes:
        registry.register(
            CredentialLifecycleManager(
                node,
                host,
                vault,
                refresher,
                oauth_timeout=config.oauth.timeout_seconds,
                transport=transport,
            )
        )

    handshake = HandshakeController(registry, vault, default_expiry_days=config.oauth.default_expiry_days)
    return FlowDriveRuntime(
        config=config,
        host=host,
        vault=vault,
        registry=registry,
        refresher=refresher,
        handshake=handshake,
    )
