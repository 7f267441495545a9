"""Host runtime capability passed explicitly to every component.

The plugin host provides three things the credential subsystem needs:
- a credential store with the statically configured client id/secret per node
- persistent settings storage
- an optional operator-configured credential secret

They are bundled in RuntimeHost and injected through constructors; nothing
reaches for a process-wide host reference.
"""

from __future__ import annotations

__all__ = [
    "NodeCredentialStore",
    "RuntimeHost",
    "StaticClientCredentials",
]

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from flowdrive.storage.settings_store import JsonFileSettingsStorage, MemorySettingsStorage, SettingsStorage

if TYPE_CHECKING:
    from flowdrive.config import AppConfig


@dataclass(frozen=True)
class StaticClientCredentials:
    """Client id/secret provisioned out-of-band for one node."""

    client_id: str | None = None
    client_secret: str | None = None


class NodeCredentialStore:
    """The host's per-node credential store (client id and secret only).

    Tokens never go here: the store cannot persist values that change at
    runtime. See security/vault.py for token persistence.
    """

    def __init__(self) -> None:
        self._credentials: dict[str, StaticClientCredentials] = {}

    def get_credentials(self, node_id: str) -> StaticClientCredentials | None:
        return self._credentials.get(node_id)

    def add_credentials(self, node_id: str, client_id: str | None, client_secret: str | None) -> None:
        self._credentials[node_id] = StaticClientCredentials(client_id=client_id, client_secret=client_secret)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._credentials


@dataclass
class RuntimeHost:
    """Capabilities the host runtime lends to the credential subsystem.

    Attributes:
        credentials: Static per-node client credentials.
        storage: Persistent settings storage.
        credential_secret: Operator-configured encryption secret, if any.
    """

    storage: SettingsStorage = field(default_factory=MemorySettingsStorage)
    credentials: NodeCredentialStore = field(default_factory=NodeCredentialStore)
    credential_secret: str | None = None

    @classmethod
    def from_config(cls, config: "AppConfig") -> "RuntimeHost":
        """Build the host capability object from application config.

        Args:
            config: Loaded application configuration.

        Returns:
            RuntimeHost backed by the configured settings file.
        """
        credentials = NodeCredentialStore()
        for node in config.nodes:
            secret = node.credentials.client_secret
            credentials.add_credentials(
                node.id,
                node.credentials.client_id,
                secret.get_secret_value() if secret is not None else None,
            )

        configured_secret = config.vault.credential_secret
        return cls(
            storage=JsonFileSettingsStorage(config.runtime.settings_path),
            credentials=credentials,
            credential_secret=configured_secret.get_secret_value() if configured_secret is not None else None,
        )
