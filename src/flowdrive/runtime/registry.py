"""Registry of lifecycle managers keyed by identity id."""

from __future__ import annotations

__all__ = [
    "CredentialRegistry",
]

from typing import Iterator

from flowdrive.auth.lifecycle import CredentialLifecycleManager
from flowdrive.exceptions import UnknownIdentityError
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()


class CredentialRegistry:
    """Identity id -> CredentialLifecycleManager.

    Usage:
        registry = CredentialRegistry()
        registry.register(manager)
        await registry.start_all()
        manager = registry.require("node1")
    """

    def __init__(self) -> None:
        self._managers: dict[str, CredentialLifecycleManager] = {}

    def register(self, manager: CredentialLifecycleManager) -> None:
        """Add a manager.

        Raises:
            ValueError: If the identity id is already registered.
        """
        if manager.identity_id in self._managers:
            raise ValueError(f"Node {manager.identity_id} is already registered")
        self._managers[manager.identity_id] = manager

    def get(self, identity_id: str) -> CredentialLifecycleManager | None:
        return self._managers.get(identity_id)

    def require(self, identity_id: str) -> CredentialLifecycleManager:
        """Look up a manager.

        Raises:
            UnknownIdentityError: If no manager is registered for the id.
        """
        manager = self._managers.get(identity_id)
        if manager is None:
            raise UnknownIdentityError(identity_id)
        return manager

    async def start_all(self) -> None:
        """Run startup recovery for every identity, one after another."""
        for manager in self._managers.values():
            await manager.start()
        logger.info({"event": "credentials_started", "node_count": len(self._managers)})

    @property
    def identity_ids(self) -> list[str]:
        return list(self._managers)

    def __contains__(self, identity_id: object) -> bool:
        return identity_id in self._managers

    def __iter__(self) -> Iterator[CredentialLifecycleManager]:
        return iter(self._managers.values())

    def __len__(self) -> int:
        return len(self._managers)
