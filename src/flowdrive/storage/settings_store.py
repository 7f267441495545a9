"""Host settings storage and the credential section adapter.

The host runtime keeps one opaque, JSON-serializable settings object. This
module provides:
- SettingsStorage protocol: the host capability (get/save the whole object)
- JsonFileSettingsStorage / MemorySettingsStorage: concrete backends
- CredentialStoreAdapter: reads and writes the reserved credentials section
  without touching any other key (read-merge-write)

The settings object is shared by every identity in the process. All
adapter mutations run under one asyncio.Lock so concurrent persists for
different identities cannot clobber each other.
"""

from __future__ import annotations

__all__ = [
    "CredentialStoreAdapter",
    "JsonFileSettingsStorage",
    "MemorySettingsStorage",
    "SettingsStorage",
]

import asyncio
import copy
import json
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from flowdrive.constants import SETTINGS_CREDENTIALS_KEY
from flowdrive.telemetry.system.system_logger import get_system_logger
from flowdrive.utils.file_helpers import atomic_write_json

logger = get_system_logger()

Envelope = dict[str, str]


@runtime_checkable
class SettingsStorage(Protocol):
    """Host-provided persistent storage for the settings object."""

    async def get_settings(self) -> dict[str, Any]:
        """Return a copy of the whole settings object."""
        ...

    async def save_settings(self, settings: dict[str, Any]) -> None:
        """Replace the whole settings object."""
        ...


class MemorySettingsStorage:
    """In-process settings storage.

    Used when the host embeds flowdrive without durable storage, and in tests.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._settings: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    async def get_settings(self) -> dict[str, Any]:
        return copy.deepcopy(self._settings)

    async def save_settings(self, settings: dict[str, Any]) -> None:
        self._settings = copy.deepcopy(settings)
        self.save_count += 1


class JsonFileSettingsStorage:
    """Settings object stored in a JSON file.

    Reads and writes run in a worker thread to keep the event loop free.
    Writes are atomic and the file is owner-only (0600).
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        with open(self._path, encoding="utf-8") as f:
            content = f.read()
        if not content.strip():
            return {}
        data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file {self._path} does not contain a JSON object")
        return data

    async def get_settings(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._read)

    async def save_settings(self, settings: dict[str, Any]) -> None:
        await asyncio.to_thread(atomic_write_json, self._path, settings)


class CredentialStoreAdapter:
    """Reads/writes the reserved credentials section of the settings object.

    The section maps identity id -> cipher envelope. Every write reloads the
    full settings object, changes only what it owns, and saves it back.

    Usage:
        adapter = CredentialStoreAdapter(storage)
        section = await adapter.load_all()
        await adapter.update("node1", envelope)
    """

    def __init__(self, storage: SettingsStorage, section_key: str = SETTINGS_CREDENTIALS_KEY) -> None:
        self._storage = storage
        self._section_key = section_key
        # Guards the whole settings object across identities
        self._lock = asyncio.Lock()

    async def load_all(self) -> dict[str, Envelope]:
        """Return the credentials section (identity id -> envelope)."""
        settings = await self._storage.get_settings()
        section = settings.get(self._section_key)
        if section is None:
            return {}
        if not isinstance(section, dict):
            logger.error(
                {
                    "event": "credential_section_invalid",
                    "message": f"Settings key '{self._section_key}' is not an object; ignoring it",
                }
            )
            return {}
        return section

    async def save_all(self, section: dict[str, Envelope]) -> None:
        """Replace the credentials section, preserving all other settings."""
        async with self._lock:
            settings = await self._storage.get_settings()
            settings[self._section_key] = dict(section)
            await self._storage.save_settings(settings)

    async def update(self, identity_id: str, envelope: Envelope) -> None:
        """Set one identity's envelope, leaving other identities untouched."""
        async with self._lock:
            settings = await self._storage.get_settings()
            section = settings.get(self._section_key)
            if not isinstance(section, dict):
                section = {}
            section[identity_id] = envelope
            settings[self._section_key] = section
            await self._storage.save_settings(settings)

    async def get_setting(self, key: str) -> Any:
        """Read a top-level settings value."""
        settings = await self._storage.get_settings()
        return settings.get(key)

    async def set_setting_if_absent(self, key: str, value: Any) -> Any:
        """Store a top-level value unless one exists; return the winning value."""
        async with self._lock:
            settings = await self._storage.get_settings()
            existing = settings.get(key)
            if existing:
                return existing
            settings[key] = value
            await self._storage.save_settings(settings)
            return value
