"""Drive node: maps flow messages to file operations.

A flow message names an operation and its parameters; the node answers with
a DriveResult instead of raising, so one failing message never stops the
flow.
"""

from __future__ import annotations

__all__ = [
    "DriveNode",
    "DriveOperation",
    "DriveResult",
]

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from flowdrive.constants import DEFAULT_DRIVE_PAGE_SIZE
from flowdrive.drive.client import DriveFilesClient
from flowdrive.exceptions import ConfigurationError, FlowDriveError
from flowdrive.runtime.registry import CredentialRegistry
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()


class DriveOperation(str, Enum):
    """Operations accepted by the Drive node."""

    LIST = "list"
    GET = "get"
    DOWNLOAD = "download"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class DriveResult:
    """Outcome of one Drive operation.

    status is "ok" (payload set) or "error" (error set).
    """

    status: str
    operation: str
    payload: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class DriveNode:
    """Runs Drive operations with the credentials of one credentials node.

    Usage:
        node = DriveNode(registry, credentials_id="node1")
        result = await node.handle("list", {"query": "trashed = false"})
    """

    def __init__(
        self,
        registry: CredentialRegistry,
        credentials_id: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._registry = registry
        self._credentials_id = credentials_id
        self._transport = transport

    def _client(self) -> DriveFilesClient:
        manager = self._registry.get(self._credentials_id)
        if manager is None:
            raise ConfigurationError(f"No credentials node {self._credentials_id} is configured")
        return DriveFilesClient(manager, transport=self._transport)

    async def handle(self, operation: str, params: dict[str, Any] | None = None) -> DriveResult:
        """Run one operation.

        Args:
            operation: One of DriveOperation's values.
            params: Operation parameters (file_id, name, content, ...).

        Returns:
            DriveResult; errors are reported, never raised.
        """
        params = params or {}
        try:
            op = DriveOperation(operation)
        except ValueError:
            return DriveResult(status="error", operation=operation, error=f"Unknown operation: {operation}")

        try:
            payload = await self._dispatch(op, params)
        except (FlowDriveError, KeyError, ValueError) as e:
            message = e.message if isinstance(e, FlowDriveError) else _param_error(e)
            logger.warning(
                {
                    "event": "drive_operation_failed",
                    "node_id": self._credentials_id,
                    "operation": op.value,
                    "message": message,
                }
            )
            return DriveResult(status="error", operation=op.value, error=message)

        return DriveResult(status="ok", operation=op.value, payload=payload)

    async def _dispatch(self, op: DriveOperation, params: dict[str, Any]) -> Any:
        client = self._client()
        if op is DriveOperation.LIST:
            return await client.list_files(
                query=params.get("query"),
                page_size=int(params.get("page_size", DEFAULT_DRIVE_PAGE_SIZE)),
                page_token=params.get("page_token"),
            )
        if op is DriveOperation.GET:
            return await client.get_file(params["file_id"])
        if op is DriveOperation.DOWNLOAD:
            return await client.get_file(params["file_id"], download=True)
        if op is DriveOperation.CREATE:
            return await client.create_file(
                params["name"],
                content=_as_bytes(params.get("content")),
                mime_type=params.get("mime_type"),
                parents=params.get("parents"),
            )
        if op is DriveOperation.UPDATE:
            return await client.update_file(
                params["file_id"],
                content=_as_bytes(params.get("content")),
                mime_type=params.get("mime_type"),
                name=params.get("name"),
            )
        await client.delete_file(params["file_id"])
        return {"deleted": params["file_id"]}


def _as_bytes(content: Any) -> bytes | None:
    if content is None or isinstance(content, bytes):
        return content
    if isinstance(content, str):
        return content.encode("utf-8")
    raise ValueError("content must be bytes or str")


def _param_error(error: Exception) -> str:
    if isinstance(error, KeyError):
        return f"Missing parameter: {error.args[0]}"
    return str(error)
