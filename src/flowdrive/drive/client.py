"""Thin async wrapper over the Google Drive v3 files API.

Every call obtains the signer from the identity's lifecycle manager first
(refreshing an expired access token) and refuses to reach the API when the
identity has no access token.
"""

from __future__ import annotations

__all__ = [
    "DriveFilesClient",
]

from typing import TYPE_CHECKING, Any

import httpx

from flowdrive.constants import (
    DEFAULT_DRIVE_PAGE_SIZE,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DRIVE_API_URL,
    DRIVE_FILE_FIELDS,
    DRIVE_UPLOAD_URL,
)
from flowdrive.exceptions import ConfigurationError, DriveAPIError

if TYPE_CHECKING:
    from flowdrive.auth.lifecycle import CredentialLifecycleManager


class DriveFilesClient:
    """Files API client for one identity.

    Usage:
        drive = DriveFilesClient(manager)
        page = await drive.list_files(query="name contains 'report'")
        data = await drive.get_file(file_id, download=True)
    """

    def __init__(
        self,
        manager: "CredentialLifecycleManager",
        *,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        api_url: str = DRIVE_API_URL,
        upload_url: str = DRIVE_UPLOAD_URL,
    ) -> None:
        self._manager = manager
        self._timeout = timeout
        self._transport = transport
        self._api_url = api_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")

    async def _auth_headers(self) -> dict[str, str]:
        client = await self._manager.ensure_fresh()
        if not client.access_token:
            raise ConfigurationError(
                f"Credentials for node {self._manager.identity_id} are not authorized; "
                "run the OAuth flow from the credentials node first"
            )
        return client.authorization_headers()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        content: bytes | None = None,
        content_type: str | None = None,
    ) -> httpx.Response:
        headers = await self._auth_headers()
        if content_type:
            headers["Content-Type"] = content_type
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, url, params=params, json=json, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise DriveAPIError(f"Drive API unreachable: {type(e).__name__}") from e

        if response.status_code >= 400:
            raise DriveAPIError(_describe_error(response))
        return response

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def list_files(
        self,
        query: str | None = None,
        page_size: int = DEFAULT_DRIVE_PAGE_SIZE,
        page_token: str | None = None,
    ) -> dict[str, Any]:
        """List files visible to the identity.

        Args:
            query: Drive search query (q parameter).
            page_size: Maximum files per page.
            page_token: Token from a previous page.

        Returns:
            Dict with "files" and, when more pages exist, "nextPageToken".
        """
        params: dict[str, Any] = {
            "pageSize": page_size,
            "fields": f"nextPageToken, files({DRIVE_FILE_FIELDS})",
        }
        if query:
            params["q"] = query
        if page_token:
            params["pageToken"] = page_token
        response = await self._request("GET", f"{self._api_url}/files", params=params)
        return response.json()

    async def get_file(self, file_id: str, download: bool = False) -> dict[str, Any] | bytes:
        """Fetch file metadata, or the file content when download is True."""
        if download:
            response = await self._request("GET", f"{self._api_url}/files/{file_id}", params={"alt": "media"})
            return response.content
        response = await self._request("GET", f"{self._api_url}/files/{file_id}", params={"fields": DRIVE_FILE_FIELDS})
        return response.json()

    async def create_file(
        self,
        name: str,
        content: bytes | None = None,
        mime_type: str | None = None,
        parents: list[str] | None = None,
    ) -> dict[str, Any]:
        """Create a file, then upload its content if any.

        Returns:
            Metadata of the created file.
        """
        metadata: dict[str, Any] = {"name": name}
        if mime_type:
            metadata["mimeType"] = mime_type
        if parents:
            metadata["parents"] = parents
        response = await self._request(
            "POST",
            f"{self._api_url}/files",
            params={"fields": DRIVE_FILE_FIELDS},
            json=metadata,
        )
        created = response.json()
        if content is None:
            return created
        return await self._upload_content(created["id"], content, mime_type)

    async def update_file(
        self,
        file_id: str,
        content: bytes | None = None,
        mime_type: str | None = None,
        name: str | None = None,
    ) -> dict[str, Any]:
        """Rename a file and/or replace its content.

        Raises:
            ValueError: If neither content nor name is given.
        """
        if content is None and name is None:
            raise ValueError("update_file needs content or name")

        updated: dict[str, Any] = {}
        if name is not None:
            response = await self._request(
                "PATCH",
                f"{self._api_url}/files/{file_id}",
                params={"fields": DRIVE_FILE_FIELDS},
                json={"name": name},
            )
            updated = response.json()
        if content is not None:
            updated = await self._upload_content(file_id, content, mime_type)
        return updated

    async def delete_file(self, file_id: str) -> None:
        """Permanently delete a file (skips the trash)."""
        await self._request("DELETE", f"{self._api_url}/files/{file_id}")

    async def _upload_content(self, file_id: str, content: bytes, mime_type: str | None) -> dict[str, Any]:
        response = await self._request(
            "PATCH",
            f"{self._upload_url}/files/{file_id}",
            params={"uploadType": "media", "fields": DRIVE_FILE_FIELDS},
            content=content,
            content_type=mime_type or "application/octet-stream",
        )
        return response.json()


def _describe_error(response: httpx.Response) -> str:
    """Error text from a Drive API error body."""
    try:
        body = response.json()
    except ValueError:
        return f"Drive API request failed with status {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return f"Drive API error {response.status_code}: {error['message']}"
    return f"Drive API request failed with status {response.status_code}"
