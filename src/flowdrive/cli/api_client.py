"""API client helper for CLI commands that need data from a running server.

File-based commands (config show, config path) read files directly instead
of using this module.
"""

from __future__ import annotations

__all__ = [
    "APIError",
    "ServerNotRunningError",
    "api_request",
    "get_api_base_url",
]

from typing import Any

import click
import httpx

from flowdrive.api.security import resolve_admin_token
from flowdrive.config import AppConfig
from flowdrive.constants import DEFAULT_HTTP_TIMEOUT_SECONDS


class ServerNotRunningError(click.ClickException):
    """Raised when the admin server cannot be reached."""

    def __init__(self, base_url: str) -> None:
        super().__init__(f"flowdrive server not reachable at {base_url}.\nStart it with: flowdrive serve")


class APIError(click.ClickException):
    """Raised when API request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        if status_code:
            super().__init__(f"API error ({status_code}): {message}")
        else:
            super().__init__(f"API error: {message}")
        self.status_code = status_code


def get_api_base_url(config: AppConfig) -> str:
    """Base URL of the admin server described by config."""
    return f"http://{config.api.host}:{config.api.port}"


def api_request(
    method: str,
    endpoint: str,
    *,
    config: AppConfig,
    params: dict[str, Any] | None = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
) -> dict[str, Any] | list[Any]:
    """Make a request to the running admin server.

    Args:
        method: HTTP method.
        endpoint: API endpoint path (e.g., "/google-credentials/node1/status").
        config: Loaded config (host, port and admin token of the server).
        params: Optional query parameters.
        timeout: Request timeout in seconds.

    Returns:
        Parsed JSON response.

    Raises:
        ServerNotRunningError: If the server is not reachable.
        APIError: If request fails or returns error status.
    """
    base_url = get_api_base_url(config)
    headers: dict[str, str] = {}
    admin_token = resolve_admin_token(config)
    if admin_token:
        headers["Authorization"] = f"Bearer {admin_token}"

    try:
        with httpx.Client(timeout=timeout, headers=headers) as client:
            response = client.request(method, f"{base_url}{endpoint}", params=params)
            response.raise_for_status()

            if response.status_code == 204:
                return {}

            result = response.json()
            if isinstance(result, (dict, list)):
                return result
            # Unexpected JSON type - wrap in dict
            return {"value": result}

    except httpx.ConnectError as e:
        raise ServerNotRunningError(base_url) from e
    except httpx.HTTPStatusError as e:
        raise APIError(_error_detail(e.response), e.response.status_code) from e
    except httpx.HTTPError as e:
        raise APIError(str(e)) from e
    except ValueError as e:
        raise APIError("Invalid JSON in response") from e


def _error_detail(response: httpx.Response) -> str:
    """Error detail from a JSON {"detail": ...} body, else the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return response.text
