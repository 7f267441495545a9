"""Security middleware and admin token handling for the API.

Controls:
- Host header validation (DNS rebinding protection)
- Bearer token authentication for admin routes
- Security response headers

The provider callback and the health check are reachable without a token.
The callback is gated by the CSRF-bound state parameter instead; the
provider redirects the browser there and cannot attach credentials.

Browsers navigating to /auth cannot send an Authorization header, so GET
requests may carry the token as a "token" query parameter.
"""

from __future__ import annotations

__all__ = [
    "ADMIN_TOKEN_ENV",
    "SecurityMiddleware",
    "generate_token",
    "resolve_admin_token",
    "validate_token",
]

import hmac
import os
import secrets
from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from flowdrive.config import AppConfig
from flowdrive.constants import ADMIN_ROUTE_PREFIX, DEFAULT_ALLOWED_HOSTS
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()

ADMIN_TOKEN_ENV = "FLOWDRIVE_ADMIN_TOKEN"

# Routes under ADMIN_ROUTE_PREFIX that skip token authentication
PUBLIC_ADMIN_PATHS = (f"{ADMIN_ROUTE_PREFIX}/auth/callback",)


# =============================================================================
# Token Management
# =============================================================================


def generate_token() -> str:
    """Generate a secure random token.

    Returns:
        64-character hex string (32 bytes of randomness).
    """
    return secrets.token_hex(32)


def validate_token(provided: str, expected: str) -> bool:
    """Validate token using constant-time comparison."""
    return hmac.compare_digest(provided.encode(), expected.encode())


def resolve_admin_token(config: AppConfig) -> str | None:
    """Admin token from config, else from FLOWDRIVE_ADMIN_TOKEN, else None."""
    if config.api.admin_token is not None:
        return config.api.admin_token.get_secret_value() or None
    return os.environ.get(ADMIN_TOKEN_ENV) or None


# =============================================================================
# Security Middleware
# =============================================================================


class SecurityMiddleware(BaseHTTPMiddleware):
    """Host validation, admin token check and security headers."""

    def __init__(self, app: ASGIApp, token: str, allowed_hosts: Iterable[str] = DEFAULT_ALLOWED_HOSTS) -> None:
        """Initialize middleware.

        Args:
            app: ASGI application.
            token: Bearer token required on admin routes.
            allowed_hosts: Accepted Host header names (port stripped).
        """
        super().__init__(app)
        self.token = token
        self.allowed_hosts = frozenset(allowed_hosts)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        # 1. Host header validation (DNS rebinding protection)
        host = _strip_port(request.headers.get("host", ""))
        if host not in self.allowed_hosts:
            logger.warning(
                {
                    "event": "invalid_host_rejected",
                    "message": f"Rejected request with invalid host: {host}",
                    "component": "api_security",
                    "details": {"host": host, "path": path},
                }
            )
            return JSONResponse(status_code=403, content={"error": "Invalid host header"})

        # 2. Token validation for admin routes
        if self._requires_auth(path) and not self._check_auth(request):
            logger.warning(
                {
                    "event": "unauthorized_request_rejected",
                    "message": f"Rejected unauthorized request: {request.method} {path}",
                    "component": "api_security",
                    "details": {"method": request.method, "path": path},
                }
            )
            return JSONResponse(status_code=401, content={"error": "Unauthorized"})

        response = await call_next(request)
        self._add_security_headers(response)
        return response

    def _requires_auth(self, path: str) -> bool:
        if not path.startswith(ADMIN_ROUTE_PREFIX):
            return False
        return path not in PUBLIC_ADMIN_PATHS

    def _check_auth(self, request: Request) -> bool:
        """Bearer header, or the token query parameter on GET requests."""
        auth_header = request.headers.get("authorization", "")
        if auth_header.startswith("Bearer ") and validate_token(auth_header[7:], self.token):
            return True

        if request.method == "GET":
            query_token = request.query_params.get("token")
            if query_token and validate_token(query_token, self.token):
                return True

        return False

    def _add_security_headers(self, response: Response) -> None:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        response.headers["Referrer-Policy"] = "same-origin"


def _strip_port(host: str) -> str:
    # "[::1]:1880" keeps its brackets
    if host.startswith("["):
        return host.split("]")[0] + "]"
    return host.split(":")[0]
