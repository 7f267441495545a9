"""FastAPI server for the credential admin surface.

Mounts:
- Credential handshake and status (/google-credentials, admin token required
  except for the provider callback)
- Liveness check (/health)

Middleware (outermost first): CORS, then SecurityMiddleware (Host header
validation, admin token).

Startup recovery (restore and refresh persisted tokens) runs in the
lifespan handler before the first request is served.
"""

from __future__ import annotations

__all__ = ["create_api_app"]

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from flowdrive import __version__
from flowdrive.constants import ADMIN_ROUTE_PREFIX
from flowdrive.runtime.bootstrap import FlowDriveRuntime
from flowdrive.telemetry.system.system_logger import get_system_logger

from .routes import credentials, health
from .security import SecurityMiddleware, generate_token, resolve_admin_token

logger = get_system_logger()


def create_api_app(runtime: FlowDriveRuntime, admin_token: str | None = None) -> FastAPI:
    """Create the FastAPI application with all routes.

    Args:
        runtime: Wired credential subsystem (see build_runtime).
        admin_token: Bearer token for admin routes. Falls back to the
            configured token, then to a freshly generated one (see
            app.state.admin_token).

    Returns:
        FastAPI app whose lifespan starts every registered identity.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await runtime.registry.start_all()
        yield

    app = FastAPI(
        title="flowdrive",
        description="Google Drive credential admin API",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = runtime.config
    app.state.registry = runtime.registry
    app.state.handshake = runtime.handshake

    token = admin_token or resolve_admin_token(runtime.config)
    if token is None:
        token = generate_token()
        logger.info(
            {
                "event": "admin_token_generated",
                "message": "No admin token configured; generated one for this process",
            }
        )
    app.state.admin_token = token

    app.add_middleware(
        SecurityMiddleware,
        token=token,
        allowed_hosts=runtime.config.api.allowed_hosts,
    )

    # The editor runs on the host's own origin; extra origins for development
    cors_origins = os.environ.get(
        "FLOWDRIVE_CORS_ORIGINS",
        "http://localhost:1880,http://127.0.0.1:1880",
    ).split(",")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in cors_origins],
        allow_credentials=True,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=3600,  # Cache preflight for 1 hour
    )

    app.include_router(credentials.router, prefix=ADMIN_ROUTE_PREFIX, tags=["credentials"])
    app.include_router(health.router, prefix="/health", tags=["health"])

    return app
