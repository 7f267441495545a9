"""Shared dependencies for API routes.

Route modules import their dependencies from here rather than reading
app.state themselves.

Usage with Annotated:
    from flowdrive.api.deps import HandshakeDep, RegistryDep

    @router.get("/{identity_id}/status")
    async def get_status(identity_id: str, registry: RegistryDep) -> CredentialStatusResponse:
        ...
"""

from __future__ import annotations

__all__ = [
    # Dependency functions
    "get_config",
    "get_handshake",
    "get_registry",
    # Type aliases for Annotated pattern
    "ConfigDep",
    "HandshakeDep",
    "RegistryDep",
]

from typing import Annotated, cast

from fastapi import Depends, HTTPException, Request

from flowdrive.auth.handshake import HandshakeController
from flowdrive.config import AppConfig
from flowdrive.runtime.registry import CredentialRegistry


# =============================================================================
# Dependency Functions
# =============================================================================


def get_config(request: Request) -> AppConfig:
    """Get AppConfig from app.state.

    Raises:
        HTTPException: 503 if config not available.
    """
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(
            status_code=503,
            detail="Config not available. Server may still be starting.",
        )
    return cast(AppConfig, config)


def get_registry(request: Request) -> CredentialRegistry:
    """Get CredentialRegistry from app.state.

    Raises:
        HTTPException: 503 if registry not available.
    """
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=503,
            detail="Credential registry not available. Server may still be starting.",
        )
    return cast(CredentialRegistry, registry)


def get_handshake(request: Request) -> HandshakeController:
    """Get HandshakeController from app.state.

    Raises:
        HTTPException: 503 if handshake controller not available.
    """
    handshake = getattr(request.app.state, "handshake", None)
    if handshake is None:
        raise HTTPException(
            status_code=503,
            detail="Handshake controller not available. Server may still be starting.",
        )
    return cast(HandshakeController, handshake)


# =============================================================================
# Type Aliases for Annotated Pattern
# =============================================================================

ConfigDep = Annotated[AppConfig, Depends(get_config)]
RegistryDep = Annotated[CredentialRegistry, Depends(get_registry)]
HandshakeDep = Annotated[HandshakeController, Depends(get_handshake)]
