"""API response models."""

from __future__ import annotations

__all__ = [
    "CredentialStatusResponse",
    "HealthResponse",
]

from pydantic import BaseModel


class CredentialStatusResponse(BaseModel):
    """Authorization status of one identity. Never carries token values."""

    has_access_token: bool
    has_refresh_token: bool
    expiry_date: int | None = None
    refresh_token_expiry_date: int | None = None


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str = "ok"
