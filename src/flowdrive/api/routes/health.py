"""Liveness endpoint.

Routes mounted at: /health
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from flowdrive.api.schemas import HealthResponse

router = APIRouter()


@router.get("", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()
