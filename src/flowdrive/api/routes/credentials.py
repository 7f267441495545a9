"""Credential handshake and status endpoints.

Browser-facing, so responses are plain text like the provider's own pages:
- GET /google-credentials/auth - Start the OAuth handshake (302 to Google)
- GET /google-credentials/auth/callback - Provider redirect target
- GET /google-credentials/{identity_id}/status - Token presence and expiry

Routes mounted at: /google-credentials
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse, RedirectResponse, Response

from flowdrive.api.deps import ConfigDep, HandshakeDep, RegistryDep
from flowdrive.api.schemas import CredentialStatusResponse
from flowdrive.constants import CSRF_COOKIE_MAX_AGE_SECONDS, CSRF_COOKIE_NAME
from flowdrive.exceptions import FlowDriveError, TokenExchangeError

router = APIRouter()

EXCHANGE_FAILED_MESSAGE = "Could not receive tokens"


def _error_response(error: FlowDriveError) -> PlainTextResponse:
    return PlainTextResponse(error.message, status_code=error.status_code)


@router.get("/auth")
async def start_auth(
    handshake: HandshakeDep,
    config: ConfigDep,
    client_id: str | None = Query(default=None, alias="clientId"),
    identity_id: str | None = Query(default=None, alias="id"),
    callback: str | None = Query(default=None),
    scopes: str | None = Query(default=None),
) -> Response:
    """Start the handshake and redirect the browser to the consent screen.

    Sets the CSRF token as a short-lived cookie.
    """
    try:
        start = await handshake.start(client_id, identity_id, callback, scopes)
    except FlowDriveError as e:
        return _error_response(e)

    response = RedirectResponse(start.redirect_url, status_code=302)
    response.set_cookie(
        key=CSRF_COOKIE_NAME,
        value=start.csrf_token,
        max_age=CSRF_COOKIE_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=config.api.cookie_secure,
    )
    return response


@router.get("/auth/callback")
async def auth_callback(
    handshake: HandshakeDep,
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
) -> Response:
    """Complete the handshake from the provider redirect."""
    try:
        outcome = await handshake.complete(code, state, error, error_description)
    except TokenExchangeError:
        return PlainTextResponse(EXCHANGE_FAILED_MESSAGE)
    except FlowDriveError as e:
        return _error_response(e)

    response = PlainTextResponse(outcome.message)
    if outcome.ok:
        response.delete_cookie(CSRF_COOKIE_NAME)
    return response


@router.get("/{identity_id}/status", response_model=CredentialStatusResponse)
async def get_status(identity_id: str, registry: RegistryDep) -> CredentialStatusResponse:
    """Token presence flags and expiry timestamps for one identity.

    Raises:
        HTTPException: 400 if the identity is unknown.
    """
    manager = registry.get(identity_id)
    if manager is None:
        raise HTTPException(status_code=400, detail="Node not found")
    return CredentialStatusResponse.model_validate(manager.status().model_dump())
