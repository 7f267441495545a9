"""Google OAuth 2.0 client (authorization code + refresh token grants).

One instance per identity. Besides talking to the token endpoint it holds the
identity's current tokens and acts as the request signer handed to
downstream consumers (file-operation adapters).
"""

from __future__ import annotations

__all__ = [
    "GoogleOAuthClient",
    "TokenEndpointError",
]

from urllib.parse import urlencode

import httpx

from flowdrive.auth.models import TokenResponse
from flowdrive.constants import GOOGLE_AUTH_URL, GOOGLE_TOKEN_URL, OAUTH_CLIENT_TIMEOUT_SECONDS


class TokenEndpointError(Exception):
    """Token endpoint call failed (network error or non-200 response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GoogleOAuthClient:
    """Async OAuth client for Google's authorization and token endpoints.

    Usage:
        client = GoogleOAuthClient(client_id, client_secret, redirect_uri)
        url = client.generate_auth_url(scopes="...", state="node1:csrf")
        tokens = await client.exchange_code(code)
        client.set_credentials(tokens.access_token, tokens.refresh_token)
        headers = client.authorization_headers()
    """

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None = None,
        *,
        timeout: float = OAUTH_CLIENT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        auth_url: str = GOOGLE_AUTH_URL,
        token_url: str = GOOGLE_TOKEN_URL,
    ) -> None:
        """Initialize OAuth client.

        Args:
            client_id: OAuth client ID.
            client_secret: OAuth client secret.
            redirect_uri: Redirect URI registered with the provider.
            timeout: Timeout for token endpoint requests (seconds).
            transport: Optional httpx transport (tests inject a MockTransport).
            auth_url: Authorization endpoint.
            token_url: Token endpoint.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._timeout = timeout
        self._transport = transport
        self._auth_url = auth_url
        self._token_url = token_url
        self._access_token: str | None = None
        self._refresh_token: str | None = None

    # -------------------------------------------------------------------------
    # Current tokens / request signing
    # -------------------------------------------------------------------------

    def set_credentials(self, access_token: str | None, refresh_token: str | None) -> None:
        """Replace the tokens used for signing and refreshing."""
        self._access_token = access_token
        self._refresh_token = refresh_token

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    def authorization_headers(self) -> dict[str, str]:
        """Headers that authenticate a request with the current access token.

        Raises:
            ValueError: If no access token is set.
        """
        if not self._access_token:
            raise ValueError("No access token available")
        return {"Authorization": f"Bearer {self._access_token}"}

    # -------------------------------------------------------------------------
    # Protocol steps
    # -------------------------------------------------------------------------

    def generate_auth_url(
        self,
        *,
        scopes: str,
        state: str,
        client_id: str | None = None,
        redirect_uri: str | None = None,
    ) -> str:
        """Build the provider authorization URL.

        access_type=offline and prompt=consent force a refresh token to be
        issued even when the user consented before.

        Args:
            scopes: Space-separated scopes.
            state: Opaque state echoed back on the callback.
            client_id: Overrides the configured client id.
            redirect_uri: Overrides the configured redirect URI.

        Returns:
            Absolute authorization URL.
        """
        query = {
            "access_type": "offline",
            "prompt": "consent",
            "scope": scopes,
            "response_type": "code",
            "client_id": client_id or self.client_id or "",
            "redirect_uri": redirect_uri or self.redirect_uri or "",
            "state": state,
        }
        return f"{self._auth_url}?{urlencode(query)}"

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str | None = None,
        *,
        received_at_ms: int | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            code: Authorization code from the callback.
            redirect_uri: Redirect URI used in the authorization request.
            received_at_ms: Time base for expiry_date (defaults to now).

        Raises:
            TokenEndpointError: On network failure or non-200 response.
        """
        return await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri or self.redirect_uri or "",
            },
            received_at_ms,
        )

    async def refresh_access_token(
        self,
        refresh_token: str | None = None,
        *,
        received_at_ms: int | None = None,
    ) -> TokenResponse:
        """Mint a new access token from a refresh token.

        Args:
            refresh_token: Token to use (defaults to the current one).
            received_at_ms: Time base for expiry_date (defaults to now).

        Raises:
            TokenEndpointError: If no refresh token is set, on network
                failure, or on non-200 response.
        """
        token = refresh_token or self._refresh_token
        if not token:
            raise TokenEndpointError("No refresh token is set")
        return await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": token,
            },
            received_at_ms,
        )

    async def _token_request(self, data: dict[str, str], received_at_ms: int | None = None) -> TokenResponse:
        payload = {
            **data,
            "client_id": self.client_id or "",
            "client_secret": self.client_secret or "",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._token_url, data=payload)
        except httpx.HTTPError as e:
            raise TokenEndpointError(f"Token endpoint unreachable: {type(e).__name__}") from e

        if response.status_code != 200:
            raise TokenEndpointError(_describe_error(response), response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise TokenEndpointError("Invalid token response") from e
        if not isinstance(body, dict):
            raise TokenEndpointError("Invalid token response")
        return TokenResponse.from_response(body, received_at_ms)


def _describe_error(response: httpx.Response) -> str:
    """Short error description from an OAuth error response (no secrets)."""
    try:
        body = response.json()
    except ValueError:
        return f"Token request failed with status {response.status_code}"
    if isinstance(body, dict) and body.get("error"):
        description = body.get("error_description") or body["error"]
        return f"Token request failed: {description}"
    return f"Token request failed with status {response.status_code}"
