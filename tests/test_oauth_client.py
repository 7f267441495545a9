"""Tests for GoogleOAuthClient (token endpoint calls via MockTransport)."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from flowdrive.auth.oauth_client import GoogleOAuthClient, TokenEndpointError


def make_client(token_endpoint, redirect_uri: str | None = "https://example.test/cb") -> GoogleOAuthClient:
    return GoogleOAuthClient("cid", "csecret", redirect_uri, transport=token_endpoint.transport)


class TestGenerateAuthUrl:
    """Tests for generate_auth_url."""

    def test_contains_offline_consent_and_state(self, token_endpoint):
        """URL requests offline access, forced consent, and echoes state."""
        client = make_client(token_endpoint)

        url = client.generate_auth_url(scopes="https://www.googleapis.com/auth/drive", state="node1:abc")

        parsed = urlparse(url)
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://accounts.google.com/o/oauth2/v2/auth"
        assert query == {
            "access_type": "offline",
            "prompt": "consent",
            "scope": "https://www.googleapis.com/auth/drive",
            "response_type": "code",
            "client_id": "cid",
            "redirect_uri": "https://example.test/cb",
            "state": "node1:abc",
        }

    def test_overrides_client_id_and_redirect(self, token_endpoint):
        """Explicit client_id and redirect_uri take precedence."""
        client = make_client(token_endpoint)

        url = client.generate_auth_url(scopes="s", state="x:y", client_id="other", redirect_uri="https://cb.test")

        query = parse_qs(urlparse(url).query)
        assert query["client_id"] == ["other"]
        assert query["redirect_uri"] == ["https://cb.test"]


class TestExchangeCode:
    """Tests for exchange_code."""

    async def test_posts_authorization_code_grant(self, token_endpoint):
        """Form body carries grant type, code, redirect and client credentials."""
        token_endpoint.respond_tokens()
        client = make_client(token_endpoint)

        tokens = await client.exchange_code("auth-code")

        assert token_endpoint.requests == [
            {
                "grant_type": "authorization_code",
                "code": "auth-code",
                "redirect_uri": "https://example.test/cb",
                "client_id": "cid",
                "client_secret": "csecret",
            }
        ]
        assert tokens.access_token == "ya29.access"
        assert tokens.refresh_token == "1//refresh"
        assert tokens.expiry_date is not None

    async def test_expiry_relative_to_given_receipt_time(self, token_endpoint, now_ms):
        """received_at_ms is the time base for expiry_date."""
        token_endpoint.respond_tokens(expires_in=3599)
        client = make_client(token_endpoint)

        tokens = await client.exchange_code("auth-code", received_at_ms=now_ms)

        assert tokens.expiry_date == now_ms + 3_599_000

    async def test_error_response_raises(self, token_endpoint):
        """A 400 invalid_grant becomes TokenEndpointError with the description."""
        token_endpoint.respond(400, {"error": "invalid_grant", "error_description": "Bad Request"})
        client = make_client(token_endpoint)

        with pytest.raises(TokenEndpointError, match="Bad Request") as exc_info:
            await client.exchange_code("stale-code")

        assert exc_info.value.status_code == 400

    async def test_network_error_raises(self, token_endpoint):
        """Transport failures become TokenEndpointError."""
        token_endpoint.fail_with(httpx.ConnectError("boom"))
        client = make_client(token_endpoint)

        with pytest.raises(TokenEndpointError, match="unreachable"):
            await client.exchange_code("code")

    async def test_non_json_body_raises(self):
        """A 200 with a non-JSON body is rejected."""
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        client = GoogleOAuthClient("cid", "csecret", "https://cb", transport=transport)

        with pytest.raises(TokenEndpointError, match="Invalid token response"):
            await client.exchange_code("code")


class TestRefreshAccessToken:
    """Tests for refresh_access_token."""

    async def test_uses_current_refresh_token(self, token_endpoint):
        """Without argument, the client's refresh token is sent."""
        token_endpoint.respond_tokens(access_token="ya29.new", refresh_token=None)
        client = make_client(token_endpoint)
        client.set_credentials("ya29.old", "1//stored")

        tokens = await client.refresh_access_token()

        assert token_endpoint.requests[0]["grant_type"] == "refresh_token"
        assert token_endpoint.requests[0]["refresh_token"] == "1//stored"
        assert tokens.access_token == "ya29.new"
        assert tokens.refresh_token is None

    async def test_expiry_relative_to_given_receipt_time(self, token_endpoint, now_ms):
        """received_at_ms is the time base for expiry_date."""
        token_endpoint.respond_tokens(expires_in=60)
        client = make_client(token_endpoint)

        tokens = await client.refresh_access_token("1//stored", received_at_ms=now_ms)

        assert tokens.expiry_date == now_ms + 60_000

    async def test_without_refresh_token_raises(self, token_endpoint):
        """No refresh token, no request."""
        client = make_client(token_endpoint)

        with pytest.raises(TokenEndpointError, match="No refresh token"):
            await client.refresh_access_token()

        assert token_endpoint.requests == []


class TestSigning:
    """Tests for request signing."""

    def test_authorization_headers(self, token_endpoint):
        """Bearer header from the current access token."""
        client = make_client(token_endpoint)
        client.set_credentials("ya29.token", "1//r")

        assert client.authorization_headers() == {"Authorization": "Bearer ya29.token"}

    def test_authorization_headers_without_token(self, token_endpoint):
        """No access token, no header."""
        client = make_client(token_endpoint)

        with pytest.raises(ValueError):
            client.authorization_headers()
