"""Shared fixtures for flowdrive tests.

Provider calls never leave the process: OAuth and Drive clients get an
httpx.MockTransport backed by FakeTokenEndpoint.
"""

from __future__ import annotations

from urllib.parse import parse_qsl

import httpx
import pytest

from flowdrive.auth.refresh import RefreshController
from flowdrive.config import (
    APIConfig,
    AppConfig,
    CredentialsNodeConfig,
    NodeClientCredentials,
    RuntimeConfig,
    VaultConfig,
)
from flowdrive.runtime.host import RuntimeHost
from flowdrive.security.vault import CredentialVault
from flowdrive.storage.settings_store import CredentialStoreAdapter, MemorySettingsStorage

NODE_ID = "node1"
CLIENT_ID = "client-123.apps.googleusercontent.com"
CLIENT_SECRET = "client-secret-xyz"
REDIRECT_URI = "http://localhost:1880/google-credentials/auth/callback"
CREDENTIAL_SECRET = "operator-secret"
ADMIN_TOKEN = "0123456789abcdef" * 4

# 2024-01-01T00:00:00Z in epoch ms
NOW_MS = 1_704_067_200_000


class FakeTokenEndpoint:
    """Scripted stand-in for Google's token endpoint.

    Queued responses are served in order; every request's form body is
    recorded in .requests. Unscripted requests get a 500.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self._responses: list[httpx.Response | Exception] = []

    def respond(self, status_code: int = 200, body: dict | None = None) -> None:
        self._responses.append(httpx.Response(status_code, json=body if body is not None else {}))

    def respond_tokens(
        self,
        access_token: str = "ya29.access",
        refresh_token: str | None = "1//refresh",
        expires_in: int | None = 3599,
        **extra,
    ) -> None:
        body: dict = {"access_token": access_token, "token_type": "Bearer", **extra}
        if refresh_token is not None:
            body["refresh_token"] = refresh_token
        if expires_in is not None:
            body["expires_in"] = expires_in
        self.respond(200, body)

    def fail_with(self, error: Exception) -> None:
        self._responses.append(error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(dict(parse_qsl(request.content.decode())))
        if not self._responses:
            return httpx.Response(500, json={"error": "unexpected_request"})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def token_endpoint() -> FakeTokenEndpoint:
    """Scripted token endpoint."""
    return FakeTokenEndpoint()


@pytest.fixture
def now_ms() -> int:
    """Fixed current time (epoch ms) used by the clock fixture."""
    return NOW_MS


@pytest.fixture
def clock(now_ms: int):
    """Fixed epoch-milliseconds clock."""
    return lambda: now_ms


@pytest.fixture
def settings_storage() -> MemorySettingsStorage:
    """Empty in-memory host settings."""
    return MemorySettingsStorage()


@pytest.fixture
def adapter(settings_storage: MemorySettingsStorage) -> CredentialStoreAdapter:
    """Credentials section adapter over the in-memory settings."""
    return CredentialStoreAdapter(settings_storage)


@pytest.fixture
def vault(adapter: CredentialStoreAdapter) -> CredentialVault:
    """Vault with an operator-configured secret."""
    return CredentialVault(adapter, credential_secret=CREDENTIAL_SECRET)


@pytest.fixture
def node_config() -> CredentialsNodeConfig:
    """Credentials node with client id/secret and redirect URI."""
    return CredentialsNodeConfig(
        id=NODE_ID,
        name="Drive account",
        redirect_uri=REDIRECT_URI,
        credentials=NodeClientCredentials(client_id=CLIENT_ID, client_secret=CLIENT_SECRET),
    )


@pytest.fixture
def app_config(node_config: CredentialsNodeConfig, tmp_path) -> AppConfig:
    """App config with one credentials node, an admin token and settings under tmp_path."""
    return AppConfig(
        runtime=RuntimeConfig(settings_path=str(tmp_path / "settings.json")),
        api=APIConfig(admin_token=ADMIN_TOKEN),
        vault=VaultConfig(credential_secret=CREDENTIAL_SECRET),
        nodes=[node_config],
    )


@pytest.fixture
def host(settings_storage: MemorySettingsStorage) -> RuntimeHost:
    """Host capability with node1's static client credentials."""
    runtime_host = RuntimeHost(storage=settings_storage, credential_secret=CREDENTIAL_SECRET)
    runtime_host.credentials.add_credentials(NODE_ID, CLIENT_ID, CLIENT_SECRET)
    return runtime_host


@pytest.fixture
def refresher(vault: CredentialVault, clock) -> RefreshController:
    """Refresh controller with the fixed clock."""
    return RefreshController(vault, clock=clock)
