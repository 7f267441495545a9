"""Tests for the credential lifecycle manager and registry."""

from __future__ import annotations

import asyncio
import logging

import pytest

from flowdrive.auth.handshake import HandshakeController
from flowdrive.auth.lifecycle import CredentialLifecycleManager
from flowdrive.auth.models import Credential
from flowdrive.config import CredentialsNodeConfig
from flowdrive.exceptions import UnknownIdentityError
from flowdrive.runtime.registry import CredentialRegistry
from flowdrive.security.vault import CredentialVault
from flowdrive.storage.settings_store import CredentialStoreAdapter, MemorySettingsStorage


@pytest.fixture
def manager(node_config, host, vault, refresher, token_endpoint, clock) -> CredentialLifecycleManager:
    """Lifecycle manager for node1 talking to the fake token endpoint."""
    return CredentialLifecycleManager(
        node_config, host, vault, refresher, transport=token_endpoint.transport, clock=clock
    )


async def persist_tokens(vault: CredentialVault, expiry_date: int | None, refresh_token: str | None = "1//stored") -> None:
    await vault.persist(
        "node1",
        Credential(access_token="ya29.stored", refresh_token=refresh_token, expiry_date=expiry_date),
    )


def events(caplog) -> list[str]:
    return [r.msg.get("event") for r in caplog.records if isinstance(r.msg, dict)]


class HeldSettingsStorage(MemorySettingsStorage):
    """In-memory settings whose next read blocks until released."""

    def __init__(self) -> None:
        super().__init__()
        self.read_started = asyncio.Event()
        self.release = asyncio.Event()
        self._hold = False

    def hold_next_read(self) -> None:
        self._hold = True

    async def get_settings(self):
        if self._hold:
            self._hold = False
            self.read_started.set()
            await self.release.wait()
        return await super().get_settings()


class TestConstruction:
    """Tests for manager construction."""

    def test_reads_static_client_credentials(self, manager):
        """Client id/secret come from the host credential store."""
        credential = manager.get_live_credential()

        assert credential.client_id == "client-123.apps.googleusercontent.com"
        assert credential.client_secret == "client-secret-xyz"
        assert credential.access_token is None
        assert manager.get_oauth_client().client_id == credential.client_id

    def test_unknown_node_has_no_client_credentials(self, host, vault, refresher):
        """A node missing from the host store starts without client id."""
        manager = CredentialLifecycleManager(CredentialsNodeConfig(id="other"), host, vault, refresher)

        assert manager.get_live_credential().client_id is None


class TestStart:
    """Tests for startup recovery."""

    async def test_first_run_warns(self, manager, token_endpoint, caplog):
        """Nothing persisted: warning only, no provider call."""
        await manager.start()

        assert not manager.get_live_credential().is_complete
        assert "credential_tokens_missing" in events(caplog)
        assert any("Missing access or refresh token" in str(r.msg) for r in caplog.records)
        assert token_endpoint.requests == []

    async def test_restores_valid_tokens(self, manager, vault, token_endpoint, now_ms):
        """Unexpired tokens are merged and pushed into the signer."""
        await persist_tokens(vault, expiry_date=now_ms + 3_600_000)

        await manager.start()

        credential = manager.get_live_credential()
        assert credential.access_token == "ya29.stored"
        assert credential.refresh_token == "1//stored"
        assert credential.client_secret == "client-secret-xyz"
        assert manager.get_oauth_client().authorization_headers() == {"Authorization": "Bearer ya29.stored"}
        assert token_endpoint.requests == []

    async def test_refreshes_expired_tokens(self, manager, vault, token_endpoint, now_ms):
        """Expired access token is refreshed immediately and persisted."""
        await persist_tokens(vault, expiry_date=now_ms - 1000)
        token_endpoint.respond_tokens(access_token="ya29.refreshed", refresh_token=None)

        await manager.start()

        assert token_endpoint.requests[0]["refresh_token"] == "1//stored"
        assert manager.get_live_credential().access_token == "ya29.refreshed"
        assert manager.get_live_credential().refresh_token == "1//stored"
        assert (await vault.restore("node1")).access_token == "ya29.refreshed"

    async def test_failed_startup_refresh_keeps_restored_tokens(self, manager, vault, token_endpoint, now_ms, caplog):
        """Refresh failure leaves the restored credential live and logs it."""
        await persist_tokens(vault, expiry_date=now_ms - 1000)
        token_endpoint.respond(400, {"error": "invalid_grant"})

        await manager.start()

        assert manager.get_live_credential().access_token == "ya29.stored"
        assert "token_refresh_failed" in events(caplog)

    async def test_incomplete_record_is_not_merged(self, manager, vault, now_ms, caplog):
        """A record without refresh token counts as missing."""
        await persist_tokens(vault, expiry_date=now_ms + 3_600_000, refresh_token=None)

        await manager.start()

        assert manager.get_live_credential().access_token is None
        assert "credential_tokens_missing" in events(caplog)

    async def test_corrupted_record_is_logged_not_raised(
        self, node_config, host, adapter, refresher, token_endpoint, clock, caplog
    ):
        """Record under a different secret: loud error, identity unauthorized."""
        await CredentialVault(adapter, credential_secret="old-secret").persist(
            "node1", Credential(access_token="a", refresh_token="r")
        )
        vault = CredentialVault(adapter, credential_secret="new-secret")
        manager = CredentialLifecycleManager(node_config, host, vault, refresher, clock=clock)

        await manager.start()

        assert manager.get_live_credential().access_token is None
        assert "credential_restore_failed" in events(caplog)

    async def test_unreadable_settings_logged_not_raised(self, node_config, host, refresher, clock, caplog):
        """A settings read error does not crash startup."""

        class BrokenVault:
            async def restore(self, identity_id):
                raise OSError("permission denied")

        manager = CredentialLifecycleManager(node_config, host, BrokenVault(), refresher, clock=clock)

        await manager.start()

        assert "settings_read_failed" in events(caplog)

    async def test_handshake_during_recovery_is_not_overwritten(
        self, node_config, host, refresher, token_endpoint, clock, now_ms
    ):
        """Given a callback that lands while recovery reads settings, the callback's tokens stay live."""
        # Arrange
        storage = HeldSettingsStorage()
        vault = CredentialVault(CredentialStoreAdapter(storage), credential_secret="operator-secret")
        await vault.persist(
            "node1", Credential(access_token="ya29.OLD", refresh_token="1//OLD", expiry_date=now_ms + 3_600_000)
        )
        manager = CredentialLifecycleManager(
            node_config, host, vault, refresher, transport=token_endpoint.transport, clock=clock
        )
        registry = CredentialRegistry()
        registry.register(manager)
        controller = HandshakeController(registry, vault, clock=clock)
        begin = await controller.start("cid", "node1", "http://localhost:1880/callback")
        token_endpoint.respond_tokens(access_token="ya29.NEW", refresh_token="1//NEW")

        # Act
        storage.hold_next_read()
        recovery = asyncio.create_task(manager.start())
        await storage.read_started.wait()
        callback = asyncio.create_task(controller.complete("code", f"node1:{begin.csrf_token}"))
        for _ in range(5):
            await asyncio.sleep(0)
        storage.release.set()
        await recovery
        outcome = await callback

        # Assert
        assert outcome.ok
        live = manager.get_live_credential()
        assert (live.access_token, live.refresh_token) == ("ya29.NEW", "1//NEW")
        assert manager.get_oauth_client().access_token == "ya29.NEW"
        assert (await vault.restore("node1")).access_token == "ya29.NEW"

    async def test_live_tokens_win_over_persisted_record(self, manager, vault, token_endpoint, now_ms, caplog):
        """Given tokens already live at startup, the persisted record is not merged."""
        caplog.set_level(logging.INFO, logger="flowdrive.system")
        async with manager.locked() as credential:
            credential.access_token = "ya29.live"
            credential.refresh_token = "1//live"
        await persist_tokens(vault, expiry_date=now_ms + 3_600_000)

        await manager.start()

        assert manager.get_live_credential().access_token == "ya29.live"
        assert manager.get_oauth_client().access_token == "ya29.live"
        assert "credential_restore_skipped" in events(caplog)


class TestAccessors:
    """Tests for read accessors."""

    async def test_live_credential_is_a_copy(self, manager):
        """Mutating the returned credential does not affect the manager."""
        copy = manager.get_live_credential()
        copy.access_token = "tampered"

        assert manager.get_live_credential().access_token is None

    async def test_status_reports_flags_only(self, manager, vault, now_ms):
        """Status has presence flags and expiry, never token values."""
        await persist_tokens(vault, expiry_date=now_ms + 3_600_000)
        await manager.start()

        status = manager.status()

        assert status.has_access_token is True
        assert status.has_refresh_token is True
        assert status.expiry_date == now_ms + 3_600_000
        assert "ya29.stored" not in status.model_dump_json()


class TestEnsureFresh:
    """Tests for ensure_fresh."""

    async def test_no_refresh_when_valid(self, manager, vault, token_endpoint, now_ms):
        """Valid token: signer returned without provider call."""
        await persist_tokens(vault, expiry_date=now_ms + 3_600_000)
        await manager.start()

        client = await manager.ensure_fresh()

        assert client.access_token == "ya29.stored"
        assert token_endpoint.requests == []

    async def test_no_refresh_when_unauthorized(self, manager, token_endpoint):
        """No access token at all: nothing to refresh."""
        client = await manager.ensure_fresh()

        assert client.access_token is None
        assert token_endpoint.requests == []

    async def test_concurrent_callers_refresh_once(self, manager, token_endpoint, now_ms):
        """Concurrent consumers of an expired token trigger one refresh."""
        async with manager.locked() as credential:
            credential.access_token = "ya29.expired"
            credential.refresh_token = "1//stored"
            credential.expiry_date = now_ms - 1000
        token_endpoint.respond_tokens(access_token="ya29.new", refresh_token=None, expires_in=None)

        clients = await asyncio.gather(*(manager.ensure_fresh() for _ in range(5)))

        assert len(token_endpoint.requests) == 1
        assert all(c.access_token == "ya29.new" for c in clients)

    async def test_explicit_refresh(self, manager, token_endpoint, now_ms):
        """refresh() runs the grant and installs the result."""
        async with manager.locked() as credential:
            credential.access_token = "ya29.old"
            credential.refresh_token = "1//stored"
            credential.expiry_date = now_ms + 3_600_000
        token_endpoint.respond_tokens(access_token="ya29.forced")

        result = await manager.refresh()

        assert result.ok
        assert manager.get_oauth_client().access_token == "ya29.forced"


class TestCredentialRegistry:
    """Tests for CredentialRegistry."""

    def test_register_and_lookup(self, manager):
        """Registered managers are found by identity id."""
        registry = CredentialRegistry()
        registry.register(manager)

        assert registry.get("node1") is manager
        assert registry.require("node1") is manager
        assert "node1" in registry
        assert len(registry) == 1
        assert registry.identity_ids == ["node1"]

    def test_require_unknown_raises(self):
        """Unknown identity raises UnknownIdentityError."""
        with pytest.raises(UnknownIdentityError):
            CredentialRegistry().require("ghost")

    def test_duplicate_registration_rejected(self, manager):
        """Registering the same identity twice is an error."""
        registry = CredentialRegistry()
        registry.register(manager)

        with pytest.raises(ValueError, match="already registered"):
            registry.register(manager)

    async def test_start_all_restores_every_identity(self, host, vault, refresher, clock, now_ms):
        """start_all runs recovery for each manager."""
        for node_id in ("node1", "node2"):
            await vault.persist(
                node_id,
                Credential(access_token=f"ya29.{node_id}", refresh_token="1//r", expiry_date=now_ms + 60_000),
            )
        registry = CredentialRegistry()
        for node_id in ("node1", "node2"):
            registry.register(CredentialLifecycleManager(CredentialsNodeConfig(id=node_id), host, vault, refresher, clock=clock))

        await registry.start_all()

        assert [m.get_live_credential().access_token for m in registry] == ["ya29.node1", "ya29.node2"]
