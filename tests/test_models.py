"""Tests for credential models."""

from __future__ import annotations

from flowdrive.auth.models import Credential, CredentialStatus, PersistedRecord, TokenResponse

NOW_MS = 1_704_067_200_000


class TestTokenResponse:
    """Tests for TokenResponse.from_response."""

    def test_expires_in_becomes_absolute_expiry(self):
        """expires_in seconds are added to the receipt time."""
        tokens = TokenResponse.from_response(
            {"access_token": "ya29.a", "expires_in": 3599, "token_type": "Bearer", "id_token": "ignored"},
            received_at_ms=NOW_MS,
        )

        assert tokens.access_token == "ya29.a"
        assert tokens.expiry_date == NOW_MS + 3_599_000
        assert tokens.refresh_token is None

    def test_no_expires_in(self):
        """Without expires_in there is no expiry."""
        tokens = TokenResponse.from_response({"access_token": "ya29.a"}, received_at_ms=NOW_MS)

        assert tokens.expiry_date is None


class TestCredential:
    """Tests for Credential helpers."""

    def test_with_tokens_keeps_refresh_token_when_omitted(self):
        """Given a response without refresh_token, the previous one is kept."""
        credential = Credential(client_id="cid", access_token="old", refresh_token="1//keep", expiry_date=1)
        tokens = TokenResponse(access_token="new")

        updated = credential.with_tokens(tokens, fallback_expiry_date=NOW_MS + 10, received_at_ms=NOW_MS)

        assert updated.access_token == "new"
        assert updated.refresh_token == "1//keep"
        assert updated.expiry_date == NOW_MS + 10
        assert credential.access_token == "old"

    def test_with_tokens_sets_refresh_expiry(self):
        """refresh_token_expires_in yields an absolute refresh expiry."""
        credential = Credential(client_id="cid")
        tokens = TokenResponse(
            access_token="a",
            refresh_token="r",
            expiry_date=NOW_MS + 1000,
            refresh_token_expires_in=604_800,
        )

        updated = credential.with_tokens(tokens, fallback_expiry_date=0, received_at_ms=NOW_MS)

        assert updated.expiry_date == NOW_MS + 1000
        assert updated.refresh_token_expiry_date == NOW_MS + 604_800_000

    def test_expiry_check(self):
        """Expired only strictly after expiry_date; no expiry means never."""
        assert Credential(expiry_date=NOW_MS).is_access_token_expired(NOW_MS + 1)
        assert not Credential(expiry_date=NOW_MS).is_access_token_expired(NOW_MS)
        assert not Credential().is_access_token_expired(NOW_MS)

    def test_persisted_projection_excludes_client_and_csrf(self):
        """Only the refreshable fields are persisted."""
        credential = Credential(
            client_id="cid",
            client_secret="secret",
            access_token="a",
            refresh_token="r",
            expiry_date=5,
            csrf_token="csrf",
        )

        record = credential.to_persisted()

        assert record.model_dump() == {
            "access_token": "a",
            "refresh_token": "r",
            "expiry_date": 5,
            "refresh_token_expiry_date": None,
        }

    def test_merge_persisted(self):
        """Restored fields overlay the token fields, static ones stay."""
        credential = Credential(client_id="cid", client_secret="secret")

        credential.merge_persisted(PersistedRecord(access_token="a", refresh_token="r", expiry_date=7))

        assert credential.client_id == "cid"
        assert credential.is_complete
        assert credential.expiry_date == 7

    def test_repr_hides_secrets(self):
        """Secret fields are excluded from repr."""
        credential = Credential(client_secret="secret", access_token="ya29.a", refresh_token="1//r")

        assert "secret" not in repr(credential)
        assert "ya29" not in repr(credential)

    def test_status_has_no_token_material(self):
        """CredentialStatus carries flags and timestamps only."""
        status = CredentialStatus.from_credential(Credential(access_token="a", refresh_token="r", expiry_date=9))

        assert status.model_dump() == {
            "has_access_token": True,
            "has_refresh_token": True,
            "expiry_date": 9,
            "refresh_token_expiry_date": None,
        }
