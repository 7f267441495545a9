"""Credential vault: encrypted persistence of refreshable tokens.

The host's credential store was not designed to persist tokens that change
at runtime, so refreshed tokens go into the host settings object instead,
encrypted with a key derived from the installation's credential secret.

Key source precedence:
1. Operator-configured secret (VaultConfig.credential_secret)
2. Runtime default secret stored in settings (_credentialSecret)
3. None of the above: a default secret is generated once and stored

The chosen secret must stay stable for the life of the installation;
changing it makes every persisted record unreadable.

The vault never keeps a credential after a call returns.
"""

from __future__ import annotations

__all__ = [
    "CredentialVault",
    "derive_key",
]

import hashlib
import secrets

from flowdrive.auth.models import Credential, PersistedRecord
from flowdrive.constants import DEFAULT_CIPHER_MODE, SETTINGS_DEFAULT_SECRET_KEY
from flowdrive.exceptions import CorruptedCredentialError, DecryptionError
from flowdrive.security.crypto import decrypt_record, encrypt_record
from flowdrive.storage.settings_store import CredentialStoreAdapter
from flowdrive.telemetry.system.system_logger import get_system_logger

logger = get_system_logger()


def derive_key(raw_secret: str) -> bytes:
    """Derive a 32-byte key from a secret string (SHA-256).

    Deterministic: the same secret always yields the same key.
    """
    return hashlib.sha256(raw_secret.encode("utf-8")).digest()


class CredentialVault:
    """Persist and restore the refreshable subset of a credential.

    Usage:
        vault = CredentialVault(adapter, credential_secret=config.vault.credential_secret)
        await vault.persist("node1", credential)
        record = await vault.restore("node1")
    """

    def __init__(
        self,
        adapter: CredentialStoreAdapter,
        credential_secret: str | None = None,
        cipher: str = DEFAULT_CIPHER_MODE,
    ) -> None:
        """Initialize vault.

        Args:
            adapter: Credentials section adapter over host settings storage.
            credential_secret: Operator-configured secret, if any.
            cipher: Cipher mode for envelopes.
        """
        self._adapter = adapter
        self._configured_secret = credential_secret or None
        self._cipher = cipher

    async def _resolve_key(self, *, create: bool) -> bytes | None:
        """Resolve the encryption key following the precedence rules.

        Args:
            create: Generate and store a default secret if none exists.

        Returns:
            The derived key, or None if no secret exists and create is False.
        """
        if self._configured_secret:
            return derive_key(self._configured_secret)

        stored = await self._adapter.get_setting(SETTINGS_DEFAULT_SECRET_KEY)
        if stored:
            return derive_key(str(stored))

        if not create:
            return None

        candidate = secrets.token_hex(32)
        winner = await self._adapter.set_setting_if_absent(SETTINGS_DEFAULT_SECRET_KEY, candidate)
        if winner == candidate:
            logger.info(
                {
                    "event": "credential_secret_generated",
                    "message": "Generated runtime default credential secret",
                }
            )
        return derive_key(str(winner))

    async def persist(self, identity_id: str, credential: Credential) -> None:
        """Encrypt and store the credential's refreshable fields.

        Only this identity's entry changes; other identities and unrelated
        settings are preserved.

        Args:
            identity_id: Identity the record belongs to.
            credential: Credential to persist (csrf_token and client secrets
                are never included).
        """
        key = await self._resolve_key(create=True)
        assert key is not None
        record = credential.to_persisted().model_dump()
        envelope = encrypt_record(key, record, self._cipher)
        await self._adapter.update(identity_id, envelope)
        logger.debug({"event": "credential_persisted", "node_id": identity_id})

    async def restore(self, identity_id: str) -> PersistedRecord | None:
        """Load and decrypt the persisted record for an identity.

        Args:
            identity_id: Identity to restore.

        Returns:
            PersistedRecord, or None when nothing was persisted (first run).

        Raises:
            CorruptedCredentialError: If the record exists but cannot be
                decrypted (wrong secret, tampering, malformed envelope).
        """
        section = await self._adapter.load_all()
        envelope = section.get(identity_id)
        if not envelope:
            return None

        key = await self._resolve_key(create=False)
        if key is None:
            raise CorruptedCredentialError(identity_id)

        try:
            data = decrypt_record(key, envelope, self._cipher)
            return PersistedRecord.model_validate(data)
        except (DecryptionError, ValueError) as e:
            raise CorruptedCredentialError(identity_id) from e
