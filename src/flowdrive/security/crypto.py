"""Symmetric encryption of small JSON records.

Envelope format (shared by both modes):

    {"$": "<iv as 32 hex chars><base64 ciphertext>"}

Modes:
- aes-256-gcm (default): authenticated. The 16-byte IV is the GCM nonce and
  the 16-byte tag is appended to the ciphertext before base64 encoding.
  Wrong key or tampering is always detected.
- aes-256-ctr: unauthenticated stream cipher, byte-compatible with the host
  runtime's credential encryption. Wrong key or tampering surfaces only as a
  JSON/UTF-8 decode failure.

A fresh random IV is drawn on every encrypt call. Key derivation is the
caller's job (see vault.derive_key).
"""

from __future__ import annotations

__all__ = [
    "decrypt_record",
    "encrypt_record",
]

import base64
import binascii
import json
import os
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from flowdrive.constants import CIPHER_IV_BYTES, CIPHER_IV_HEX_LENGTH, DEFAULT_CIPHER_MODE, ENVELOPE_FIELD
from flowdrive.exceptions import DecryptionError

_KEY_BYTES = 32


def _check_key(key: bytes) -> None:
    if len(key) != _KEY_BYTES:
        raise ValueError(f"Key must be {_KEY_BYTES} bytes, got {len(key)}")


def _ctr_apply(key: bytes, iv: bytes, data: bytes) -> bytes:
    # CTR encryption and decryption are the same keystream XOR
    transform = Cipher(algorithms.AES(key), modes.CTR(iv)).encryptor()
    return transform.update(data) + transform.finalize()


def encrypt_record(key: bytes, record: dict[str, Any], mode: str = DEFAULT_CIPHER_MODE) -> dict[str, str]:
    """Encrypt a JSON-serializable record into an envelope.

    Args:
        key: 32-byte key.
        record: JSON-serializable mapping.
        mode: "aes-256-gcm" or "aes-256-ctr".

    Returns:
        Envelope dict {"$": "<iv hex><base64 ciphertext>"}.

    Raises:
        ValueError: If the key length or mode is invalid.
    """
    _check_key(key)
    plaintext = json.dumps(record).encode("utf-8")
    iv = os.urandom(CIPHER_IV_BYTES)

    if mode == "aes-256-gcm":
        ciphertext = AESGCM(key).encrypt(iv, plaintext, None)
    elif mode == "aes-256-ctr":
        ciphertext = _ctr_apply(key, iv, plaintext)
    else:
        raise ValueError(f"Unsupported cipher mode: {mode}")

    return {ENVELOPE_FIELD: iv.hex() + base64.b64encode(ciphertext).decode("ascii")}


def decrypt_record(key: bytes, envelope: dict[str, Any], mode: str = DEFAULT_CIPHER_MODE) -> dict[str, Any]:
    """Decrypt an envelope back into the original record.

    Args:
        key: 32-byte key used for encryption.
        envelope: Envelope dict as produced by encrypt_record.
        mode: Cipher mode used for encryption.

    Returns:
        The decrypted record.

    Raises:
        DecryptionError: If the envelope is malformed, the key is wrong, or the
            ciphertext was tampered with.
        ValueError: If the key length or mode is invalid.
    """
    _check_key(key)
    if mode not in ("aes-256-gcm", "aes-256-ctr"):
        raise ValueError(f"Unsupported cipher mode: {mode}")

    encoded = envelope.get(ENVELOPE_FIELD) if isinstance(envelope, dict) else None
    if not isinstance(encoded, str) or len(encoded) <= CIPHER_IV_HEX_LENGTH:
        raise DecryptionError("Malformed cipher envelope")

    try:
        iv = bytes.fromhex(encoded[:CIPHER_IV_HEX_LENGTH])
        ciphertext = base64.b64decode(encoded[CIPHER_IV_HEX_LENGTH:], validate=True)
    except (ValueError, binascii.Error) as e:
        raise DecryptionError("Malformed cipher envelope") from e

    try:
        if mode == "aes-256-gcm":
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None)
        else:
            plaintext = _ctr_apply(key, iv, ciphertext)
    except InvalidTag as e:
        raise DecryptionError("Ciphertext failed authentication") from e

    try:
        record = json.loads(plaintext.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecryptionError("Decrypted payload is not valid JSON") from e

    if not isinstance(record, dict):
        raise DecryptionError("Decrypted payload is not a record")
    return record
