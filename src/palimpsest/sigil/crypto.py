"""
Record sealing - client-side encryption of record content and metadata.

The contract stores opaque bytes. Content is sealed before it leaves the
client with AES-256-GCM under a per-record data key derived (HKDF-SHA256)
from an owner-scoped master key and a random nonce. The owner address is
bound as associated data, so a sealed blob copied under another owner
fails to open.

Envelope layout: version (1 byte) | nonce (12 bytes) | ciphertext+tag
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

ENVELOPE_VERSION = 1
NONCE_LEN = 12
TAG_LEN = 16


class CryptoError(ValueError):
    pass


def derive_record_key(private_key: str, info: str = "palimpsest:records") -> bytes:
    """Derive the owner-scoped master key from a 0x-prefixed wallet key."""
    hex_key = private_key[2:] if private_key.startswith("0x") else private_key
    try:
        secret = bytes.fromhex(hex_key)
    except ValueError as exc:
        raise CryptoError("Private key is not hex.") from exc
    if len(secret) != 32:
        raise CryptoError("Private key must be 32 bytes.")
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=info.encode("utf-8"))
    return hkdf.derive(secret)


def hkdf_derive_data_key(master_key: bytes, nonce: bytes, info: str = "palimpsest:record") -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=nonce,
        info=info.encode("utf-8"),
    )
    return hkdf.derive(master_key)


def seal(plaintext: bytes, master_key: bytes, associated_data: bytes | None = None) -> bytes:
    if len(master_key) != 32:
        raise CryptoError("Master key must be 32 bytes.")
    nonce = os.urandom(NONCE_LEN)
    cipher = AESGCM(hkdf_derive_data_key(master_key, nonce))
    ciphertext = cipher.encrypt(nonce, plaintext, associated_data)
    return bytes([ENVELOPE_VERSION]) + nonce + ciphertext


def open_sealed(blob: bytes, master_key: bytes, associated_data: bytes | None = None) -> bytes:
    if len(blob) < 1 + NONCE_LEN + TAG_LEN:
        raise CryptoError("Sealed blob is truncated.")
    if blob[0] != ENVELOPE_VERSION:
        raise CryptoError(f"Unsupported envelope version: {blob[0]}")
    nonce = blob[1 : 1 + NONCE_LEN]
    cipher = AESGCM(hkdf_derive_data_key(master_key, nonce))
    try:
        return cipher.decrypt(nonce, blob[1 + NONCE_LEN :], associated_data)
    except InvalidTag as exc:
        raise CryptoError("Decryption failed: invalid tag or corrupted data") from exc


def owner_binding(owner: str) -> bytes:
    """Associated data binding a sealed blob to its owner."""
    return owner.lower().encode("ascii")
