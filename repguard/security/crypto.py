# repguard/security/crypto.py
"""
Stateless symmetric encrypt/decrypt helper (AES-256-GCM).

Envelope format: ``v1:<nonce hex>:<ciphertext+tag hex>``

Every call to :func:`encrypt` draws a fresh 96-bit nonce from the OS CSPRNG;
the caller can never supply one, so a nonce is never reused under a key.
:func:`decrypt` raises instead of returning unverified plaintext.
"""
from __future__ import annotations
import hashlib
import os
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from repguard.core.errors import AuthenticationError, MalformedEnvelopeError

VERSION = "v1"
NONCE_SIZE = 12
TAG_SIZE = 16
_RAW_KEY_SIZES = (16, 24, 32)

Key = Union[str, bytes]


def _key_bytes(key: Key) -> bytes:
    if isinstance(key, bytes):
        if len(key) in _RAW_KEY_SIZES:
            return key
        return hashlib.sha256(key).digest()
    if isinstance(key, str) and key:
        return hashlib.sha256(key.encode("utf-8")).digest()
    raise ValueError("encryption key must be a non-empty str or bytes")


def encrypt(plaintext: str, key: Key) -> str:
    nonce = os.urandom(NONCE_SIZE)
    ct = AESGCM(_key_bytes(key)).encrypt(nonce, plaintext.encode("utf-8"), None)
    return f"{VERSION}:{nonce.hex()}:{ct.hex()}"


def _parse(envelope: str) -> tuple[bytes, bytes]:
    if not isinstance(envelope, str):
        raise MalformedEnvelopeError("envelope must be a string")
    parts = envelope.split(":")
    if len(parts) != 3 or parts[0] != VERSION:
        raise MalformedEnvelopeError("unrecognized envelope layout")
    try:
        nonce = bytes.fromhex(parts[1])
        ct = bytes.fromhex(parts[2])
    except ValueError as e:
        raise MalformedEnvelopeError("envelope is not valid hex") from e
    if len(nonce) != NONCE_SIZE:
        raise MalformedEnvelopeError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")
    if len(ct) < TAG_SIZE:
        raise MalformedEnvelopeError("ciphertext shorter than authentication tag")
    return nonce, ct


def decrypt(envelope: str, key: Key) -> str:
    nonce, ct = _parse(envelope)
    try:
        data = AESGCM(_key_bytes(key)).decrypt(nonce, ct, None)
    except InvalidTag as e:
        raise AuthenticationError("authentication tag did not verify") from e
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedEnvelopeError("decrypted payload is not valid UTF-8") from e
