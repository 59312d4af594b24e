"""AES-256-GCM sealing of TOTP secrets for storage on the user record."""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from stepup.config import settings
from stepup.errors import DecryptionFailed
from stepup.models import SealedSecret

_NONCE_SIZE = 12  # 96-bit nonce for AES-GCM
_TAG_SIZE = 16


def derive_key(master: str) -> bytes:
    """Derive a 32-byte AES key from an operator-supplied master string."""
    return hashlib.sha256(master.encode()).digest()


def _get_key() -> bytes:
    raw = settings.stepup_master_key
    if not raw:
        raise RuntimeError("STEPUP_MASTER_KEY not set")
    return derive_key(raw)


def seal(plaintext: str, key: bytes | None = None) -> SealedSecret:
    """Encrypt a secret under a fresh random nonce."""
    key = key or _get_key()
    nonce = os.urandom(_NONCE_SIZE)
    ct = AESGCM(key).encrypt(nonce, plaintext.encode(), None)
    return SealedSecret(nonce=nonce, tag=ct[-_TAG_SIZE:], ciphertext=ct[:-_TAG_SIZE])


def unseal(sealed: SealedSecret | str, key: bytes | None = None) -> str:
    """Decrypt a sealed secret. Raises DecryptionFailed on any tampering or key mismatch."""
    key = key or _get_key()
    if isinstance(sealed, str):
        sealed = SealedSecret.parse(sealed)
    if len(sealed.nonce) != _NONCE_SIZE or len(sealed.tag) != _TAG_SIZE:
        raise DecryptionFailed("Invalid sealed secret format")
    try:
        plaintext = AESGCM(key).decrypt(sealed.nonce, sealed.ciphertext + sealed.tag, None)
    except InvalidTag as e:
        raise DecryptionFailed() from e
    return plaintext.decode()
