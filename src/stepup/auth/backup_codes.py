"""Backup (recovery) codes: generation and one-way hashing for storage."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Iterable

# No visually ambiguous characters (0/O, 1/I)
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 8


def generate(count: int = 8) -> list[str]:
    """Generate ``count`` independent backup codes."""
    return ["".join(secrets.choice(ALPHABET) for _ in range(CODE_LENGTH)) for _ in range(count)]


def hash_code(code: str) -> str:
    """SHA-256 hex digest of the uppercased code."""
    return hashlib.sha256(code.strip().upper().encode()).hexdigest()


def verify(code: str, stored_hash: str) -> bool:
    return hmac.compare_digest(hash_code(code), stored_hash)


def match(code: str, hashes: Iterable[str]) -> str | None:
    """Return the stored hash that ``code`` redeems, if any.

    Every candidate is compared so the time taken does not depend on
    which position (if any) matched.
    """
    digest = hash_code(code)
    found = None
    for stored in hashes:
        if hmac.compare_digest(digest, stored):
            found = stored
    return found
