"""Short-TTL staging of unconfirmed TOTP secrets.

Entries live in a caller-supplied StagingStore under ``2fa_pending:{owner}``
and are garbage-collected lazily: every operation first sweeps expired
entries. The sweep only removes the exact value it saw expire, so a
concurrent ``begin`` that rewrote the key is never deleted underneath it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from pydantic import ValidationError

from stepup import crypto
from stepup.auth import totp
from stepup.models import PendingEnrollment
from stepup.store import StagingStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "2fa_pending:"


def _key(owner_id: str) -> str:
    return f"{KEY_PREFIX}{owner_id}"


def _parse(value: str) -> PendingEnrollment | None:
    try:
        return PendingEnrollment.model_validate_json(value)
    except ValidationError:
        return None


class PendingEnrollmentStore:
    def __init__(
        self,
        store: StagingStore,
        *,
        ttl: int = 600,
        clock: Callable[[], float] = time.time,
        key: bytes | None = None,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self._clock = clock
        self._seal_key = key

    def _expired(self, entry: PendingEnrollment, now: float) -> bool:
        return entry.created_at < now - self.ttl

    def sweep(self) -> int:
        """Delete every expired or malformed pending entry. Returns the count removed."""
        removed = 0
        try:
            now = self._clock()
            for key in self.store.list_keys_with_prefix(KEY_PREFIX):
                value = self.store.get(key)
                if value is None:
                    continue
                entry = _parse(value)
                if entry is None or self._expired(entry, now):
                    if self.store.delete_if(key, value):
                        removed += 1
        except Exception:
            logger.warning("Failed to sweep pending 2FA secrets", exc_info=True)
        if removed:
            logger.debug("Swept %d expired pending 2FA entries", removed)
        return removed

    def begin(self, owner_id: str) -> PendingEnrollment:
        """Stage a fresh secret for ``owner_id``, replacing any earlier one."""
        self.sweep()
        secret = totp.generate_secret()
        entry = PendingEnrollment(
            owner_id=owner_id,
            secret=secret,
            sealed=crypto.seal(secret, self._seal_key).serialize(),
            created_at=self._clock(),
        )
        self.store.upsert(_key(owner_id), entry.model_dump_json())
        return entry

    def get(self, owner_id: str) -> PendingEnrollment | None:
        self.sweep()
        key = _key(owner_id)
        value = self.store.get(key)
        if value is None:
            return None
        entry = _parse(value)
        if entry is None:
            return None
        if self._expired(entry, self._clock()):
            self.store.delete_if(key, value)
            return None
        return entry

    def consume(self, owner_id: str) -> None:
        self.sweep()
        self.store.delete(_key(owner_id))
