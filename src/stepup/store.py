"""Collaborator interfaces the engine consumes, plus in-memory adapters.

The engine never owns persistence: it talks to a ``UserRepository`` for the
user's enrolment flag, sealed secret and backup-code hashes, and to a
``StagingStore`` (a generic key/value table) for pending enrolments.
"""

from __future__ import annotations

import threading
from typing import Protocol

from stepup.errors import UserNotFound
from stepup.models import EnrollmentState


class StagingStore(Protocol):
    """Key/value store with per-key atomic writes."""

    def upsert(self, key: str, value: str) -> None: ...

    def get(self, key: str) -> str | None: ...

    def delete(self, key: str) -> None: ...

    def delete_if(self, key: str, expected: str) -> bool:
        """Delete ``key`` only if it still holds ``expected``; True if deleted."""
        ...

    def list_keys_with_prefix(self, prefix: str) -> list[str]: ...


class UserRepository(Protocol):
    def get_enrollment_state(self, owner_id: str) -> EnrollmentState: ...

    def get_sealed_secret(self, owner_id: str) -> str | None: ...

    def set_sealed_secret(self, owner_id: str, sealed: str | None) -> None: ...

    def set_enrollment_flag(self, owner_id: str, enabled: bool) -> None: ...

    def get_backup_code_hashes(self, owner_id: str) -> list[str]: ...

    def set_backup_code_hashes(self, owner_id: str, hashes: list[str]) -> None: ...


class MemoryStagingStore:
    """Thread-safe dict-backed StagingStore, one instance per owner of state."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def upsert(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_if(self, key: str, expected: str) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            del self._data[key]
            return True

    def list_keys_with_prefix(self, prefix: str) -> list[str]:
        with self._lock:
            return [k for k in self._data if k.startswith(prefix)]

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class _UserRecord:
    __slots__ = ("enabled", "sealed_secret", "backup_hashes")

    def __init__(self) -> None:
        self.enabled = False
        self.sealed_secret: str | None = None
        self.backup_hashes: list[str] = []


class MemoryUserRepository:
    """Dict-backed UserRepository, mainly for tests and local tooling."""

    def __init__(self, owner_ids: list[str] | None = None) -> None:
        self._users: dict[str, _UserRecord] = {}
        self._lock = threading.Lock()
        for owner_id in owner_ids or []:
            self.add_user(owner_id)

    def add_user(self, owner_id: str) -> None:
        with self._lock:
            self._users.setdefault(owner_id, _UserRecord())

    def _record(self, owner_id: str) -> _UserRecord:
        try:
            return self._users[owner_id]
        except KeyError:
            raise UserNotFound() from None

    def get_enrollment_state(self, owner_id: str) -> EnrollmentState:
        with self._lock:
            rec = self._record(owner_id)
            return EnrollmentState.ENABLED if rec.enabled else EnrollmentState.DISABLED

    def get_sealed_secret(self, owner_id: str) -> str | None:
        with self._lock:
            return self._record(owner_id).sealed_secret

    def set_sealed_secret(self, owner_id: str, sealed: str | None) -> None:
        with self._lock:
            self._record(owner_id).sealed_secret = sealed

    def set_enrollment_flag(self, owner_id: str, enabled: bool) -> None:
        with self._lock:
            self._record(owner_id).enabled = enabled

    def get_backup_code_hashes(self, owner_id: str) -> list[str]:
        with self._lock:
            return list(self._record(owner_id).backup_hashes)

    def set_backup_code_hashes(self, owner_id: str, hashes: list[str]) -> None:
        with self._lock:
            self._record(owner_id).backup_hashes = list(hashes)
