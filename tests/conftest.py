"""Shared fixtures: deterministic clock, test settings and a wired service."""

from __future__ import annotations

import pytest

from stepup.audit import MemoryAuditSink
from stepup.auth import totp
from stepup.config import Settings
from stepup.lifecycle import TwoFactorService
from stepup.store import MemoryStagingStore, MemoryUserRepository

T0 = 1_700_000_000.0


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        stepup_master_key="test-master-key",
        stepup_action_token_secret="test-action-token-secret",
    )


@pytest.fixture
def users():
    return MemoryUserRepository(["u1", "u2"])


@pytest.fixture
def staging():
    return MemoryStagingStore()


@pytest.fixture
def audit():
    return MemoryAuditSink()


@pytest.fixture
def service(users, staging, audit, test_settings, clock):
    return TwoFactorService(users, staging, audit, settings=test_settings, clock=clock)


@pytest.fixture
def wrong_code():
    """Return a 6-digit code that is not valid for ``secret`` at ``at`` (window ±1)."""

    def _wrong(secret, at: float) -> str:
        valid = {totp.totp(secret, at=at + offset) for offset in (-30, 0, 30)}
        for digit in "9876543210":
            candidate = digit * 6
            if candidate not in valid:
                return candidate
        raise AssertionError("unreachable")

    return _wrong
