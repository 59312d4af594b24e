"""TOTP (Time-based One-Time Password) management for 2FA.

Uses pyotp for HOTP (RFC 4226) and TOTP (RFC 6238) with SHA-1 / 6 digits /
30 seconds, which is what every mainstream authenticator app assumes.
Secrets may be passed as raw bytes or base32 text; text goes through the
lenient decoder first so pasted secrets with spaces or lowercase still work.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from urllib.parse import quote

import pyotp
from pyotp.utils import strings_equal

from stepup.auth import base32

DIGITS = 6
SECRET_LENGTH = 32  # base32 chars, i.e. a 160-bit seed
_MAX_COUNTER = 2**64 - 1


def generate_secret() -> str:
    """Generate a new TOTP secret (base32-encoded, 32 chars / 20 bytes)."""
    return pyotp.random_base32(length=SECRET_LENGTH)


def _b32(secret: bytes | str) -> str:
    raw = base32.decode(secret) if isinstance(secret, str) else secret
    return base32.encode(raw)


def _moment(at: float | None) -> datetime:
    now = time.time() if at is None else at
    return datetime.fromtimestamp(int(now), timezone.utc)


def hotp(secret: bytes | str, counter: int) -> str:
    """Compute the 6-digit HOTP code for a secret and counter."""
    if not 0 <= counter <= _MAX_COUNTER:
        raise ValueError(f"HOTP counter out of range: {counter}")
    return pyotp.HOTP(_b32(secret), digits=DIGITS).at(counter)


def time_counter(time_step: int = 30, at: float | None = None) -> int:
    """Counter value for the time step containing ``at`` (default: now)."""
    now = time.time() if at is None else at
    return int(now // time_step)


def totp(secret: bytes | str, time_step: int = 30, at: float | None = None) -> str:
    """Get the TOTP code for a secret at ``at`` (default: now)."""
    return pyotp.TOTP(_b32(secret), digits=DIGITS, interval=time_step).at(_moment(at))


def is_well_formed(code: str) -> bool:
    """True if ``code`` is exactly six ASCII digits."""
    return len(code) == DIGITS and code.isascii() and code.isdigit()


def verify(
    secret: bytes | str,
    code: str,
    window: int = 1,
    time_step: int = 30,
    at: float | None = None,
) -> bool:
    """Verify a TOTP code against a secret (allows +-``window`` time steps)."""
    if not isinstance(code, str) or not is_well_formed(code):
        return False
    current = time_counter(time_step, at)
    if current < window:
        # pyotp cannot step below counter 0
        return any(
            strings_equal(code, hotp(secret, counter))
            for counter in range(0, current + window + 1)
        )
    otp = pyotp.TOTP(_b32(secret), digits=DIGITS, interval=time_step)
    return otp.verify(code, for_time=_moment(at), valid_window=window)


def provisioning_uri(
    secret: bytes | str,
    account: str | None = None,
    issuer: str = "Exposure",
    time_step: int = 30,
) -> str:
    """Get the otpauth:// URI for QR code enrollment (algorithm, digits and period always present)."""
    issuer_q = quote(issuer, safe="")
    account_q = quote(account or "user", safe="")
    return (
        f"otpauth://totp/{issuer_q}:{account_q}"
        f"?secret={_b32(secret)}&issuer={issuer_q}&algorithm=SHA1&digits={DIGITS}&period={time_step}"
    )
