"""Tests for the HOTP/TOTP engine."""

from __future__ import annotations

import re
from urllib.parse import parse_qs, urlparse

import pyotp
import pytest

from stepup.auth import base32, totp

RFC_SECRET = b"12345678901234567890"


@pytest.mark.parametrize(
    "counter,expected",
    list(enumerate(
        ["755224", "287082", "359152", "969429", "338314",
         "254676", "287922", "162583", "399871", "520489"]
    )),
)
def test_hotp_rfc4226_vectors(counter, expected):
    assert totp.hotp(RFC_SECRET, counter) == expected


@pytest.mark.parametrize(
    "at,expected",
    [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
        (20000000000, "353130"),
    ],
)
def test_totp_rfc6238_sha1_vectors(at, expected):
    # RFC 6238 publishes 8-digit codes; the last six digits are the 6-digit code
    assert totp.totp(RFC_SECRET, at=at) == expected


def test_hotp_is_deterministic():
    secret = totp.generate_secret()
    assert totp.hotp(secret, 42) == totp.hotp(secret, 42)


def test_hotp_counter_range():
    with pytest.raises(ValueError):
        totp.hotp(RFC_SECRET, -1)
    with pytest.raises(ValueError):
        totp.hotp(RFC_SECRET, 2**64)
    assert re.fullmatch(r"\d{6}", totp.hotp(RFC_SECRET, 2**64 - 1))


def test_generate_secret_shape():
    s1, s2 = totp.generate_secret(), totp.generate_secret()
    assert re.fullmatch(r"[A-Z2-7]{32}", s1)
    assert len(base32.decode(s1)) == 20
    assert s1 != s2


def test_bytes_and_base32_secrets_agree():
    b32 = totp.generate_secret()
    raw = base32.decode(b32)
    sloppy = " ".join(b32[i : i + 4] for i in range(0, len(b32), 4)).lower()
    for at in (0, 59, 1_700_000_000, 1_700_000_031):
        assert totp.totp(raw, at=at) == totp.totp(b32, at=at) == totp.totp(sloppy, at=at)
        assert totp.totp(b32, at=at) == pyotp.TOTP(b32).at(at)
    for counter in (0, 1, 1000):
        assert totp.hotp(raw, counter) == totp.hotp(b32, counter) == pyotp.HOTP(b32).at(counter)


def test_verify_uses_pyotp_window(monkeypatch):
    seen = {}

    class _RecordingTOTP:
        def __init__(self, secret, digits, interval):
            seen.update(secret=secret, interval=interval)

        def verify(self, code, for_time, valid_window):
            seen.update(code=code, for_time=for_time, valid_window=valid_window)
            return True

    monkeypatch.setattr(totp.pyotp, "TOTP", _RecordingTOTP)
    assert totp.verify(RFC_SECRET, "123456", window=2, time_step=60, at=1_700_000_000)
    assert seen["secret"] == base32.encode(RFC_SECRET)
    assert seen["interval"] == 60
    assert seen["valid_window"] == 2
    assert seen["for_time"].timestamp() == 1_700_000_000


def test_verify_accepts_current_code():
    secret = totp.generate_secret()
    assert totp.verify(secret, totp.totp(secret))


def test_verify_accepts_base32_secret():
    b32 = totp.generate_secret()
    assert totp.verify(b32, totp.totp(b32, at=1000), at=1000)


def test_verify_window():
    secret = totp.generate_secret()
    at = 1_700_000_010
    previous = totp.totp(secret, at=at - 30)
    following = totp.totp(secret, at=at + 30)
    assert totp.verify(secret, previous, at=at)
    assert totp.verify(secret, following, at=at)

    stale = totp.totp(secret, at=at - 90)
    if stale not in {previous, following, totp.totp(secret, at=at)}:
        assert not totp.verify(secret, stale, at=at)
        assert totp.verify(secret, stale, window=3, at=at)


def test_verify_rejects_code_from_other_secret():
    s1, s2 = totp.generate_secret(), totp.generate_secret()
    at = 1_700_000_000
    code = totp.totp(s1, at=at)
    valid_for_s2 = {totp.totp(s2, at=at + d) for d in (-30, 0, 30)}
    assert totp.verify(s2, code, at=at) == (code in valid_for_s2)


@pytest.mark.parametrize("bad", ["", "12345", "1234567", "12a456", " 12345", "１２３４５６", None, 123456])
def test_verify_rejects_malformed_input(bad, monkeypatch):
    calls = []
    monkeypatch.setattr(totp.pyotp, "TOTP", lambda *a, **kw: calls.append(a))
    monkeypatch.setattr(totp, "hotp", lambda *a: calls.append(a) or "000000")
    assert not totp.verify(RFC_SECRET, bad)
    assert calls == []


def test_verify_near_epoch_skips_negative_counter():
    assert totp.verify(RFC_SECRET, totp.hotp(RFC_SECRET, 0), at=0)


def test_provisioning_uri_format():
    uri = totp.provisioning_uri(RFC_SECRET, "alice@wallet.eth", issuer="Exposure")
    b32 = base32.encode(RFC_SECRET)
    assert uri == (
        f"otpauth://totp/Exposure:alice%40wallet.eth"
        f"?secret={b32}&issuer=Exposure&algorithm=SHA1&digits=6&period=30"
    )


def test_provisioning_uri_defaults_and_parsing():
    b32 = totp.generate_secret()
    uri = totp.provisioning_uri(b32, None, issuer="My Exchange")
    parsed = urlparse(uri)
    assert parsed.scheme == "otpauth"
    assert parsed.netloc == "totp"
    assert parsed.path == "/My%20Exchange:user"
    query = parse_qs(parsed.query)
    assert query["secret"] == [b32]
    assert query["issuer"] == ["My Exchange"]
    assert query["algorithm"] == ["SHA1"]
    assert query["digits"] == ["6"]
    assert query["period"] == ["30"]


def test_verify_rejects_zeros_unless_genuine():
    secret = totp.generate_secret()
    at = 1_700_000_000
    valid = {totp.totp(secret, at=at + d) for d in (-30, 0, 30)}
    assert totp.verify(secret, "000000", at=at) == ("000000" in valid)
