"""RFC 4648 base32 without padding, for representing TOTP secrets as ASCII.

Decoding is lenient: case-insensitive, trailing padding stripped, and
characters outside the alphabet skipped.
"""

from __future__ import annotations

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
_INDEX = {ch: i for i, ch in enumerate(ALPHABET)}


def encode(data: bytes) -> str:
    """Encode bytes to unpadded base32."""
    out: list[str] = []
    value = 0
    bits = 0
    for byte in data:
        value = ((value << 8) | byte) & 0xFFFF
        bits += 8
        while bits >= 5:
            bits -= 5
            out.append(ALPHABET[(value >> bits) & 0x1F])
    if bits:
        out.append(ALPHABET[(value << (5 - bits)) & 0x1F])
    return "".join(out)


def decode(text: str) -> bytes:
    """Decode base32, ignoring case, trailing ``=`` and unknown characters."""
    out = bytearray()
    value = 0
    bits = 0
    for ch in text.rstrip("=").upper():
        idx = _INDEX.get(ch)
        if idx is None:
            continue
        value = ((value << 5) | idx) & 0xFFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            out.append((value >> bits) & 0xFF)
    return bytes(out)
