"""
auth/totp.py -- RFC 6238 time-based one-time passcodes via pyotp.

Secrets are stored as base32 text and decoded to bytes before use. A missing,
empty or malformed secret decodes to b"" instead of raising, and verify()
rejects every code for an empty key. Accounts without a second factor
therefore fail closed rather than crash, and there is no shared default
secret to fall back on.

Code format (exactly six digits) is checked by is_well_formed() before
verify() runs; the session manager rejects malformed input without touching
the verifier.

Layer rule: no imports from api/ or forum/.
"""

from __future__ import annotations

import base64
import binascii
import time

import pyotp

DIGITS = 6
DEFAULT_PERIOD = 30
DEFAULT_WINDOW = 1


def decode_secret(secret: str | None) -> bytes:
    """Decode a base32 secret to bytes. Returns b"" for None, "" or invalid text."""
    if not secret:
        return b""
    text = secret.strip().replace(" ", "").upper()
    text += "=" * (-len(text) % 8)
    try:
        return base64.b32decode(text)
    except (binascii.Error, ValueError):
        return b""


def generate_secret() -> str:
    """Return a fresh random base32 secret for a new 2FA-capable account."""
    return pyotp.random_base32()


def provisioning_uri(secret: str, username: str, issuer: str) -> str:
    """otpauth:// URI for enrolling secret in an authenticator app."""
    return pyotp.TOTP(secret).provisioning_uri(name=username, issuer_name=issuer)


def _totp(key: bytes, period: int) -> pyotp.TOTP:
    return pyotp.TOTP(base64.b32encode(key).decode("ascii"), digits=DIGITS, interval=period)


def current_code(key: bytes, period: int = DEFAULT_PERIOD, for_time: float | None = None) -> str:
    """Return the six-digit code for key at for_time (default: now)."""
    if not key:
        raise ValueError("Cannot compute a code for an empty key")
    return _totp(key, period).at(for_time if for_time is not None else time.time())


def is_well_formed(code: str | None) -> bool:
    return code is not None and len(code) == DIGITS and code.isascii() and code.isdigit()


def verify(
    key: bytes,
    code: str,
    period: int = DEFAULT_PERIOD,
    window: int = DEFAULT_WINDOW,
    for_time: float | None = None,
) -> bool:
    """Return True if code matches key within +/- window time steps.

    pyotp compares in constant time. An empty key never matches.
    """
    if not key:
        return False
    return _totp(key, period).verify(code, for_time=for_time, valid_window=window)
