"""
auth/passwords.py -- Salted, memory-hard password hashing.

Security design decisions:
  KDF: Argon2id via argon2-cffi's low-level API. hash_secret_raw() gives a
       fixed-length raw digest from an explicit salt, which is exactly the
       (digest, salt) pair the credential store keeps. Cost parameters come
       from Settings so deployments can tune them and tests can lower them.

  Salt: 16 bytes from the secrets module per registration. Two users with
       the same password get unrelated digests.

  Comparison: hmac.compare_digest, never ==. Its running time does not
       depend on how many leading bytes match.

  Failure: a derivation error (argon2.exceptions.HashingError, typically
       memory exhaustion) propagates. It is an internal error, not a wrong
       password, and must never be reported to the caller as one.

Layer rule: no imports from api/ or forum/. Import from core/ is allowed.
"""

from __future__ import annotations

import hmac
import secrets

from argon2.low_level import Type, hash_secret_raw

from core.config import get_settings

_settings = get_settings()

KEY_LENGTH = 32
SALT_LENGTH = 16


def derive_key(password: str, salt: bytes) -> bytes:
    """Derive a KEY_LENGTH-byte digest from password and salt with Argon2id."""
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=_settings.argon2_time_cost,
        memory_cost=_settings.argon2_memory_cost,
        parallelism=_settings.argon2_parallelism,
        hash_len=KEY_LENGTH,
        type=Type.ID,
    )


def register_credential(password: str) -> tuple[bytes, bytes]:
    """Return (digest, salt) for a new password, using a fresh random salt."""
    if not password:
        raise ValueError("Password must not be empty")
    salt = secrets.token_bytes(SALT_LENGTH)
    return derive_key(password, salt), salt


def verify_credential(password: str, salt: bytes, digest: bytes) -> bool:
    """Re-derive the digest for password and compare it to digest in constant time."""
    return hmac.compare_digest(derive_key(password, salt), digest)


# Timing equalization. Computed once at module load so the first login
# attempt is not measurably slower than subsequent ones. When the username
# does not exist the caller still runs a full derivation against this pair,
# so response time does not reveal whether the account exists.
_DUMMY_DIGEST, _DUMMY_SALT = register_credential(secrets.token_urlsafe(16))


def burn_verification(password: str) -> bool:
    """Run a full verification against the dummy credential. Always False."""
    verify_credential(password, _DUMMY_SALT, _DUMMY_DIGEST)
    return False
