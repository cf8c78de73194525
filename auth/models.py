"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, next to no logic). Mirrors the
approach in forum/models.py -- dataclasses own domain shape; stores, the
session manager and routes do the work.

Layer rule: no imports from api/ or forum/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    user = "user"
    admin = "admin"


@dataclass
class User:
    """A registered forum account.

    password_hash is the raw 32-byte Argon2id digest; salt is the per-user
    random salt it was derived with. Both are binary and never leave the
    auth package.

    totp_secret is the base32 text of the shared TOTP secret. None means the
    account is not 2FA-capable -- there is no shared fallback secret.
    """

    username: str
    password_hash: bytes
    salt: bytes
    role: str = Role.user.value
    totp_secret: str | None = None
    id: int | None = None
    created_at: str | None = None

    @property
    def second_factor_capable(self) -> bool:
        return bool(self.totp_secret)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin.value


@dataclass
class Session:
    """Server-side authentication context bound to one opaque token.

    second_factor_satisfied starts False at login and only a successful TOTP
    check on this same session sets it. created_at and last_seen are epoch
    seconds used by the store's absolute and idle expiry.
    """

    session_id: str
    user_id: int
    second_factor_satisfied: bool = False
    created_at: float = 0.0
    last_seen: float = 0.0


@dataclass(frozen=True)
class IdentityView:
    """What callers may learn about the acting user. No hash, salt or secret.

    second_factor_satisfied is already masked by capability: it is only True
    when the account has a TOTP secret AND this session passed the check.
    """

    id: int
    username: str
    role: str
    second_factor_capable: bool
    second_factor_satisfied: bool

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin.value
