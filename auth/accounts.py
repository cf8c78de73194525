"""
auth/accounts.py -- Account creation on top of the credential store.

register_user() is the only way accounts are created: POST /api/users uses it
for self-registration (role "user", no second factor) and the bootstrap CLI
uses it for admins (role "admin" with a freshly generated TOTP secret).

Layer rule: no imports from api/ or forum/. Import from core/ is allowed.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from auth import totp
from auth.models import Role, User
from auth.passwords import register_credential
from auth.store import UserStore
from core.errors import UsernameTaken


def register_user(
    users: UserStore,
    username: str,
    password: str,
    role: Role = Role.user,
    totp_secret: str | None = None,
) -> User:
    """Hash password, store the account and return it with its new id.

    Raises UsernameTaken if the username exists (including when a concurrent
    request created it first). The key derivation runs before the insert, so
    callers on an event loop should run this in a worker thread.
    """
    digest, salt = register_credential(password)
    user = User(username=username, password_hash=digest, salt=salt, role=role.value, totp_secret=totp_secret)
    try:
        user.id = users.create_user(user)
    except IntegrityError as exc:
        raise UsernameTaken() from exc
    return user


def register_admin(users: UserStore, username: str, password: str) -> User:
    """Create an admin with its own random TOTP secret. Admins are always 2FA-capable."""
    return register_user(users, username, password, role=Role.admin, totp_secret=totp.generate_secret())
