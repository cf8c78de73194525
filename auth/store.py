"""
auth/store.py -- SQLAlchemy Core persistence layer for forum accounts.

Pattern: Repository + Data Mapper (same as forum/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  password_hash and salt are stored as raw bytes (LargeBinary) and never
  serialized into any response model.

DB URL: Settings.auth_db_url (default sqlite:///forum_auth.db).

Layer rule: no imports from api/ or forum/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, LargeBinary, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from auth.models import User
from core.db import make_engine

logger = logging.getLogger("forum.auth.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("password_hash", LargeBinary(64), nullable=False),
    Column("salt", LargeBinary(64), nullable=False),
    Column("totp_secret", Text),  # base32; NULL = not 2FA-capable
    Column("role", String(30), nullable=False, server_default="user"),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for accounts and their credential material.

    Usage:
        store = UserStore("sqlite:///forum_auth.db")
        digest, salt = register_credential("secret")
        store.create_user(User(username="reza", password_hash=digest, salt=salt))
        user = store.get_by_username("reza")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url, _metadata)

    def count_users(self) -> int:
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(_users)).scalar() or 0

    def create_user(self, user: User) -> int:
        """Persist user and return the new row id.

        A duplicate username surfaces as sqlalchemy.exc.IntegrityError.
        Callers translate that into UsernameTaken; a pre-check would race with
        a concurrent registration of the same name.
        """
        values = {
            "username": user.username,
            "password_hash": user.password_hash,
            "salt": user.salt,
            "totp_secret": user.totp_secret,
            "role": user.role,
            "created_at": _now_iso(),
        }
        with self.engine.begin() as conn:
            user_id = conn.execute(_users.insert().values(**values)).inserted_primary_key[0]
        logger.info("Created user %s (id=%s, role=%s)", user.username, user_id, user.role)
        return user_id

    def get_by_username(self, username: str) -> User | None:
        """Exact, case-sensitive match."""
        return self._fetch_one(_users.c.username == username)

    def get_by_id(self, user_id: int) -> User | None:
        return self._fetch_one(_users.c.id == user_id)

    def _fetch_one(self, clause) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users).where(clause)).first()
        return None if row is None else _row_to_user(row)

    def close(self) -> None:
        self.engine.dispose()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=bytes(row.password_hash),
        salt=bytes(row.salt),
        totp_secret=row.totp_secret,
        role=row.role,
        created_at=row.created_at,
    )
