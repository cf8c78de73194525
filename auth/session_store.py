"""
auth/session_store.py -- Pluggable storage for server-side sessions.

SessionManager only talks to the SessionStore interface (get, put,
mark_second_factor and delete by token), so the backing storage can be
swapped without touching callers:

  MemorySessionStore -- process-local dict behind a threading.Lock. Default.
                        Sessions are lost on restart and not shared between
                        worker processes.
  SqlSessionStore    -- SQLAlchemy Core table. Survives restarts and can be
                        shared by several workers pointing at the same DB.

Expiry is owned by the store. A session is expired when it is older than
absolute_ttl since login, or idle for longer than idle_ttl. get() treats an
expired session as missing and removes it; purge_expired() is called
periodically from the API lifespan to reclaim sessions nobody asks for again.

Both TTLs are in seconds. clock is injectable so tests can move time.

Layer rule: no imports from api/ or forum/.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import replace

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, or_
from sqlalchemy.engine import Engine

from auth.models import Session
from core.db import make_engine

logger = logging.getLogger("forum.auth.sessions")


class SessionStore(ABC):
    def __init__(self, absolute_ttl: int, idle_ttl: int, clock: Callable[[], float] = time.time) -> None:
        self.absolute_ttl = absolute_ttl
        self.idle_ttl = idle_ttl
        self.clock = clock

    def is_expired(self, session: Session, now: float | None = None) -> bool:
        now = self.clock() if now is None else now
        return now - session.created_at > self.absolute_ttl or now - session.last_seen > self.idle_ttl

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        """Return the live session for session_id and refresh its idle timer, or None."""

    @abstractmethod
    def put(self, session: Session) -> None:
        """Insert or replace session."""

    @abstractmethod
    def mark_second_factor(self, session_id: str) -> bool:
        """Set second_factor_satisfied on an existing session.

        Never creates a row. Returns False when the session is gone, so a
        logout that lands mid-upgrade stays a logout.
        """

    @abstractmethod
    def delete(self, session_id: str) -> None:
        """Remove session_id. Deleting a missing session is not an error."""

    @abstractmethod
    def purge_expired(self) -> int:
        """Delete every expired session. Returns the number removed."""

    def close(self) -> None:
        pass


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------


class MemorySessionStore(SessionStore):
    def __init__(self, absolute_ttl: int, idle_ttl: int, clock: Callable[[], float] = time.time) -> None:
        super().__init__(absolute_ttl, idle_ttl, clock)
        self._sessions: dict[str, Session] = {}
        # Route handlers run in a thread pool; every access goes through the lock.
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Session | None:
        now = self.clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            if self.is_expired(session, now):
                del self._sessions[session_id]
                return None
            session.last_seen = now
            # Hand out a copy so callers cannot mutate stored state without put().
            return replace(session)

    def put(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.session_id] = replace(session)

    def mark_second_factor(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.second_factor_satisfied = True
            return True

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def purge_expired(self) -> int:
        now = self.clock()
        with self._lock:
            expired = [sid for sid, s in self._sessions.items() if self.is_expired(s, now)]
            for sid in expired:
                del self._sessions[sid]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# ---------------------------------------------------------------------------
# SQL backend
# ---------------------------------------------------------------------------

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("session_id", String(128), primary_key=True),
    Column("user_id", Integer, nullable=False),
    Column("second_factor_satisfied", Integer, nullable=False, server_default="0"),
    Column("created_at", Float, nullable=False),
    Column("last_seen", Float, nullable=False),
)


class SqlSessionStore(SessionStore):
    """Sessions persisted in a SQL table via SQLAlchemy Core.

    Usage:
        store = SqlSessionStore("sqlite:///forum_sessions.db", absolute_ttl=3600, idle_ttl=1800)
        store.put(session)
        store.get(session.session_id)
        store.purge_expired()   # call periodically to trim old rows
        store.close()
    """

    def __init__(
        self,
        db_url: str,
        absolute_ttl: int,
        idle_ttl: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(absolute_ttl, idle_ttl, clock)
        self.engine: Engine = make_engine(db_url, _metadata)

    def get(self, session_id: str) -> Session | None:
        now = self.clock()
        with self.engine.connect() as conn:
            row = conn.execute(_sessions.select().where(_sessions.c.session_id == session_id)).fetchone()
            if row is None:
                return None
            session = _row_to_session(row)
            if self.is_expired(session, now):
                conn.execute(_sessions.delete().where(_sessions.c.session_id == session_id))
                conn.commit()
                return None
            conn.execute(_sessions.update().where(_sessions.c.session_id == session_id).values(last_seen=now))
            conn.commit()
        session.last_seen = now
        return session

    def put(self, session: Session) -> None:
        values = {
            "user_id": session.user_id,
            "second_factor_satisfied": 1 if session.second_factor_satisfied else 0,
            "created_at": session.created_at,
            "last_seen": session.last_seen,
        }
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.update().where(_sessions.c.session_id == session.session_id).values(**values)
            )
            if result.rowcount == 0:
                conn.execute(_sessions.insert().values(session_id=session.session_id, **values))

    def mark_second_factor(self, session_id: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                _sessions.update().where(_sessions.c.session_id == session_id).values(second_factor_satisfied=1)
            )
        return result.rowcount > 0

    def delete(self, session_id: str) -> None:
        with self.engine.connect() as conn:
            conn.execute(_sessions.delete().where(_sessions.c.session_id == session_id))
            conn.commit()

    def purge_expired(self) -> int:
        now = self.clock()
        with self.engine.connect() as conn:
            result = conn.execute(
                _sessions.delete().where(
                    or_(
                        _sessions.c.created_at < now - self.absolute_ttl,
                        _sessions.c.last_seen < now - self.idle_ttl,
                    )
                )
            )
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def _row_to_session(row) -> Session:
    return Session(
        session_id=row.session_id,
        user_id=row.user_id,
        second_factor_satisfied=bool(row.second_factor_satisfied),
        created_at=row.created_at,
        last_seen=row.last_seen,
    )
