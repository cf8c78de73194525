"""
core/db.py -- SQLAlchemy engine construction shared by every store.

UserStore, ForumStore and SqlSessionStore each own an engine for their own
URL (they may point at different databases) but build it the same way here.

SQLite specifics:
  check_same_thread=False  -- FastAPI runs sync handlers in a thread pool, so
                              a pooled connection is used from many threads.
  PRAGMA journal_mode=WAL  -- readers do not block the writer. Set on every
                              new connection; PRAGMAs are per-connection.

Layer rule: core/ is the kernel. No imports from api/, auth/ or forum/.
"""

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine


def _sqlite_pragmas(dbapi_conn, connection_record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def make_engine(db_url: str, metadata: MetaData) -> Engine:
    """Create an engine for db_url and make sure metadata's tables exist."""
    is_sqlite = db_url.startswith("sqlite")
    engine = create_engine(db_url, connect_args={"check_same_thread": False} if is_sqlite else {})
    if is_sqlite:
        event.listen(engine, "connect", _sqlite_pragmas)
    metadata.create_all(engine)
    return engine
