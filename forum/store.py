"""
forum/store.py -- SQLAlchemy-backed persistence for posts, comments and interesting flags.

Uses SQLAlchemy Core (not ORM) so the dataclasses in forum/models.py remain
the authoritative domain representation. Swapping SQLite for PostgreSQL is a
connection string change.

Pattern: Repository + Data Mapper. ForumStore is the repository; the _row_to_*
functions are the mappers. Route handlers and the service never touch SQL.

Security: all queries use bound parameters. No f-strings in SQL.

Deletes cascade inside one transaction, children first:
  post    -> interesting flags of its comments -> its comments -> the post
  comment -> its interesting flags -> the comment

Usage:
    store = ForumStore("sqlite:///forum.db")
    post_id = store.create_post(Post(title="Hello", text="...", author="reza"))
    store.add_comment(Comment(post_id=post_id, text="hi", author=Anonymous()))
    store.list_posts()
    store.close()
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from core.db import make_engine
from core.errors import CapacityExceeded, DuplicateTitle
from forum.models import Anonymous, Comment, Named, Post

logger = logging.getLogger("forum.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_posts = Table(
    "posts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False, unique=True),
    Column("text", Text, nullable=False),
    Column("author", String(255), nullable=False),
    Column("max_comments", Integer),  # NULL = unlimited
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_comments = Table(
    "comments",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("post_id", Integer, nullable=False, index=True),
    Column("text", Text, nullable=False),
    Column("author", String(255)),  # registered username; NULL = anonymous
    Column("guest_name", String(255)),  # free-text display name for anonymous comments
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_flags = Table(
    "interesting_flags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("comment_id", Integer, nullable=False, index=True),
    Column("username", String(255), nullable=False),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("comment_id", "username", name="uq_flag_comment_user"),
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _comment_count_subquery():
    return (
        select(_comments.c.post_id, func.count(_comments.c.id).label("comment_count"))
        .group_by(_comments.c.post_id)
        .subquery()
    )


def _posts_query():
    counts = _comment_count_subquery()
    return select(_posts, func.coalesce(counts.c.comment_count, 0).label("comment_count")).select_from(
        _posts.outerjoin(counts, counts.c.post_id == _posts.c.id)
    )


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ForumStore:
    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url, metadata)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, post: Post) -> int:
        """Insert a new post and return its ID.

        Raises DuplicateTitle if another post already uses the title. The
        UNIQUE constraint is the source of truth; the IntegrityError from a
        concurrent insert is mapped to the same error.
        """
        now = _now_iso()
        try:
            with self.engine.begin() as conn:
                if self._title_taken(conn, post.title):
                    raise DuplicateTitle()
                result = conn.execute(
                    _posts.insert().values(
                        title=post.title,
                        text=post.text,
                        author=post.author,
                        max_comments=post.max_comments,
                        created_at=now,
                        updated_at=now,
                    )
                )
                post_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateTitle() from exc
        logger.info("Post %s created by %s", post_id, post.author)
        return post_id

    def update_post(self, post_id: int, title: str, text: str, max_comments: Optional[int]) -> bool:
        """Replace the editable fields of a post. Returns False if post_id does not exist.

        Raises DuplicateTitle if a *different* post already uses the title.
        """
        try:
            with self.engine.begin() as conn:
                if self._title_taken(conn, title, exclude_id=post_id):
                    raise DuplicateTitle()
                result = conn.execute(
                    _posts.update()
                    .where(_posts.c.id == post_id)
                    .values(title=title, text=text, max_comments=max_comments, updated_at=_now_iso())
                )
        except IntegrityError as exc:
            raise DuplicateTitle() from exc
        return result.rowcount > 0

    def get_post(self, post_id: int) -> Optional[Post]:
        """Fetch a single post with its comment count. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_posts_query().where(_posts.c.id == post_id)).fetchone()
        return _row_to_post(row) if row is not None else None

    def list_posts(self, author: Optional[str] = None) -> list[Post]:
        """Return posts newest first, optionally only those written by author."""
        query = _posts_query()
        if author is not None:
            query = query.where(_posts.c.author == author)
        query = query.order_by(_posts.c.created_at.desc(), _posts.c.id.desc())
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_post(r) for r in rows]

    def delete_post(self, post_id: int) -> bool:
        """Delete a post with its comments and their flags. Returns False if not found."""
        with self.engine.begin() as conn:
            comment_ids = select(_comments.c.id).where(_comments.c.post_id == post_id)
            conn.execute(_flags.delete().where(_flags.c.comment_id.in_(comment_ids)))
            conn.execute(_comments.delete().where(_comments.c.post_id == post_id))
            result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
        return result.rowcount > 0

    def _title_taken(self, conn: Connection, title: str, exclude_id: Optional[int] = None) -> bool:
        query = select(_posts.c.id).where(_posts.c.title == title)
        if exclude_id is not None:
            query = query.where(_posts.c.id != exclude_id)
        return conn.execute(query).first() is not None

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def count_comments(self, post_id: int) -> int:
        with self.engine.connect() as conn:
            return self._count_comments(conn, post_id)

    def add_comment(self, comment: Comment, max_comments: Optional[int] = None) -> int:
        """Insert a comment and return its ID.

        When max_comments is given, CapacityExceeded is raised if the post is
        full. The parent post row is written first: on SQLite that takes the
        database write lock before the count is read, elsewhere it takes a row
        lock, so two concurrent comments cannot both pass the check.
        """
        now = _now_iso()
        if isinstance(comment.author, Named):
            author, guest_name = comment.author.username, None
        else:
            author, guest_name = None, comment.author.display_name
        with self.engine.begin() as conn:
            if max_comments is not None:
                conn.execute(_posts.update().where(_posts.c.id == comment.post_id).values(id=_posts.c.id))
                if self._count_comments(conn, comment.post_id) >= max_comments:
                    raise CapacityExceeded()
            result = conn.execute(
                _comments.insert().values(
                    post_id=comment.post_id,
                    text=comment.text,
                    author=author,
                    guest_name=guest_name,
                    created_at=now,
                    updated_at=now,
                )
            )
            return result.inserted_primary_key[0]

    def get_comment(self, comment_id: int) -> Optional[Comment]:
        with self.engine.connect() as conn:
            row = conn.execute(_comments.select().where(_comments.c.id == comment_id)).fetchone()
            if row is None:
                return None
            flags = self._flags_for(conn, [comment_id])
        return _row_to_comment(row, flags.get(comment_id, []))

    def list_comments(self, post_id: int) -> list[Comment]:
        """Return a post's comments oldest first, each with its interesting flags."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _comments.select()
                .where(_comments.c.post_id == post_id)
                .order_by(_comments.c.created_at.asc(), _comments.c.id.asc())
            ).fetchall()
            flags = self._flags_for(conn, [r.id for r in rows])
        return [_row_to_comment(r, flags.get(r.id, [])) for r in rows]

    def list_comments_by_author(self, username: str) -> list[Comment]:
        """Return every comment written by a registered user, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _comments.select()
                .where(_comments.c.author == username)
                .order_by(_comments.c.created_at.desc(), _comments.c.id.desc())
            ).fetchall()
            flags = self._flags_for(conn, [r.id for r in rows])
        return [_row_to_comment(r, flags.get(r.id, [])) for r in rows]

    def update_comment(self, comment_id: int, text: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _comments.update().where(_comments.c.id == comment_id).values(text=text, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def delete_comment(self, comment_id: int) -> bool:
        """Delete a comment and its interesting flags. Returns False if not found."""
        with self.engine.begin() as conn:
            conn.execute(_flags.delete().where(_flags.c.comment_id == comment_id))
            result = conn.execute(_comments.delete().where(_comments.c.id == comment_id))
        return result.rowcount > 0

    def _count_comments(self, conn: Connection, post_id: int) -> int:
        result = conn.execute(
            select(func.count()).select_from(_comments).where(_comments.c.post_id == post_id)
        ).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Interesting flags
    # ------------------------------------------------------------------

    def toggle_interesting(self, comment_id: int, username: str) -> bool:
        """Flip username's interesting mark on a comment. Returns True if the mark is now set."""
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(_flags.c.id).where((_flags.c.comment_id == comment_id) & (_flags.c.username == username))
            ).first()
            if existing is not None:
                conn.execute(_flags.delete().where(_flags.c.id == existing.id))
                return False
            conn.execute(_flags.insert().values(comment_id=comment_id, username=username, created_at=_now_iso()))
            return True

    def _flags_for(self, conn: Connection, comment_ids: list[int]) -> dict[int, list[str]]:
        if not comment_ids:
            return {}
        rows = conn.execute(
            select(_flags.c.comment_id, _flags.c.username)
            .where(_flags.c.comment_id.in_(comment_ids))
            .order_by(_flags.c.id)
        ).fetchall()
        result: dict[int, list[str]] = {}
        for row in rows:
            result.setdefault(row.comment_id, []).append(row.username)
        return result

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        text=row.text,
        author=row.author,
        max_comments=row.max_comments,
        comment_count=row.comment_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_comment(row, interesting_users: list[str]) -> Comment:
    author = Named(row.author) if row.author else Anonymous(row.guest_name)
    return Comment(
        id=row.id,
        post_id=row.post_id,
        text=row.text,
        author=author,
        interesting_users=list(interesting_users),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
