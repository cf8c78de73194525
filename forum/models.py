"""
forum/models.py -- Domain dataclasses for posts and comments.

These are pure data containers. Business rules (capacity, authorization,
author resolution) live in forum/service.py; persistence in forum/store.py.

Comment authorship is a tagged variant rather than a nullable string:

  Named(username)          -- written by a logged-in user; that user owns it.
  Anonymous(display_name)  -- written without a session; display_name is the
                              optional free text the caller typed. Nobody
                              owns an anonymous comment (admins may still
                              moderate it).
"""

from dataclasses import dataclass, field
from typing import Optional, Union

ANONYMOUS_LABEL = "Anonymous"


@dataclass(frozen=True)
class Named:
    username: str


@dataclass(frozen=True)
class Anonymous:
    display_name: Optional[str] = None


Author = Union[Named, Anonymous]


def resolve_author(session_username: Optional[str], override: Optional[str]) -> Author:
    """Decide a new comment's author.

    A logged-in caller is always the author; any free-text override is
    ignored so one user cannot sign as another. An anonymous caller gets the
    stripped override as a display name, or plain Anonymous.
    """
    if session_username:
        return Named(session_username)
    name = (override or "").strip()
    return Anonymous(name or None)


@dataclass
class Post:
    """A forum post.

    max_comments None means unlimited; 0 means comments are closed.
    comment_count is computed by the store on read.
    id is None before the record is written to the database.
    """

    title: str
    text: str
    author: str
    max_comments: Optional[int] = None
    id: Optional[int] = None
    comment_count: int = 0
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""

    @property
    def owner(self) -> Optional[str]:
        return self.author

    @property
    def accepts_comments(self) -> bool:
        return self.max_comments is None or self.comment_count < self.max_comments


@dataclass
class Comment:
    post_id: int
    text: str
    author: Author = field(default_factory=Anonymous)
    id: Optional[int] = None
    interesting_users: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @property
    def owner(self) -> Optional[str]:
        return self.author.username if isinstance(self.author, Named) else None

    @property
    def display_author(self) -> str:
        if isinstance(self.author, Named):
            return self.author.username
        return self.author.display_name or ANONYMOUS_LABEL

    @property
    def interesting_count(self) -> int:
        return len(self.interesting_users)
