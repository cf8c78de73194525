"""
forum/service.py -- Post and comment operations with their access rules applied.

Route handlers call ForumService; ForumService applies auth.guard.authorize()
to every edit and delete, enforces comment capacity on creation, and talks to
ForumStore. Keeping the rule application here means no route re-derives
ownership or role checks.

Errors are raised as core.errors.ForumError subclasses and rendered by the
API's exception handler.
"""

import logging
from typing import Optional

from auth.guard import Decision, Operation, Outcome, authorize, enforce
from auth.models import IdentityView
from core.errors import CapacityExceeded, ResourceNotFound
from forum.models import Comment, Post, resolve_author
from forum.store import ForumStore

logger = logging.getLogger("forum.service")

DENY_CAPACITY = Decision(Outcome.deny, "capacity_exceeded")


def comment_capacity(post: Post) -> Decision:
    """Allow a new comment unless the post has a limit and has reached it."""
    if post.accepts_comments:
        return Decision(Outcome.allow)
    return DENY_CAPACITY


class ForumService:
    def __init__(self, store: ForumStore) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def require_post(self, post_id: int) -> Post:
        post = self.store.get_post(post_id)
        if post is None:
            raise ResourceNotFound("Post not found.")
        return post

    def require_comment(self, comment_id: int) -> Comment:
        comment = self.store.get_comment(comment_id)
        if comment is None:
            raise ResourceNotFound("Comment not found.")
        return comment

    def list_comments(self, post_id: int) -> list[Comment]:
        self.require_post(post_id)
        return self.store.list_comments(post_id)

    # ------------------------------------------------------------------
    # Posts
    # ------------------------------------------------------------------

    def create_post(self, identity: IdentityView, title: str, text: str, max_comments: Optional[int]) -> Post:
        post_id = self.store.create_post(
            Post(title=title, text=text, author=identity.username, max_comments=max_comments)
        )
        return self.require_post(post_id)

    def update_post(
        self,
        identity: Optional[IdentityView],
        post_id: int,
        title: str,
        text: str,
        max_comments: Optional[int],
    ) -> Post:
        post = self.require_post(post_id)
        self._check(identity, post, Operation.edit, "post")
        self.store.update_post(post_id, title, text, max_comments)
        return self.require_post(post_id)

    def delete_post(self, identity: Optional[IdentityView], post_id: int) -> None:
        post = self.require_post(post_id)
        self._check(identity, post, Operation.delete, "post")
        self.store.delete_post(post_id)
        logger.info("Post %s deleted by %s", post_id, identity.username)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def add_comment(
        self,
        identity: Optional[IdentityView],
        post_id: int,
        text: str,
        author_name: Optional[str] = None,
    ) -> Comment:
        """Add a comment; no login required.

        The author comes from the session when there is one, otherwise from
        the optional free-text name. Capacity is checked up front and again
        inside the insert transaction.
        """
        post = self.require_post(post_id)
        if not comment_capacity(post).allowed:
            raise CapacityExceeded()
        author = resolve_author(identity.username if identity else None, author_name)
        comment_id = self.store.add_comment(Comment(post_id=post_id, text=text, author=author), post.max_comments)
        return self.require_comment(comment_id)

    def update_comment(self, identity: Optional[IdentityView], comment_id: int, text: str) -> Comment:
        comment = self.require_comment(comment_id)
        self._check(identity, comment, Operation.edit, "comment")
        self.store.update_comment(comment_id, text)
        return self.require_comment(comment_id)

    def delete_comment(self, identity: Optional[IdentityView], comment_id: int) -> None:
        comment = self.require_comment(comment_id)
        self._check(identity, comment, Operation.delete, "comment")
        self.store.delete_comment(comment_id)
        logger.info("Comment %s deleted by %s", comment_id, identity.username)

    def toggle_interesting(self, identity: IdentityView, comment_id: int) -> Comment:
        self.require_comment(comment_id)
        self.store.toggle_interesting(comment_id, identity.username)
        return self.require_comment(comment_id)

    # ------------------------------------------------------------------
    # Guard
    # ------------------------------------------------------------------

    def _check(self, identity: Optional[IdentityView], resource, operation: Operation, kind: str) -> None:
        decision = authorize(identity, resource, operation)
        if not decision.allowed:
            logger.info(
                "%s %s %s denied for %s: %s",
                operation.value,
                kind,
                resource.id,
                identity.username if identity else "anonymous",
                decision.reason or decision.outcome.value,
            )
        enforce(decision, operation, kind)
