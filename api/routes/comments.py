"""
api/routes/comments.py -- Comment REST endpoints outside a single post.

Routes:
  GET    /api/comments?author=name       -- a registered user's comments, newest first (public)
  PUT    /api/comments/{id}              -- edit comment (owner, or admin with 2FA)
  DELETE /api/comments/{id}              -- delete comment (owner, or admin with 2FA)
  POST   /api/comments/{id}/interesting  -- toggle the caller's "interesting" flag (requires auth)

Anonymous comments have no owner, so only an admin with the second factor
can edit or delete them.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import CommentResponse, CommentUpdate, MessageResponse
from auth.dependencies import get_identity, try_get_identity
from auth.models import IdentityView
from forum.service import ForumService

router = APIRouter()


def _service(request: Request) -> ForumService:
    return request.app.state.forum


@router.get("/comments", response_model=list[CommentResponse])
def list_comments_by_author(request: Request, author: str) -> list[CommentResponse]:
    """Comments a registered user wrote. Anonymous comments never match, even by guest name."""
    return [CommentResponse.from_comment(c) for c in _service(request).store.list_comments_by_author(author)]


@router.put("/comments/{comment_id}", response_model=CommentResponse)
def update_comment(
    request: Request,
    comment_id: int,
    body: CommentUpdate,
    identity: Optional[IdentityView] = Depends(try_get_identity),
) -> CommentResponse:
    comment = _service(request).update_comment(identity, comment_id, body.text)
    return CommentResponse.from_comment(comment)


@router.delete("/comments/{comment_id}", response_model=MessageResponse)
def delete_comment(
    request: Request,
    comment_id: int,
    identity: Optional[IdentityView] = Depends(try_get_identity),
) -> MessageResponse:
    _service(request).delete_comment(identity, comment_id)
    return MessageResponse(message="Comment deleted.")


@router.post("/comments/{comment_id}/interesting", response_model=CommentResponse)
def toggle_interesting(
    request: Request,
    comment_id: int,
    identity: IdentityView = Depends(get_identity),
) -> CommentResponse:
    """Mark the comment interesting for the caller, or unmark it if already marked."""
    comment = _service(request).toggle_interesting(identity, comment_id)
    return CommentResponse.from_comment(comment)
