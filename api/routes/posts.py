"""
api/routes/posts.py -- Post REST endpoints.

Routes:
  GET    /api/posts                  -- list posts, newest first (public)
  GET    /api/posts/{id}             -- post detail (public)
  POST   /api/posts                  -- create post (requires auth)
  PUT    /api/posts/{id}             -- edit post (owner, or admin with 2FA)
  DELETE /api/posts/{id}             -- delete post and its comments (owner, or admin with 2FA)
  GET    /api/posts/{id}/comments    -- list comments, oldest first (public)
  POST   /api/posts/{id}/comments    -- add comment (public; capacity-limited)

Edit and delete take the soft identity (try_get_identity) and leave the
decision to ForumService, so an anonymous caller gets the guard's
unauthenticated answer only after the post is known to exist.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request

from api.models import CommentCreate, CommentResponse, MessageResponse, PostResponse, PostWrite
from auth.dependencies import get_identity, try_get_identity
from auth.models import IdentityView
from forum.service import ForumService

# Auth policy:
# - GET    /api/posts, /api/posts/{id}, /api/posts/{id}/comments: public
# - POST   /api/posts:                 requires auth (get_identity)
# - PUT    /api/posts/{id}:            guard in ForumService (owner / admin + 2FA)
# - DELETE /api/posts/{id}:            guard in ForumService (owner / admin + 2FA)
# - POST   /api/posts/{id}/comments:   public; session author wins over "author"
router = APIRouter()


def _service(request: Request) -> ForumService:
    return request.app.state.forum


@router.get("/posts", response_model=list[PostResponse])
def list_posts(request: Request, author: Optional[str] = None) -> list[PostResponse]:
    """List posts, newest first. ?author= restricts to one user's posts."""
    return [PostResponse.from_post(p) for p in _service(request).store.list_posts(author=author)]


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(request: Request, post_id: int) -> PostResponse:
    return PostResponse.from_post(_service(request).require_post(post_id))


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostWrite,
    identity: IdentityView = Depends(get_identity),
) -> PostResponse:
    """Create a post owned by the caller. Titles are unique (409 on clash)."""
    post = _service(request).create_post(identity, body.title, body.text, body.max_comments)
    return PostResponse.from_post(post)


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostWrite,
    identity: Optional[IdentityView] = Depends(try_get_identity),
) -> PostResponse:
    post = _service(request).update_post(identity, post_id, body.title, body.text, body.max_comments)
    return PostResponse.from_post(post)


@router.delete("/posts/{post_id}", response_model=MessageResponse)
def delete_post(
    request: Request,
    post_id: int,
    identity: Optional[IdentityView] = Depends(try_get_identity),
) -> MessageResponse:
    """Delete a post together with its comments and their interesting flags."""
    _service(request).delete_post(identity, post_id)
    return MessageResponse(message="Post deleted.")


# ---------------------------------------------------------------------------
# Comments on a post
# ---------------------------------------------------------------------------


@router.get("/posts/{post_id}/comments", response_model=list[CommentResponse])
def list_comments(request: Request, post_id: int) -> list[CommentResponse]:
    return [CommentResponse.from_comment(c) for c in _service(request).list_comments(post_id)]


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
def add_comment(
    request: Request,
    post_id: int,
    body: CommentCreate,
    identity: Optional[IdentityView] = Depends(try_get_identity),
) -> CommentResponse:
    """Add a comment. Anonymous callers may pass a display name in "author".

    Returns 409 capacity_exceeded once the post's maxComments is reached.
    """
    comment = _service(request).add_comment(identity, post_id, body.text, body.author)
    return CommentResponse.from_comment(comment)
