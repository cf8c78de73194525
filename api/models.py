"""
API request and response models for the forum REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py and
forum/models.py, which own the internal domain representation. Route
handlers map between the two through the from_* factory methods.

Field names are snake_case in Python and camelCase on the wire (maxComments,
canDoTotp, ...). populate_by_name lets request bodies use either spelling.
"""

from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

from auth.models import IdentityView
from forum.models import Comment, Post

_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

# Usernames are trimmed the same way at sign-up and login. Passwords are
# taken byte for byte.
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]
Password = Annotated[str, Field(min_length=1, max_length=255)]


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str


# ---------------------------------------------------------------------------
# Sessions and users
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/sessions."""

    username: Username
    password: Password


class TotpRequest(BaseModel):
    """Request body for POST /api/login-totp.

    Length and digit checks happen in SessionManager so a malformed code
    gets the same invalid_second_factor answer as a wrong one.
    """

    code: str = Field(max_length=64)


class IdentityResponse(BaseModel):
    """The acting user as callers may see them. Never includes hash, salt or secret."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    username: str
    role: str
    can_do_totp: bool  # account has a TOTP secret
    is_totp: bool  # this session passed the TOTP check

    @classmethod
    def from_identity(cls, identity: IdentityView) -> "IdentityResponse":
        return cls(
            id=identity.id,
            username=identity.username,
            role=identity.role,
            can_do_totp=identity.second_factor_capable,
            is_totp=identity.second_factor_satisfied,
        )


class UserCreate(BaseModel):
    """Request body for POST /api/users."""

    username: Username
    password: Password


class UserCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    username: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


class PostWrite(BaseModel):
    """Request body for POST /api/posts and PUT /api/posts/{id}."""

    model_config = _WIRE

    title: str = Field(min_length=1, max_length=255)
    text: str = Field(min_length=1, max_length=20000)
    max_comments: Optional[int] = Field(default=None, ge=0)


class PostResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    title: str
    text: str
    author: str
    max_comments: Optional[int]
    comment_count: int
    created_at: str
    updated_at: str

    @classmethod
    def from_post(cls, post: Post) -> "PostResponse":
        return cls(
            id=post.id,
            title=post.title,
            text=post.text,
            author=post.author,
            max_comments=post.max_comments,
            comment_count=post.comment_count,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


class CommentCreate(BaseModel):
    """Request body for POST /api/posts/{id}/comments.

    author is an optional display name for anonymous callers. It is ignored
    when the request carries a session.
    """

    model_config = _WIRE

    text: str = Field(min_length=1, max_length=5000)
    author: Optional[str] = Field(default=None, max_length=255)


class CommentUpdate(BaseModel):
    model_config = _WIRE

    text: str = Field(min_length=1, max_length=5000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    post_id: int
    text: str
    author: str
    anonymous: bool
    interesting_count: int
    interesting_users: list[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_comment(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            text=comment.text,
            author=comment.display_author,
            anonymous=comment.owner is None,
            interesting_count=comment.interesting_count,
            interesting_users=comment.interesting_users,
            created_at=comment.created_at,
            updated_at=comment.updated_at,
        )
