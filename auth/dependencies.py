"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The session token is read from the "session" cookie (browser clients) or an
Authorization: Bearer header (API clients), verified by auth.tokens, and
resolved to a live session through the SessionManager on app.state.

try_get_identity() is the soft variant (returns None on failure).
get_identity() wraps it and raises Unauthenticated (HTTP 401).

Layer rule: no imports from api/ or forum/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import IdentityView
from auth.sessions import SessionManager, identity_of
from auth.tokens import decode_session_token, token_from_request
from core.errors import Unauthenticated


def session_id_from_request(request: Request) -> str | None:
    """Return the verified session id carried by the request, or None."""
    token = token_from_request(request)
    if not token:
        return None
    return decode_session_token(token)


def try_get_identity(request: Request) -> IdentityView | None:
    """Resolve the request's session to an IdentityView, or None.

    Never raises -- routes that allow anonymous callers (comment creation)
    use this directly.
    """
    manager: SessionManager = request.app.state.sessions
    resolved = manager.resolve(session_id_from_request(request))
    if resolved is None:
        return None
    session, user = resolved
    return identity_of(user, session)


def get_identity(request: Request) -> IdentityView:
    """Require an authenticated session. Raises Unauthenticated (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.post("/posts")
        def route(identity: IdentityView = Depends(get_identity)): ...
    """
    identity = try_get_identity(request)
    if identity is None:
        raise Unauthenticated()
    return identity
