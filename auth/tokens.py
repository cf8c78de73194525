"""
auth/tokens.py -- Session token issuing and the session cookie.

Security design decisions:
  Session id: secrets.token_urlsafe(32) -- 256 bits of entropy, opaque, and
       the only key into the session store.

  Transport token: the session id is wrapped in a python-jose HS256 JWT
       signed with SECRET_KEY and carrying an exp claim equal to the session's
       absolute lifetime. A forged or tampered cookie is rejected before the
       store is consulted, and a stolen store dump alone cannot be replayed
       as cookies. The JWT carries no identity or role -- those always come
       from the server-side session and user records, so logout and TOTP
       upgrades take effect immediately.

  SECRET_KEY: sourced from core.config.get_settings(), which validates it at
       startup.

Layer rule: no imports from api/ or forum/. Import from core/ is allowed.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import Request
from jose import JWTError, jwt

from core.config import get_settings

_settings = get_settings()

_ALGORITHM = "HS256"


def new_session_id() -> str:
    return secrets.token_urlsafe(32)


def encode_session_token(session_id: str, expire_seconds: int = 0) -> str:
    """Sign session_id into a JWT that expires with the session."""
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    payload = {
        "sid": session_id,
        "exp": datetime.now(timezone.utc) + timedelta(seconds=duration),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> str | None:
    """Verify token and return the session id, or None on any failure.

    Returning None (rather than raising) keeps callers simple: any invalid
    token is treated as "no session".
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) and sid else None


def token_from_request(request: Request) -> str | None:
    """Return the raw session token from an Authorization: Bearer header or the cookie.

    An explicit header wins over the cookie so API clients are never
    silently acting through a browser session left in the same jar.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:] or None
    return request.cookies.get(_settings.session_cookie_name) or None


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POSTs (CSRF mitigation).
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the session's absolute lifetime.
    """
    response.set_cookie(
        _settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=_settings.session_expire_seconds,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(_settings.session_cookie_name)
