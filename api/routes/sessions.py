"""
api/routes/sessions.py -- Login, second-factor upgrade, identity, logout and sign-up.

Routes:
  POST   /api/sessions          -- password login; sets the session cookie
  POST   /api/login-totp        -- verify a TOTP code; upgrades the current session
  GET    /api/sessions/current  -- identity of the current session (requires auth)
  DELETE /api/sessions/current  -- destroy the current session; clears the cookie
  POST   /api/users             -- self-registration (role "user", no 2FA)

Security:
  POST /sessions and POST /login-totp are rate-limited per IP (api.limiter).
  SessionManager.login() equalizes timing for unknown usernames -- use it,
  never inline get_by_username() + verify_credential().
  Cache-Control: no-store on every response that sets or reveals a session.
  A successful login destroys the session the request already carried, so an
  old cookie never outlives a re-login. A failed login leaves it alone.

The handlers that derive keys are plain def so FastAPI runs them in its
threadpool instead of blocking the event loop for the length of an Argon2 run.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import LOGIN_LIMIT, TOTP_LIMIT, limiter
from api.models import (
    IdentityResponse,
    LoginRequest,
    MessageResponse,
    TotpRequest,
    UserCreate,
    UserCreatedResponse,
)
from auth.accounts import register_user
from auth.dependencies import get_identity, session_id_from_request
from auth.models import IdentityView
from auth.sessions import SessionManager
from auth.tokens import clear_session_cookie, encode_session_token, set_session_cookie
from core.config import get_settings
from core.errors import RegistrationDisabled

logger = logging.getLogger("forum.api")

# Auth policy:
# - POST   /api/sessions:          public -- login must be unauthenticated
# - POST   /api/login-totp:        requires a session (checked by SessionManager)
# - GET    /api/sessions/current:  requires auth (get_identity)
# - DELETE /api/sessions/current:  public -- destroying nothing is a no-op
# - POST   /api/users:             public while SELF_REGISTRATION_ENABLED
router = APIRouter()


# @router goes outermost so the route registers the rate-limited wrapper.
@router.post("/sessions", response_model=IdentityResponse)
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, response: Response, body: LoginRequest) -> IdentityResponse:
    """Authenticate with username and password and open a new session.

    Returns the same invalid_credentials error for a wrong username and a
    wrong password. The new session never has the second factor; admins
    follow up with POST /api/login-totp.
    """
    manager: SessionManager = request.app.state.sessions
    session = manager.login(body.username, body.password)
    manager.logout(session_id_from_request(request))
    identity = manager.current_identity(session.session_id)

    set_session_cookie(response, encode_session_token(session.session_id))
    response.headers["Cache-Control"] = "no-store"
    return IdentityResponse.from_identity(identity)


@router.post("/login-totp", response_model=IdentityResponse)
@limiter.limit(TOTP_LIMIT)
def login_totp(request: Request, response: Response, body: TotpRequest) -> IdentityResponse:
    """Prove the second factor for the current session.

    On success the session (not the cookie) is upgraded, so the same cookie
    keeps working and now carries admin edit/delete rights. On failure the
    session is left unchanged.
    """
    manager: SessionManager = request.app.state.sessions
    session = manager.upgrade_with_second_factor(session_id_from_request(request), body.code)
    identity = manager.current_identity(session.session_id)
    response.headers["Cache-Control"] = "no-store"
    return IdentityResponse.from_identity(identity)


@router.get("/sessions/current", response_model=IdentityResponse)
async def current(response: Response, identity: IdentityView = Depends(get_identity)) -> IdentityResponse:
    """Return the identity view of the current session."""
    response.headers["Cache-Control"] = "no-store"
    return IdentityResponse.from_identity(identity)


@router.delete("/sessions/current", response_model=MessageResponse)
def logout(request: Request, response: Response) -> MessageResponse:
    """Destroy the current session, if any, and clear the cookie."""
    manager: SessionManager = request.app.state.sessions
    manager.logout(session_id_from_request(request))
    clear_session_cookie(response)
    return MessageResponse(message="Logout successful")


@router.post("/users", response_model=UserCreatedResponse, status_code=201)
@limiter.limit(LOGIN_LIMIT)
def create_user(request: Request, body: UserCreate) -> UserCreatedResponse:
    """Create a regular account. Admins are only ever created from the CLI."""
    if not get_settings().self_registration_enabled:
        raise RegistrationDisabled()
    user = register_user(request.app.state.user_store, body.username, body.password)
    logger.info("User id=%s registered", user.id)
    return UserCreatedResponse(id=user.id, username=user.username)
