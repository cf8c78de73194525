"""
auth/sessions.py -- Session lifecycle: login, second-factor upgrade, identity, logout.

SessionManager is transport-agnostic. It works on opaque session ids and
delegates persistence to an injected SessionStore; the API layer is
responsible for carrying the id to and from the client (auth/tokens.py).

State machine for one session:

    login() ----------> [authenticated, second_factor_satisfied=False]
                              |
    upgrade_with_second_factor() succeeds
                              v
                        [authenticated, second_factor_satisfied=True]
                              |
    logout() / expiry         v
                          [destroyed]

A failed upgrade leaves the session exactly as it was. The flag never goes
back to False on a live session; a fresh login creates a fresh session.

Layer rule: no imports from api/ or forum/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from auth import passwords, totp
from auth.models import IdentityView, Session, User
from auth.session_store import SessionStore
from auth.store import UserStore
from auth.tokens import new_session_id
from core.errors import InvalidCredentials, InvalidSecondFactor, Unauthenticated

logger = logging.getLogger("forum.auth")


def identity_of(user: User, session: Session) -> IdentityView:
    """Build the public view of user as seen through session.

    The second-factor flag is only meaningful for capable accounts, so it is
    masked by capability here and nowhere else.
    """
    capable = user.second_factor_capable
    return IdentityView(
        id=user.id,
        username=user.username,
        role=user.role,
        second_factor_capable=capable,
        second_factor_satisfied=capable and session.second_factor_satisfied,
    )


class SessionManager:
    def __init__(
        self,
        users: UserStore,
        store: SessionStore,
        totp_period: int = totp.DEFAULT_PERIOD,
        totp_window: int = totp.DEFAULT_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.users = users
        self.store = store
        self.totp_period = totp_period
        self.totp_window = totp_window
        self.clock = clock

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    def login(self, username: str, password: str) -> Session:
        """Verify credentials and open a new session without the second factor.

        Unknown usernames still pay for a full key derivation, and both
        failure paths raise the same InvalidCredentials, so neither the
        response nor its timing says whether the account exists.
        """
        user = self.users.get_by_username(username)
        if user is None:
            passwords.burn_verification(password)
            logger.info("Login failed for unknown user")
            raise InvalidCredentials()
        if not passwords.verify_credential(password, user.salt, user.password_hash):
            logger.info("Login failed for user id=%s", user.id)
            raise InvalidCredentials()

        now = self.clock()
        session = Session(
            session_id=new_session_id(),
            user_id=user.id,
            second_factor_satisfied=False,
            created_at=now,
            last_seen=now,
        )
        self.store.put(session)
        logger.info("User id=%s logged in", user.id)
        return session

    def logout(self, session_id: str | None) -> None:
        """Destroy the session. Unknown or already-destroyed ids are ignored."""
        if session_id:
            self.store.delete(session_id)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, session_id: str | None) -> tuple[Session, User] | None:
        """Return the live session and its user, or None."""
        if not session_id:
            return None
        session = self.store.get(session_id)
        if session is None:
            return None
        user = self.users.get_by_id(session.user_id)
        if user is None:
            self.store.delete(session_id)
            return None
        return session, user

    def current_identity(self, session_id: str | None) -> IdentityView:
        resolved = self.resolve(session_id)
        if resolved is None:
            raise Unauthenticated()
        session, user = resolved
        return identity_of(user, session)

    # ------------------------------------------------------------------
    # Second factor
    # ------------------------------------------------------------------

    def upgrade_with_second_factor(self, session_id: str | None, code: str | None) -> Session:
        """Check a TOTP code against the session user's secret and mark the session.

        Malformed codes are rejected before the verifier runs. Accounts with
        no secret decode to an empty key, which never verifies.
        """
        resolved = self.resolve(session_id)
        if resolved is None:
            raise Unauthenticated()
        session, user = resolved

        if not totp.is_well_formed(code):
            logger.info("Malformed TOTP code for user id=%s", user.id)
            raise InvalidSecondFactor()
        key = totp.decode_secret(user.totp_secret)
        if not totp.verify(key, code, period=self.totp_period, window=self.totp_window, for_time=self.clock()):
            logger.warning("TOTP verification failed for user id=%s", user.id)
            raise InvalidSecondFactor()

        if not self.store.mark_second_factor(session.session_id):
            logger.info("Session for user id=%s ended during second factor check", user.id)
            raise Unauthenticated()
        session.second_factor_satisfied = True
        logger.info("User id=%s completed second factor", user.id)
        return session
