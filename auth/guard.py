"""
auth/guard.py -- The single authorization decision for post and comment mutations.

authorize() is a pure function of (actor, resource, operation). Every edit
and delete route calls it instead of re-deriving ownership and role rules:

  1. no identity                                   -> Deny(unauthenticated)
  2. not the author and not an admin               -> Deny(forbidden)
  3. admin whose session has not passed TOTP       -> RequireSecondFactor
  4. otherwise                                     -> Allow

Ownership or the admin role grants eligibility; an admin must additionally
have proven the second factor in the current session, even on their own
posts. Non-admin owners are never asked for a second factor.

Reads never go through the guard. Comment creation is gated by capacity
(forum/service.py), not by identity.

Layer rule: no imports from api/ or forum/. Import from core/ is allowed.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from auth.models import IdentityView
from core.errors import Forbidden, SecondFactorRequired, Unauthenticated


class Operation(str, Enum):
    edit = "edit"
    delete = "delete"


class Owned(Protocol):
    """Anything with an owning username. None means nobody owns it."""

    @property
    def owner(self) -> Optional[str]: ...


class Outcome(str, Enum):
    allow = "allow"
    deny = "deny"
    require_second_factor = "require_second_factor"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    reason: Optional[str] = None  # "unauthenticated" | "forbidden" for denials

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.allow


ALLOW = Decision(Outcome.allow)
REQUIRE_SECOND_FACTOR = Decision(Outcome.require_second_factor)
DENY_UNAUTHENTICATED = Decision(Outcome.deny, "unauthenticated")
DENY_FORBIDDEN = Decision(Outcome.deny, "forbidden")


def authorize(actor: Optional[IdentityView], resource: Owned, operation: Operation) -> Decision:
    if actor is None:
        return DENY_UNAUTHENTICATED
    is_owner = resource.owner is not None and resource.owner == actor.username
    if not is_owner and not actor.is_admin:
        return DENY_FORBIDDEN
    if actor.is_admin and not actor.second_factor_satisfied:
        return REQUIRE_SECOND_FACTOR
    return ALLOW


def enforce(decision: Decision, operation: Operation, kind: str = "resource") -> None:
    """Raise the domain error matching a non-Allow decision."""
    if decision.outcome is Outcome.allow:
        return
    if decision.outcome is Outcome.require_second_factor:
        raise SecondFactorRequired()
    if decision.reason == "unauthenticated":
        raise Unauthenticated()
    raise Forbidden(f"Not authorized to {operation.value} this {kind}.")
