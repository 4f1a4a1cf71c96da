"""
Role and ownership decision procedure shared by every route guard.

Why:
    Authorization rules must not be scattered across handlers as ad-hoc role
    string comparisons. Every guard funnels through `decide`, a pure predicate
    over {caller role, caller id, resolved owner id}, so tests can pin the
    rules without HTTP.

Order:
    The role check runs first and short-circuits. Ownership (and therefore
    any lookup needed to resolve the owner) is only consulted for callers
    whose role is admitted. A student probing a teacher dashboard is denied
    before the target id is even looked at.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .domain import Principal, Role

REASON_OK = "ok"
REASON_ROLE = "role_not_allowed"
REASON_OWNER = "not_owner"
REASON_NOT_MEMBER = "not_enrolled"

TEACHERS_ONLY = frozenset({Role.TEACHER})
ANY_ROLE = frozenset(Role)


@dataclass(frozen=True)
class AccessDecision:
    admitted: bool
    reason: str


class AccessDenied(PermissionError):
    """Raised by `require` when the decision procedure denies access."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


def decide(
    *,
    role: Role,
    caller_id: str,
    allowed_roles: Iterable[Role] = TEACHERS_ONLY,
    owner_id: Optional[str] = None,
    check_owner: bool = False,
) -> AccessDecision:
    """Return the admit/deny decision for a caller.

    Parameters:
        role: Caller role resolved from the credential.
        caller_id: Caller subject id.
        allowed_roles: Roles admitted by the route.
        owner_id: Owner id of the top-level Course of the target resource.
        check_owner: When True, the caller must equal `owner_id`. A missing
            owner (None) never matches.
    """
    if role not in frozenset(allowed_roles):
        return AccessDecision(False, REASON_ROLE)
    if check_owner and (not owner_id or owner_id != caller_id):
        return AccessDecision(False, REASON_OWNER)
    return AccessDecision(True, REASON_OK)


def require(
    principal: Principal,
    *,
    allowed_roles: Iterable[Role] = TEACHERS_ONLY,
    resolve_owner: Optional[Callable[[], Optional[str]]] = None,
) -> None:
    """Enforce `decide` for `principal`, raising AccessDenied on denial.

    `resolve_owner` is invoked only after the role check admitted the caller;
    it may raise LookupError for unknown resources, which callers map to 404.
    """
    allowed = frozenset(allowed_roles)
    decision = decide(role=principal.role, caller_id=principal.sub, allowed_roles=allowed)
    if decision.admitted and resolve_owner is not None:
        decision = decide(
            role=principal.role,
            caller_id=principal.sub,
            allowed_roles=allowed,
            owner_id=resolve_owner(),
            check_owner=True,
        )
    if not decision.admitted:
        raise AccessDenied(decision.reason)


def decide_reader(*, role: Role, caller_id: str, owner_id: Optional[str], is_member: bool) -> AccessDecision:
    """Read access to course content: the owning teacher or an enrolled student."""
    if role is Role.TEACHER:
        return decide(role=role, caller_id=caller_id, owner_id=owner_id, check_owner=True)
    if role is Role.STUDENT:
        return AccessDecision(True, REASON_OK) if is_member else AccessDecision(False, REASON_NOT_MEMBER)
    return AccessDecision(False, REASON_ROLE)


def require_reader(principal: Principal, *, owner_id: Optional[str], is_member: Callable[[], bool]) -> None:
    """Enforce `decide_reader`; membership is only looked up for students."""
    member = principal.role is Role.STUDENT and is_member()
    decision = decide_reader(role=principal.role, caller_id=principal.sub, owner_id=owner_id, is_member=member)
    if not decision.admitted:
        raise AccessDenied(decision.reason)


__all__ = [
    "ANY_ROLE",
    "AccessDecision",
    "AccessDenied",
    "REASON_NOT_MEMBER",
    "REASON_OK",
    "REASON_OWNER",
    "REASON_ROLE",
    "TEACHERS_ONLY",
    "decide",
    "decide_reader",
    "require",
    "require_reader",
]
