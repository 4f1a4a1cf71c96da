"""
Identity domain constants and simple helpers.

Why:
- Centralize allowed roles to avoid drift between services and the web layer.
- Keep the role vocabulary closed: a credential carrying anything else is
  rejected at verification time.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"


# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(r.value for r in Role)


def parse_role(value: object) -> Role:
    """Map a raw role string to `Role`, raising ValueError("invalid_role")."""
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        raise ValueError("invalid_role")
    try:
        return Role(value.strip().lower())
    except ValueError as exc:
        raise ValueError("invalid_role") from exc


@dataclass(frozen=True)
class Principal:
    """Resolved caller identity attached to each authenticated request."""

    sub: str
    role: Role

    @property
    def is_teacher(self) -> bool:
        return self.role is Role.TEACHER

    def as_state(self) -> dict:
        return {"sub": self.sub, "role": self.role.value}


__all__ = ["ALLOWED_ROLES", "Principal", "Role", "parse_role"]
