"""
Account registration and login.

Why: The web adapter only maps HTTP to these calls. Credential checks and the
e-mail uniqueness rule live here so they can be tested without FastAPI.

Security: Passwords are stored as passlib hashes; failed logins log the
reason without the submitted e-mail or password.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from backend.storage.ports import USERS, DocumentStore, DuplicateKeyError

from .domain import Principal, parse_role
from .passwords import hash_password, verify_password
from .tokens import TokenService

logger = logging.getLogger("critico.identity_access")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 8


def public_user(user: dict) -> dict:
    """User view without the password hash."""
    return {k: v for k, v in user.items() if k != "passwordHash"}


def _normalize_email(value: object) -> str:
    if not isinstance(value, str):
        raise ValueError("invalid_email")
    email = value.strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValueError("invalid_email")
    return email


@dataclass
class AccountsService:
    store: DocumentStore
    tokens: TokenService

    def register(self, *, email: str, password: str, role: str, name: Optional[str] = None) -> dict:
        """Create a user; raises ValueError("email_taken") on duplicates."""
        normalized = _normalize_email(email)
        parsed_role = parse_role(role)
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValueError("invalid_password")
        if self.store.find_one(USERS, {"email": normalized}) is not None:
            raise ValueError("email_taken")
        try:
            user = self.store.insert(
                USERS,
                {
                    "email": normalized,
                    "role": parsed_role.value,
                    "name": (name or "").strip(),
                    "passwordHash": hash_password(password),
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                },
            )
        except DuplicateKeyError as exc:
            raise ValueError("email_taken") from exc
        logger.info("user registered: user=%s role=%s", user["id"], parsed_role.value)
        return public_user(user)

    def login(self, *, email: str, password: str) -> dict:
        """Return `{token, user}`; raises PermissionError("invalid_credentials")."""
        try:
            normalized = _normalize_email(email)
        except ValueError:
            normalized = ""
        user = self.store.find_one(USERS, {"email": normalized}) if normalized else None
        if user is None or not verify_password(password, user.get("passwordHash") or ""):
            logger.warning("login rejected: reason=invalid_credentials")
            raise PermissionError("invalid_credentials")
        token = self.tokens.issue(user["id"], parse_role(user.get("role")))
        return {"token": token, "user": public_user(user)}

    def whoami(self, principal: Principal) -> dict:
        user = self.store.get(USERS, principal.sub)
        if user is None:
            return {"id": principal.sub, "role": principal.role.value}
        return public_user(user)


__all__ = ["AccountsService", "MIN_PASSWORD_LENGTH", "public_user"]
