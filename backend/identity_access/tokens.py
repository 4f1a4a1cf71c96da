"""
Bearer credential issuance and verification for the identity_access context.

Why: Keep cryptographic handling of access tokens outside the web adapter so
we can unit test it independently and inject the signing secret explicitly.

Security: Tokens are HS256-signed JWTs carrying `sub`, `role`, `iat`, `exp`.
Verification enforces the HS256 whitelist, the signature and the expiry.
Tokens are stateless: there is no server-side revocation list, so logout is
purely time-based.
"""
from __future__ import annotations

import time
from typing import Callable, Dict

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from .domain import Principal, Role, parse_role

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 8 * 3600
MIN_SECRET_LENGTH = 16


class InvalidCredential(Exception):
    """Raised when a bearer credential fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


class TokenService:
    """Issue and verify signed, time-bounded bearer credentials.

    Parameters
    ----------
    secret:
        HMAC signing secret. Passed in by the caller (configuration), never
        read from the environment here.
    ttl_seconds:
        Lifetime of issued tokens.
    clock:
        Returns the current UNIX time; injectable for deterministic tests.
    """

    def __init__(
        self,
        secret: str,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise ValueError("missing_secret")
        if ttl_seconds <= 0:
            raise ValueError("invalid_ttl")
        self._secret = secret
        self._ttl = int(ttl_seconds)
        self._clock = clock

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def issue(self, subject_id: str, role: Role | str) -> str:
        """Return a signed credential for `subject_id` with the given role."""
        if not subject_id:
            raise ValueError("missing_subject")
        now = int(self._clock())
        claims = {
            "sub": str(subject_id),
            "role": parse_role(role).value,
            "iat": now,
            "exp": now + self._ttl,
        }
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Principal:
        """Validate `token` and return the embedded principal.

        Raises
        ------
        InvalidCredential:
            `malformed` when the token or its payload cannot be parsed,
            `invalid_signature` when the signature does not match,
            `expired` when `exp` lies in the past.
        """
        if not token or not isinstance(token, str):
            raise InvalidCredential("malformed")
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                # Expiry is checked against the injected clock below.
                options={"verify_exp": False, "verify_iat": False, "verify_nbf": False, "verify_aud": False},
            )
        except JWTClaimsError as exc:
            raise InvalidCredential("malformed") from exc
        except JWTError as exc:
            raise InvalidCredential(_classify_jwt_error(exc)) from exc
        return self._principal_from_claims(claims)

    def _principal_from_claims(self, claims: Dict[str, object]) -> Principal:
        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise InvalidCredential("malformed")
        if exp <= self._clock():
            raise InvalidCredential("expired")
        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub:
            raise InvalidCredential("malformed")
        try:
            role = parse_role(claims.get("role"))
        except ValueError as exc:
            raise InvalidCredential("malformed") from exc
        return Principal(sub=sub, role=role)


def _classify_jwt_error(exc: JWTError) -> str:
    if isinstance(exc, ExpiredSignatureError):
        return "expired"
    if "signature" in str(exc).lower():
        return "invalid_signature"
    return "malformed"


__all__ = ["ALGORITHM", "DEFAULT_TTL_SECONDS", "MIN_SECRET_LENGTH", "InvalidCredential", "TokenService"]
