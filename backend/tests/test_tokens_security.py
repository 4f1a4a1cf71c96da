"""
Security tests for bearer credential issuance and verification.

We assert that the TokenService only accepts HS256 tokens signed with its own
secret, enforces expiry against the injected clock, and rejects payloads that
do not carry a known role.
"""

from __future__ import annotations

import pytest
from jose import jwt

from backend.identity_access.domain import Role
from backend.identity_access.tokens import InvalidCredential, TokenService

SECRET = "unit-test-secret-0123456789"


class _Clock:
    def __init__(self, now: float) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_issue_then_verify_returns_principal():
    svc = TokenService(SECRET)
    principal = svc.verify(svc.issue("user-1", Role.TEACHER))
    assert principal.sub == "user-1"
    assert principal.role is Role.TEACHER
    assert principal.as_state() == {"sub": "user-1", "role": "teacher"}


def test_issued_claims_carry_iat_and_configured_lifetime():
    clock = _Clock(1_700_000_000)
    svc = TokenService(SECRET, ttl_seconds=600, clock=clock)
    claims = jwt.get_unverified_claims(svc.issue("user-2", "student"))
    assert claims["iat"] == 1_700_000_000
    assert claims["exp"] == 1_700_000_600
    assert claims["role"] == "student"


def test_foreign_signature_is_rejected():
    token = TokenService("another-secret-abcdefghijk").issue("user-1", Role.TEACHER)
    with pytest.raises(InvalidCredential) as exc:
        TokenService(SECRET).verify(token)
    assert exc.value.code == "invalid_signature"


def test_expired_token_is_rejected():
    clock = _Clock(1_000_000)
    svc = TokenService(SECRET, ttl_seconds=60, clock=clock)
    token = svc.issue("user-1", Role.STUDENT)
    clock.now += 61
    with pytest.raises(InvalidCredential) as exc:
        svc.verify(token)
    assert exc.value.code == "expired"


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_malformed(token: str):
    with pytest.raises(InvalidCredential) as exc:
        TokenService(SECRET).verify(token)
    assert exc.value.code == "malformed"


def test_unknown_role_claim_is_malformed():
    import time

    token = jwt.encode({"sub": "u", "role": "admin", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
    with pytest.raises(InvalidCredential) as exc:
        TokenService(SECRET).verify(token)
    assert exc.value.code == "malformed"


def test_only_hs256_is_accepted():
    import time

    token = jwt.encode({"sub": "u", "role": "teacher", "exp": int(time.time()) + 60}, SECRET, algorithm="HS512")
    with pytest.raises(InvalidCredential):
        TokenService(SECRET).verify(token)


def test_missing_subject_or_secret_is_refused():
    with pytest.raises(ValueError):
        TokenService("")
    with pytest.raises(ValueError):
        TokenService(SECRET).issue("", Role.TEACHER)
    with pytest.raises(ValueError):
        TokenService(SECRET).issue("user-1", "admin")
