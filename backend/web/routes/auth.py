"""
Authentication routes: registration, login and caller introspection.

Why:
    Keep credential issuance in a dedicated router. Registration and login
    are the only public API paths; `/api/auth/me` goes through the bearer
    middleware like every other route.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from backend.identity_access.accounts import AccountsService
from backend.web.wiring import get_store, get_token_service

from .security import _json_private, _private_error, current_principal, error_response, serialize, unauthenticated_response

auth_router = APIRouter(tags=["Auth"])
logger = logging.getLogger("critico.web.auth")


class RegisterPayload(BaseModel):
    email: str = Field(..., min_length=3, max_length=254)
    password: str = Field(..., min_length=1, max_length=256)
    role: str
    name: Optional[str] = Field(default=None, max_length=120)


class LoginPayload(BaseModel):
    email: str
    password: str


def _accounts() -> AccountsService:
    return AccountsService(get_store(), get_token_service())


@auth_router.post("/api/auth/register")
async def register(payload: RegisterPayload):
    """Create an account.

    Behavior:
        - 201 with the user (no password hash)
        - 400 on an unknown role or invalid e-mail/password
        - 409 when the e-mail is already registered
    """
    try:
        user = _accounts().register(
            email=payload.email, password=payload.password, role=payload.role, name=payload.name
        )
    except ValueError as exc:
        return error_response(exc)
    return _json_private(serialize(user), status_code=201)


@auth_router.post("/api/auth/login")
async def login(payload: LoginPayload):
    """Exchange e-mail and password for a bearer token.

    Behavior:
        - 200 with `{token, user}`
        - 401 on unknown e-mail or wrong password (indistinguishable)
    """
    try:
        result = _accounts().login(email=payload.email, password=payload.password)
    except PermissionError:
        return _private_error({"error": "unauthenticated", "message": "Credenciales inválidas"}, status_code=401)
    return _json_private({"token": result["token"], "user": serialize(result["user"])}, status_code=200)


@auth_router.get("/api/auth/me")
async def me(request: Request):
    principal = current_principal(request)
    if principal is None:
        return unauthenticated_response()
    return _json_private(serialize(_accounts().whoami(principal)), status_code=200)
