"""
Shared web security helpers for the route modules.

Contains the caller resolution and the single mapping from service exceptions
to HTTP responses. Keeping one implementation avoids the 401/403/404 contract
drifting between route modules.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from backend.identity_access.domain import Principal, parse_role
from backend.identity_access.guards import AccessDenied

logger = logging.getLogger("critico.web.security")

FORBIDDEN_MESSAGE = "Permisos insuficientes"

# ValueError codes that describe a conflict with existing state, not bad input.
_CONFLICT_CODES = frozenset({"email_taken"})


def _json_private(payload: Any, *, status_code: int = 200) -> JSONResponse:
    """Return a JSONResponse with cache disabled for shared caches and browsers.

    Rationale: Every API response is user- or role-scoped. To avoid accidental
    caching in proxies or browsers, respond with "private, no-store".
    """
    return JSONResponse(content=payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _private_error(payload: dict, *, status_code: int) -> JSONResponse:
    return _json_private(payload, status_code=status_code)


def unauthenticated_response(message: str = "Token requerido") -> JSONResponse:
    return _private_error({"error": "unauthenticated", "message": message}, status_code=401)


def forbidden_response() -> JSONResponse:
    return _private_error({"message": FORBIDDEN_MESSAGE}, status_code=403)


def current_principal(request: Request) -> Optional[Principal]:
    """Return the principal attached by the auth middleware, if any."""
    user = getattr(request.state, "user", None)
    if not isinstance(user, dict) or not user.get("sub"):
        return None
    try:
        return Principal(sub=str(user["sub"]), role=parse_role(user.get("role")))
    except ValueError:
        return None


def serialize(doc: dict) -> dict:
    """Public representation of a stored document: `id` is exposed as `_id`."""
    out = {k: v for k, v in doc.items() if k != "id"}
    return {"_id": doc.get("id"), **out}


def error_response(exc: Exception) -> JSONResponse:
    """Map a service exception to the API error contract.

    - AccessDenied/PermissionError -> 403 {"message": "Permisos insuficientes"}
    - LookupError -> 404 {"error": "not_found", "detail": code}
    - ValueError -> 409 for conflicts, else 400 {"error": "bad_request", "detail": code}
    """
    if isinstance(exc, PermissionError):
        reason = exc.reason if isinstance(exc, AccessDenied) else str(exc)
        logger.info("access denied: reason=%s", reason)
        return forbidden_response()
    if isinstance(exc, LookupError):
        return _private_error({"error": "not_found", "detail": str(exc).strip("'")}, status_code=404)
    if isinstance(exc, ValueError):
        code = str(exc)
        if code in _CONFLICT_CODES:
            return _private_error({"error": "conflict", "detail": code}, status_code=409)
        return _private_error({"error": "bad_request", "detail": code}, status_code=400)
    raise exc


__all__ = [
    "FORBIDDEN_MESSAGE",
    "current_principal",
    "error_response",
    "forbidden_response",
    "serialize",
    "unauthenticated_response",
]
