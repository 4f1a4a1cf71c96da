"""
Crítico API application: bearer authentication, security headers and routers.

Why:
    Every inbound request passes the bearer-token middleware before reaching a
    handler. The middleware resolves the caller once and exposes a minimal,
    read-only `request.state.user = {"sub", "role"}`; route modules apply the
    role/ownership decisions on top of it.
"""
from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.identity_access.tokens import InvalidCredential
from backend.web import config as _cfg
from backend.web.wiring import get_token_service


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via CRITICO_ENABLE_DOTENV (default true
      outside pytest).
    """
    # Under pytest, do not load .env – tests provide their own env.
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("CRITICO_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logger = logging.getLogger("critico.identity_access")

app = FastAPI(title="Crítico", description="Lectura crítica: cursos, progreso y métricas", version="0.1.0")

from backend.web.routes.auth import auth_router  # noqa: E402
from backend.web.routes.learning import learning_router  # noqa: E402
from backend.web.routes.progress import progress_router  # noqa: E402
from backend.web.routes.security import unauthenticated_response  # noqa: E402
from backend.web.routes.teaching import teaching_router  # noqa: E402

# --- Auth Middleware -------------------------------------------------------------

PUBLIC_PATHS = frozenset({"/health", "/api/auth/register", "/api/auth/login", "/docs", "/openapi.json"})


def _is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith("/docs/")


def _bearer_token(header_value: str | None) -> str | None:
    """Extract the token from `Authorization: Bearer <token>`; None if unparsable."""
    if not header_value:
        return None
    parts = header_value.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
        return None
    return parts[1]


@app.middleware("http")
async def auth_enforcement(request: Request, call_next):
    path = request.url.path
    if _is_public_path(path):
        return await call_next(request)

    token = _bearer_token(request.headers.get("authorization"))
    if token is None:
        return unauthenticated_response("Token requerido")
    try:
        principal = get_token_service().verify(token)
    except InvalidCredential as exc:
        # Never log the token itself.
        logger.warning("bearer token rejected: reason=%s path=%s", exc.code, path)
        return unauthenticated_response("Token inválido")

    request.state.user = principal.as_state()
    return await call_next(request)


# --- Security Headers Middleware -------------------------------------------------

@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


app.include_router(auth_router)
app.include_router(teaching_router)
app.include_router(learning_router)
app.include_router(progress_router)


@app.get("/health")
async def health_check():
    # Minimal health endpoint used by orchestrators and tests.
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
