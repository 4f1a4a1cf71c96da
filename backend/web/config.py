"""
Configuration and startup security checks for Crítico.

Why: A deployment with a guessable signing secret hands out teacher
credentials to anyone. This module provides the settings readers used by the
web layer plus a single guard that enforces minimal production safety
constraints without burdening local development.

Permissions: The caller needs no special privileges. The functions read
environment variables and `ensure_secure_config_on_startup` raises
`SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import logging
import os
import secrets

from backend.identity_access.tokens import DEFAULT_TTL_SECONDS, MIN_SECRET_LENGTH

logger = logging.getLogger("critico.web")

_PLACEHOLDER_PREFIXES = ("CHANGE_ME", "DUMMY", "SECRET", "REPLACE")
_DEV_SECRET: str | None = None


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def get_environment() -> str:
    return (os.getenv("CRITICO_ENV", "dev") or "dev").strip().lower()


def _is_placeholder(secret: str) -> bool:
    return secret.upper().startswith(_PLACEHOLDER_PREFIXES)


def get_jwt_secret() -> str:
    """Return JWT_SECRET, or a per-process random secret in dev.

    Tokens signed with the generated secret do not survive a restart; that is
    acceptable for local work and never allowed in prod-like envs (see guard).
    """
    global _DEV_SECRET
    secret = (os.getenv("JWT_SECRET") or "").strip()
    if secret:
        return secret
    if _DEV_SECRET is None:
        logger.warning("JWT_SECRET unset; using an ephemeral development secret")
        _DEV_SECRET = secrets.token_urlsafe(32)
    return _DEV_SECRET


def get_jwt_ttl_seconds() -> int:
    raw = (os.getenv("JWT_TTL_SECONDS") or "").strip()
    if not raw:
        return DEFAULT_TTL_SECONDS
    try:
        ttl = int(raw)
    except ValueError:
        logger.warning("Invalid JWT_TTL_SECONDS=%r; using default", raw)
        return DEFAULT_TTL_SECONDS
    return ttl if ttl > 0 else DEFAULT_TTL_SECONDS


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - JWT_SECRET must be set, not a placeholder and at least 16 characters.
    - DATABASE_URL / DOCUMENT_STORE_URL must not explicitly disable TLS.
    - DOCUMENT_STORE=memory is not allowed (data would vanish on restart).
    """
    env = get_environment()
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    # 1) Signing secret
    secret = (os.getenv("JWT_SECRET") or "").strip()
    if not secret or _is_placeholder(secret):
        raise SystemExit("Refusing to start: JWT_SECRET is unset or a placeholder in production.")
    if len(secret) < MIN_SECRET_LENGTH:
        raise SystemExit(
            f"Refusing to start: JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters in production."
        )

    # 2) Postgres TLS: basic guard to avoid explicit disable
    for key in ("DATABASE_URL", "DOCUMENT_STORE_URL"):
        dsn = os.getenv(key, "")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )

    # 3) Durable storage
    backend = (os.getenv("DOCUMENT_STORE") or "memory").strip().lower()
    if backend == "memory":
        raise SystemExit("Refusing to start: DOCUMENT_STORE=memory is not allowed in production/staging.")
