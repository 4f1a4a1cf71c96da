"""
Process-wide wiring of the document store and the token service.

Why:
    Routes and the auth middleware need the same store and TokenService
    instances. Both are built lazily from configuration on first use so that
    importing the app never touches the database, and tests can swap them via
    `set_store` / `set_token_service` for isolation.
"""
from __future__ import annotations

import logging
from typing import Optional

from backend.identity_access.tokens import TokenService
from backend.storage.config import build_document_store
from backend.storage.ports import DocumentStore

from .config import get_jwt_secret, get_jwt_ttl_seconds

logger = logging.getLogger("critico.web")

_STORE: Optional[DocumentStore] = None
_TOKENS: Optional[TokenService] = None


def get_store() -> DocumentStore:
    global _STORE
    if _STORE is None:
        _STORE = build_document_store()
    return _STORE


def set_store(store: Optional[DocumentStore]) -> None:
    """Allow tests to swap the document store (None resets to lazy build)."""
    global _STORE
    _STORE = store


def get_token_service() -> TokenService:
    global _TOKENS
    if _TOKENS is None:
        _TOKENS = TokenService(get_jwt_secret(), ttl_seconds=get_jwt_ttl_seconds())
    return _TOKENS


def set_token_service(tokens: Optional[TokenService]) -> None:
    """Allow tests to inject a TokenService (e.g., with a fixed clock)."""
    global _TOKENS
    _TOKENS = tokens


__all__ = ["get_store", "get_token_service", "set_store", "set_token_service"]
