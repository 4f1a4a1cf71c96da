"""
Centralized document store selection.

Intent:
    Provide a single source of truth for which document store adapter the
    application uses, so the web layer, tools and tests do not drift.

Behavior:
    - DOCUMENT_STORE=memory (default) returns a fresh in-memory store.
    - DOCUMENT_STORE=postgres builds the psycopg adapter from
      DOCUMENT_STORE_URL/DATABASE_URL and ensures its schema.

Permissions:
    Pure configuration plus, for postgres, DDL on the `documents` table.
"""
from __future__ import annotations

import logging
import os

from .memory import MemoryDocumentStore
from .ports import DocumentStore

_log = logging.getLogger("critico.storage")

STORE_BACKEND_DEFAULT = "memory"
SUPPORTED_BACKENDS = ("memory", "postgres")


def get_store_backend() -> str:
    """Return the configured backend name (DOCUMENT_STORE env)."""
    value = (os.getenv("DOCUMENT_STORE") or STORE_BACKEND_DEFAULT).strip().lower()
    if value not in SUPPORTED_BACKENDS:
        raise ValueError(f"unsupported DOCUMENT_STORE: {value}")
    return value


def build_document_store() -> DocumentStore:
    backend = get_store_backend()
    if backend == "postgres":
        from .postgres import PostgresDocumentStore

        store = PostgresDocumentStore()
        store.ensure_schema()
        _log.info("using postgres document store")
        return store
    _log.info("using in-memory document store")
    return MemoryDocumentStore()


__all__ = ["STORE_BACKEND_DEFAULT", "SUPPORTED_BACKENDS", "build_document_store", "get_store_backend"]
