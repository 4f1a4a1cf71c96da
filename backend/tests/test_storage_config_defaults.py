"""
Document store selection: memory by default, postgres on request.
"""
from __future__ import annotations

import pytest

from backend.storage import config as storage_config
from backend.storage.memory import MemoryDocumentStore


def test_default_backend_is_memory(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DOCUMENT_STORE", raising=False)
    assert storage_config.get_store_backend() == "memory"
    assert isinstance(storage_config.build_document_store(), MemoryDocumentStore)


def test_unknown_backend_is_rejected(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DOCUMENT_STORE", "mongo")
    with pytest.raises(ValueError):
        storage_config.get_store_backend()


def test_postgres_backend_requires_a_dsn(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DOCUMENT_STORE", "Postgres")
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DOCUMENT_STORE_URL", raising=False)
    assert storage_config.get_store_backend() == "postgres"
    with pytest.raises(RuntimeError):
        storage_config.build_document_store()
