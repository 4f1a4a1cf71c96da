"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend, pin a dev environment with a
fixed signing secret, and give every test a fresh in-memory document store so
tests never see each other's records.
"""
import os

import pytest

# Must be set before backend.web.main is imported (startup guard reads it).
os.environ["CRITICO_ENV"] = "dev"
os.environ["DOCUMENT_STORE"] = "memory"
os.environ["JWT_SECRET"] = "test-secret-0123456789abcdef"

TEST_JWT_SECRET = os.environ["JWT_SECRET"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def store():
    """The in-memory document store wired into the app for this test."""
    from backend.web import wiring

    return wiring.get_store()


@pytest.fixture(autouse=True)
def _fresh_wiring():
    from backend.identity_access.tokens import TokenService
    from backend.storage.memory import MemoryDocumentStore
    from backend.web import wiring

    wiring.set_store(MemoryDocumentStore())
    wiring.set_token_service(TokenService(TEST_JWT_SECRET))
    yield
    wiring.set_store(None)
    wiring.set_token_service(None)
