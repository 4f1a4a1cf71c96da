"""
Registration and login API: hashing, uniqueness, role vocabulary.
"""

from __future__ import annotations

import pytest

from backend.storage.ports import USERS
from utils.api import auth, client, register_and_login

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_register_stores_hash_and_hides_it(store):
    async with client() as c:
        r = await c.post(
            "/api/auth/register",
            json={"email": "Ana@Example.com", "password": "contrasena-segura", "role": "teacher", "name": "Ana"},
        )
    assert r.status_code == 201
    body = r.json()
    assert body["email"] == "ana@example.com"
    assert body["role"] == "teacher"
    assert body["_id"]
    assert "passwordHash" not in body
    stored = store.get(USERS, body["_id"])
    assert stored["passwordHash"] != "contrasena-segura"
    assert stored["passwordHash"].startswith("$pbkdf2-sha256$")


@pytest.mark.anyio
async def test_duplicate_email_is_409():
    async with client() as c:
        await register_and_login(c, email="dup@example.com", role="student")
        r = await c.post(
            "/api/auth/register",
            json={"email": "DUP@example.com", "password": "otra-contrasena", "role": "teacher"},
        )
    assert r.status_code == 409
    assert r.json()["detail"] == "email_taken"


@pytest.mark.anyio
async def test_unknown_role_is_400():
    async with client() as c:
        r = await c.post(
            "/api/auth/register",
            json={"email": "admin@example.com", "password": "contrasena-segura", "role": "admin"},
        )
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_role"


@pytest.mark.anyio
async def test_short_password_is_400():
    async with client() as c:
        r = await c.post("/api/auth/register", json={"email": "p@example.com", "password": "corta", "role": "student"})
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid_password"


@pytest.mark.anyio
async def test_login_returns_token_usable_for_me():
    async with client() as c:
        token, user = await register_and_login(c, email="login@example.com", role="student")
        me = await c.get("/api/auth/me", headers=auth(token))
    assert me.status_code == 200
    assert me.json()["_id"] == user["_id"]
    assert me.json()["role"] == "student"
    assert "passwordHash" not in me.json()


@pytest.mark.anyio
async def test_wrong_password_and_unknown_email_are_indistinguishable():
    async with client() as c:
        await register_and_login(c, email="known@example.com", role="teacher")
        wrong = await c.post("/api/auth/login", json={"email": "known@example.com", "password": "incorrecta!"})
        unknown = await c.post("/api/auth/login", json={"email": "ghost@example.com", "password": "incorrecta!"})
    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json()
