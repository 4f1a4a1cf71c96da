"""
Postgres-backed document store (JSONB).

Security:
- Connect with an application DSN; TLS must not be disabled in production
  (enforced by `backend.web.config.ensure_secure_config_on_startup`).

Design:
- Minimal psycopg3 usage; each call opens a short-lived connection.
- One `documents` table holds every collection; the body is the JSON record.
- Unique keys from `ports.UNIQUE_KEYS` are partial unique indexes, so the
  database rejects duplicate enrollments even under concurrent requests.
- Floor-bounded increments are a single UPDATE so a retried decrement can
  never push a counter below the floor.
"""
from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Mapping, Optional
from uuid import uuid4

import psycopg
from psycopg.errors import UniqueViolation
from psycopg.types.json import Jsonb

from .ports import UNIQUE_KEYS, DuplicateKeyError

_log = logging.getLogger("critico.storage")

_SCHEMA_SQL = [
    """
    create table if not exists documents (
        collection text not null,
        id text not null,
        body jsonb not null,
        created_at timestamptz not null default now(),
        primary key (collection, id)
    )
    """,
    "create index if not exists documents_body_gin on documents using gin (body jsonb_path_ops)",
]


def _unique_index_sql(collection: str, fields: tuple[str, ...]) -> str:
    cols = ", ".join(f"(body->>'{f}')" for f in fields)
    return (
        f"create unique index if not exists documents_{collection}_{'_'.join(fields)}_key "
        f"on documents ({cols}) where collection = '{collection}'"
    )


def _dsn() -> str:
    for var in ("DOCUMENT_STORE_URL", "DATABASE_URL"):
        dsn = (os.getenv(var) or "").strip()
        if dsn:
            return dsn
    raise RuntimeError("Database DSN unavailable for PostgresDocumentStore")


class PostgresDocumentStore:
    def __init__(self, dsn: Optional[str] = None) -> None:
        """Initialize the adapter. Does not open a connection eagerly."""
        self._dsn = dsn or _dsn()

    def _connect(self):
        return psycopg.connect(self._dsn)

    def ensure_schema(self) -> None:
        """Create the documents table and indexes (idempotent)."""
        statements = list(_SCHEMA_SQL)
        statements += [_unique_index_sql(c, f) for c, f in UNIQUE_KEYS.items()]
        with self._connect() as conn:
            with conn.cursor() as cur:
                for sql in statements:
                    cur.execute(sql)
        _log.info("document schema ensured (%d statements)", len(statements))

    def insert(self, collection: str, doc: Mapping[str, Any]) -> dict:
        body = dict(doc)
        body["id"] = str(body.get("id") or uuid4())
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        "insert into documents (collection, id, body) values (%s, %s, %s)",
                        (collection, body["id"], Jsonb(body)),
                    )
        except UniqueViolation as exc:
            raise DuplicateKeyError(collection, UNIQUE_KEYS.get(collection, ("id",))) from exc
        return body

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select body from documents where collection = %s and id = %s",
                    (collection, str(doc_id)),
                )
                row = cur.fetchone()
        return row[0] if row else None

    def find(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select body from documents where collection = %s and body @> %s order by created_at, id",
                    (collection, Jsonb(dict(filters or {}))),
                )
                rows = cur.fetchall()
        return [r[0] for r in rows]

    def find_one(self, collection: str, filters: Mapping[str, Any]) -> Optional[dict]:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select body from documents where collection = %s and body @> %s order by created_at, id limit 1",
                    (collection, Jsonb(dict(filters))),
                )
                row = cur.fetchone()
        return row[0] if row else None

    def find_in(self, collection: str, field: str, values: Iterable[str]) -> list[dict]:
        wanted = [str(v) for v in values]
        if not wanted:
            return []
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select body from documents where collection = %s and body->>%s = any(%s::text[]) order by created_at, id",
                    (collection, field, wanted),
                )
                rows = cur.fetchall()
        return [r[0] for r in rows]

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[dict]:
        patch = dict(changes)
        patch.pop("id", None)
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "update documents set body = body || %s where collection = %s and id = %s returning body",
                    (Jsonb(patch), collection, str(doc_id)),
                )
                row = cur.fetchone()
        return row[0] if row else None

    def increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: int,
        *,
        floor: Optional[int] = None,
    ) -> Optional[dict]:
        if floor is None:
            sql = (
                "update documents set body = jsonb_set(body, %s::text[], "
                "to_jsonb(coalesce((body->>%s)::numeric, 0) + %s)) "
                "where collection = %s and id = %s returning body"
            )
            params: tuple = ([field], field, int(delta), collection, str(doc_id))
        else:
            sql = (
                "update documents set body = jsonb_set(body, %s::text[], "
                "to_jsonb(greatest(coalesce((body->>%s)::numeric, 0) + %s, %s))) "
                "where collection = %s and id = %s returning body"
            )
            params = ([field], field, int(delta), int(floor), collection, str(doc_id))
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, params)
                row = cur.fetchone()
        return row[0] if row else None

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "delete from documents where collection = %s and id = %s",
                    (collection, str(doc_id)),
                )
                return cur.rowcount > 0

    def delete_many(self, collection: str, filters: Mapping[str, Any]) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "delete from documents where collection = %s and body @> %s",
                    (collection, Jsonb(dict(filters))),
                )
                return max(cur.rowcount, 0)

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "select count(*) from documents where collection = %s and body @> %s",
                    (collection, Jsonb(dict(filters or {}))),
                )
                row = cur.fetchone()
        return int(row[0]) if row else 0


__all__ = ["PostgresDocumentStore"]
