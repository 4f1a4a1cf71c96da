"""
In-memory document store (development and tests).

Why: Tests and offline local work must not require Postgres. The adapter
mirrors the Postgres adapter semantics closely: copies on read/write, unique
keys enforced on insert, floor-bounded increments in a single step.
"""
from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, Mapping, Optional
from uuid import uuid4

from .ports import COLLECTIONS, UNIQUE_KEYS, DuplicateKeyError


def _matches(doc: Mapping[str, Any], filters: Optional[Mapping[str, Any]]) -> bool:
    if not filters:
        return True
    return all(doc.get(k) == v for k, v in filters.items())


class MemoryDocumentStore:
    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, dict]] = {name: {} for name in COLLECTIONS}

    def _bucket(self, collection: str) -> Dict[str, dict]:
        return self._data.setdefault(collection, {})

    def _check_unique(self, collection: str, doc: Mapping[str, Any]) -> None:
        fields = UNIQUE_KEYS.get(collection)
        if not fields:
            return
        key = tuple(doc.get(f) for f in fields)
        for existing in self._bucket(collection).values():
            if tuple(existing.get(f) for f in fields) == key:
                raise DuplicateKeyError(collection, fields)

    def insert(self, collection: str, doc: Mapping[str, Any]) -> dict:
        stored = copy.deepcopy(dict(doc))
        stored["id"] = str(stored.get("id") or uuid4())
        self._check_unique(collection, stored)
        self._bucket(collection)[stored["id"]] = stored
        return copy.deepcopy(stored)

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        doc = self._bucket(collection).get(str(doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def find(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> list[dict]:
        return [copy.deepcopy(d) for d in self._bucket(collection).values() if _matches(d, filters)]

    def find_one(self, collection: str, filters: Mapping[str, Any]) -> Optional[dict]:
        for d in self._bucket(collection).values():
            if _matches(d, filters):
                return copy.deepcopy(d)
        return None

    def find_in(self, collection: str, field: str, values: Iterable[str]) -> list[dict]:
        wanted = set(values)
        if not wanted:
            return []
        return [copy.deepcopy(d) for d in self._bucket(collection).values() if d.get(field) in wanted]

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> Optional[dict]:
        doc = self._bucket(collection).get(str(doc_id))
        if doc is None:
            return None
        doc.update(copy.deepcopy(dict(changes)))
        doc["id"] = str(doc_id)
        return copy.deepcopy(doc)

    def increment(
        self,
        collection: str,
        doc_id: str,
        field: str,
        delta: int,
        *,
        floor: Optional[int] = None,
    ) -> Optional[dict]:
        doc = self._bucket(collection).get(str(doc_id))
        if doc is None:
            return None
        value = (doc.get(field) or 0) + delta
        if floor is not None:
            value = max(value, floor)
        doc[field] = value
        return copy.deepcopy(doc)

    def delete(self, collection: str, doc_id: str) -> bool:
        return self._bucket(collection).pop(str(doc_id), None) is not None

    def delete_many(self, collection: str, filters: Mapping[str, Any]) -> int:
        bucket = self._bucket(collection)
        doomed = [k for k, d in bucket.items() if _matches(d, filters)]
        for k in doomed:
            bucket.pop(k, None)
        return len(doomed)

    def count(self, collection: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        return sum(1 for d in self._bucket(collection).values() if _matches(d, filters))


__all__ = ["MemoryDocumentStore"]
