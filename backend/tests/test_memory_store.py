"""
In-memory document store semantics shared with the Postgres adapter.
"""

from __future__ import annotations

import pytest

from backend.storage.memory import MemoryDocumentStore
from backend.storage.ports import COURSES, ENROLLMENTS, USERS, DuplicateKeyError


def test_returned_documents_are_copies():
    store = MemoryDocumentStore()
    doc = store.insert(COURSES, {"title": "A", "tags": ["x"]})
    doc["tags"].append("mutated")
    fetched = store.get(COURSES, doc["id"])
    fetched["title"] = "changed"
    assert store.get(COURSES, doc["id"]) == {"id": doc["id"], "title": "A", "tags": ["x"]}


def test_unique_keys_are_enforced():
    store = MemoryDocumentStore()
    store.insert(USERS, {"email": "a@example.com"})
    with pytest.raises(DuplicateKeyError):
        store.insert(USERS, {"email": "a@example.com"})
    store.insert(ENROLLMENTS, {"student": "s", "course": "c1"})
    store.insert(ENROLLMENTS, {"student": "s", "course": "c2"})
    with pytest.raises(DuplicateKeyError) as exc:
        store.insert(ENROLLMENTS, {"student": "s", "course": "c1"})
    assert exc.value.fields == ("student", "course")


def test_increment_respects_floor_and_missing_documents():
    store = MemoryDocumentStore()
    course = store.insert(COURSES, {"title": "A", "topicCount": 1})
    assert store.increment(COURSES, course["id"], "topicCount", -1, floor=0)["topicCount"] == 0
    assert store.increment(COURSES, course["id"], "topicCount", -1, floor=0)["topicCount"] == 0
    assert store.increment(COURSES, "missing", "topicCount", 1) is None


def test_find_filters_find_in_and_delete_many():
    store = MemoryDocumentStore()
    a = store.insert(COURSES, {"owner": "t1", "title": "A"})
    b = store.insert(COURSES, {"owner": "t1", "title": "B"})
    store.insert(COURSES, {"owner": "t2", "title": "C"})
    assert {d["title"] for d in store.find(COURSES, {"owner": "t1"})} == {"A", "B"}
    assert store.find_one(COURSES, {"owner": "t3"}) is None
    assert {d["title"] for d in store.find_in(COURSES, "id", [a["id"], b["id"], "nope"])} == {"A", "B"}
    assert store.find_in(COURSES, "id", []) == []
    assert store.delete_many(COURSES, {"owner": "t1"}) == 2
    assert store.count(COURSES) == 1
    assert store.delete(COURSES, a["id"]) is False


def test_update_merges_shallowly_and_keeps_id():
    store = MemoryDocumentStore()
    doc = store.insert(COURSES, {"title": "A", "description": "d"})
    updated = store.update(COURSES, doc["id"], {"title": "B", "id": "hijack"})
    assert updated == {"id": doc["id"], "title": "B", "description": "d"}
    assert store.update(COURSES, "missing", {"title": "X"}) is None
