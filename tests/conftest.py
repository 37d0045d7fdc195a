"""
Shared pytest fixtures for the session store tests.

This module provides:
- FakeCollection: in-memory stand-in for a pymongo Collection, returning real
  pymongo result objects and raising real DuplicateKeyError
- FakeClock: controllable time whose sleep advances the clock
"""

import copy
import threading
from typing import Any, Callable, Dict, List, Optional

import pytest
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

from mongosession.db.codec import SessionRecordCodec
from mongosession.db.repositories import SessionRepository
from mongosession.session.lock import LockManager, LockPolicy
from mongosession.session.store import SessionStore
from mongosession.session.sweeper import ExpirationSweeper

START = 1_700_000_000
LIFETIME = 3600


# =============================================================================
# Collection double
# =============================================================================

def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, cond in query.items():
        present = key in doc
        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$gte":
                    if not present or value is None or value < arg:
                        return False
                elif op == "$lt":
                    if not present or value is None or value >= arg:
                        return False
                elif op == "$ne":
                    if value == arg:
                        return False
                else:
                    raise NotImplementedError(op)
        elif not present or value != cond:
            return False
    return True


def duplicate_key(index: str, key_pattern: Optional[Dict[str, int]] = None) -> DuplicateKeyError:
    errmsg = f"E11000 duplicate key error collection: session.sessions index: {index} dup key: {{ }}"
    details: Dict[str, Any] = {"code": 11000, "errmsg": errmsg}
    if key_pattern is not None:
        details["keyPattern"] = key_pattern
    return DuplicateKeyError(errmsg, 11000, details)


class FakeCollection:
    """Single-process collection double; every operation is atomic under one mutex."""

    def __init__(self):
        self.docs: Dict[Any, Dict[str, Any]] = {}
        self.indexes: List[Dict[str, Any]] = []
        self.calls: List[str] = []
        self.acknowledged = True
        self.fail_with: Dict[str, Exception] = {}
        self._mutex = threading.Lock()

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        exc = self.fail_with.get(op)
        if exc is not None:
            raise exc

    def create_index(self, keys, **kwargs) -> str:
        self.indexes.append({"keys": list(keys), **kwargs})
        return kwargs.get("name", "_".join(f"{k}_{d}" for k, d in keys))

    def find_one(self, query: Dict[str, Any], projection: Optional[Dict[str, Any]] = None):
        with self._mutex:
            self._enter("find_one")
            for doc in self.docs.values():
                if _matches(doc, query):
                    return copy.deepcopy(doc)
        return None

    def insert_one(self, doc: Dict[str, Any]) -> InsertOneResult:
        with self._mutex:
            self._enter("insert_one")
            if doc["_id"] in self.docs:
                raise duplicate_key("_id_", {"_id": 1})
            self.docs[doc["_id"]] = copy.deepcopy(doc)
        return InsertOneResult(doc["_id"], self.acknowledged)

    def update_one(self, query: Dict[str, Any], update: Dict[str, Any], upsert: bool = False) -> UpdateResult:
        with self._mutex:
            self._enter("update_one")
            for doc in self.docs.values():
                if _matches(doc, query):
                    before = dict(doc)
                    doc.update(copy.deepcopy(update["$set"]))
                    return UpdateResult({"n": 1, "nModified": int(before != doc)}, self.acknowledged)
            if upsert:
                new = {k: v for k, v in query.items() if not isinstance(v, dict)}
                new.update(copy.deepcopy(update["$set"]))
                self.docs[new["_id"]] = new
                return UpdateResult({"n": 1, "nModified": 0, "upserted": new["_id"]}, self.acknowledged)
        return UpdateResult({"n": 0, "nModified": 0}, self.acknowledged)

    def update_many(self, query: Dict[str, Any], update: Dict[str, Any]) -> UpdateResult:
        with self._mutex:
            self._enter("update_many")
            matched = modified = 0
            for doc in self.docs.values():
                if _matches(doc, query):
                    matched += 1
                    before = dict(doc)
                    doc.update(copy.deepcopy(update["$set"]))
                    modified += int(before != doc)
        return UpdateResult({"n": matched, "nModified": modified}, self.acknowledged)

    def delete_one(self, query: Dict[str, Any]) -> DeleteResult:
        with self._mutex:
            self._enter("delete_one")
            for key, doc in list(self.docs.items()):
                if _matches(doc, query):
                    del self.docs[key]
                    return DeleteResult({"n": 1}, self.acknowledged)
        return DeleteResult({"n": 0}, self.acknowledged)

    def delete_many(self, query: Dict[str, Any]) -> DeleteResult:
        with self._mutex:
            self._enter("delete_many")
            doomed = [k for k, d in self.docs.items() if _matches(d, query)]
            for key in doomed:
                del self.docs[key]
        return DeleteResult({"n": len(doomed)}, self.acknowledged)


# =============================================================================
# Clock double
# =============================================================================

class FakeClock:
    """Time only moves through `advance` and `sleep`."""

    def __init__(self, start: float = START):
        self.t = float(start)
        self.sleeps: List[float] = []
        self.on_sleep: Optional[Callable[[int], None]] = None

    def now(self) -> int:
        return int(self.t)

    def advance(self, seconds: float) -> None:
        self.t += seconds

    def sleep(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        self.sleeps.append(seconds)
        self.t += seconds
        if self.on_sleep is not None:
            self.on_sleep(len(self.sleeps))
        return cancel is not None and cancel.is_set()


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def codec():
    return SessionRecordCodec()


@pytest.fixture
def lock_manager(collection, clock, codec):
    return LockManager(collection, policy=LockPolicy(), codec=codec, clock=clock)


@pytest.fixture
def repository(collection, clock, codec):
    return SessionRepository(collection, lifetime=LIFETIME, codec=codec, clock=clock)


@pytest.fixture
def sweeper(collection, clock):
    return ExpirationSweeper(collection, clock=clock)


@pytest.fixture
def store(collection, clock):
    return SessionStore(collection, lifetime=LIFETIME, clock=clock)
