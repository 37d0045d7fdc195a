"""
Per-session advisory lock on top of MongoDB's single-document atomicity.

Acquisition loop:
    1. find {_id, lock: 0}; if present, flip it with update_one on the same
       filter (a concurrent winner shows up as matched_count == 0)
    2. otherwise insert {_id, lock: 1}; a duplicate key on _id / (_id, lock)
       means someone else created or holds the record
    3. on contention sleep, double the delay up to the ceiling, retry until
       the wait budget is spent

No lock server and no in-process synchronisation are involved. The lock is
released by the next write of the session (which resets `lock` to 0) or by
`release`.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from mongosession.app.errors import LockCancelledError, LockTimeoutError, StoreFaultError
from mongosession.core.clock import Clock, SystemClock
from mongosession.core.hashing import session_fingerprint
from mongosession.db.codec import SessionRecordCodec

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_S: float = 30.0
DEFAULT_INITIAL_DELAY_S: float = 0.005
DEFAULT_MAX_DELAY_S: float = 1.0

# fields that make up the unique indexes the insert-if-absent step relies on
_CONTENTION_KEYS = frozenset({"_id", "lock"})
_CONTENTION_INDEXES = ("index: _id_ ", "index: _id_lock ")


@dataclass(frozen=True)
class LockPolicy:
    timeout: float = DEFAULT_LOCK_TIMEOUT_S
    initial_delay: float = DEFAULT_INITIAL_DELAY_S
    max_delay: float = DEFAULT_MAX_DELAY_S

    def __post_init__(self) -> None:
        if self.timeout <= 0:
            raise ValueError("Lock timeout must be > 0")
        if self.initial_delay <= 0:
            raise ValueError("Initial lock delay must be > 0")
        if self.max_delay < self.initial_delay:
            raise ValueError("Max lock delay must be >= initial delay")


def is_contention(exc: DuplicateKeyError) -> bool:
    """True if the duplicate key is on the session's own _id / (_id, lock) index."""
    details = exc.details or {}
    key_pattern = details.get("keyPattern")
    if key_pattern:
        return set(key_pattern) <= _CONTENTION_KEYS
    message = str(details.get("errmsg") or exc)
    return any(name in message for name in _CONTENTION_INDEXES)


class LockManager:
    def __init__(
        self,
        sessions: Collection,
        *,
        policy: Optional[LockPolicy] = None,
        codec: Optional[SessionRecordCodec] = None,
        clock: Optional[Clock] = None,
    ):
        self.sessions = sessions
        self.policy = policy or LockPolicy()
        self.codec = codec or SessionRecordCodec()
        self.clock = clock or SystemClock()

    def acquire(self, session_id: str, cancel: Optional[threading.Event] = None) -> bool:
        """
        Block until the lock on `session_id` is ours.

        Raises LockTimeoutError once the wait budget is spent, LockCancelledError
        if `cancel` is set while backing off, and StoreFaultError for any store
        error other than contention.
        """
        remaining = self.policy.timeout
        delay = self.policy.initial_delay
        waited = 0.0
        attempts = 0

        while True:
            attempts += 1
            if self._try_acquire(session_id):
                logger.debug(
                    "session lock acquired",
                    extra={"session": session_fingerprint(session_id), "attempts": attempts, "waited_s": waited},
                )
                return True

            if remaining <= 0:
                logger.warning(
                    "session lock timed out",
                    extra={"session": session_fingerprint(session_id), "attempts": attempts, "waited_s": waited},
                )
                raise LockTimeoutError(
                    f"Could not obtain a session lock within {self.policy.timeout:g}s"
                )

            pause = min(delay, remaining)
            if self.clock.sleep(pause, cancel):
                raise LockCancelledError("Session lock acquisition cancelled")
            remaining -= pause
            waited += pause
            delay = min(delay * 2, self.policy.max_delay)

    def release(self, session_id: str) -> bool:
        """Clear the lock without writing session data."""
        try:
            result = self.sessions.update_one(
                self.codec.locked_document(session_id),
                {"$set": {"lock": 0}},
            )
        except PyMongoError as e:
            raise StoreFaultError(f"Could not release session lock: {e}") from e
        return result.acknowledged

    def _try_acquire(self, session_id: str) -> bool:
        open_filter = self.codec.open_lock_filter(session_id)
        try:
            if self.sessions.find_one(open_filter, projection={"_id": 1}) is not None:
                result = self.sessions.update_one(open_filter, {"$set": {"lock": 1}})
                return result.matched_count == 1
            self.sessions.insert_one(self.codec.locked_document(session_id))
            return True
        except DuplicateKeyError as e:
            if not is_contention(e):
                raise StoreFaultError(f"Unexpected duplicate key while locking session: {e}") from e
            logger.debug("session lock contention", extra={"session": session_fingerprint(session_id)})
            return False
        except PyMongoError as e:
            raise StoreFaultError(f"Store failure while locking session: {e}") from e
