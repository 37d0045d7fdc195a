from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional, Protocol

from mongosession.db.codec import Payload
from mongosession.db.schemas import SessionRecord

if TYPE_CHECKING:
    from mongosession.session.store import SessionStore


class SessionSaveHandler(Protocol):
    """The six callbacks a host session machinery drives, once per request."""

    def open(self, save_path: str, session_name: str) -> bool: ...

    def close(self) -> bool: ...

    def read(self, session_id: str) -> bytes: ...

    def write(self, session_id: str, data: Payload) -> bool: ...

    def destroy(self, session_id: str) -> bool: ...

    def gc(self) -> bool: ...


class SessionHandler:
    """
    Request-scoped binding of the store to the host callbacks.

    `read` locks and fetches, and keeps the fetched record so the following
    `write` can merge over it. The record is dropped on `close`/`destroy`.
    """

    def __init__(self, store: SessionStore, cancel: Optional[threading.Event] = None):
        self.store = store
        self.cancel = cancel
        self._prior: Optional[SessionRecord] = None
        self._prior_session_id: Optional[str] = None

    def open(self, save_path: str, session_name: str) -> bool:
        return True

    def close(self) -> bool:
        self._forget()
        return True

    def read(self, session_id: str) -> bytes:
        self.store.lock_manager.acquire(session_id, self.cancel)

        try:
            record = self.store.repository.fetch(session_id)
        except Exception:
            # a failed read leaves no write behind to clear the lock
            self.store.lock_manager.release(session_id)
            raise
        if record is None:
            self._forget()
            return b""
        self._prior = record
        self._prior_session_id = session_id
        return record.data

    def write(self, session_id: str, data: Payload) -> bool:
        prior = self._prior if self._prior_session_id == session_id else None
        return self.store.repository.store(session_id, self.store.codec.encode_payload(data), prior)

    def destroy(self, session_id: str) -> bool:
        if self._prior_session_id == session_id:
            self._forget()
        return self.store.repository.discard(session_id)

    def gc(self) -> bool:
        return self.store.sweeper.sweep_expired()

    def release(self, session_id: str) -> bool:
        """Give the lock back when the request will not write."""
        return self.store.lock_manager.release(session_id)

    def _forget(self) -> None:
        self._prior = None
        self._prior_session_id = None
