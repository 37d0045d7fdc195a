from __future__ import annotations

import logging
import threading
from typing import Optional

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from mongosession.app.errors import ConfigError, InvalidSessionIdError
from mongosession.app.settings import Settings
from mongosession.core.clock import Clock, SystemClock
from mongosession.core.ids import new_session_id
from mongosession.db.codec import SessionRecordCodec
from mongosession.db.mongo import connect_mongo, ensure_indexes
from mongosession.db.repositories import SessionRepository
from mongosession.session.handler import SessionHandler
from mongosession.session.lock import LockManager, LockPolicy
from mongosession.session.sweeper import ExpirationSweeper

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Long-lived wiring of codec, lock manager, repository and sweeper around
    one sessions collection. Hand out a `SessionHandler` per request.
    """

    def __init__(
        self,
        sessions: Collection,
        *,
        lifetime: int,
        lock_policy: Optional[LockPolicy] = None,
        clock: Optional[Clock] = None,
        codec: Optional[SessionRecordCodec] = None,
        create_indexes: bool = True,
        client: Optional[MongoClient] = None,
    ):
        self.sessions = sessions
        self.lifetime = lifetime
        self.clock = clock or SystemClock()
        self.codec = codec or SessionRecordCodec()
        self.lock_manager = LockManager(sessions, policy=lock_policy, codec=self.codec, clock=self.clock)
        self.repository = SessionRepository(sessions, lifetime=lifetime, codec=self.codec, clock=self.clock)
        self.sweeper = ExpirationSweeper(sessions, clock=self.clock)
        self._client = client

        if create_indexes:
            ensure_indexes(sessions)

    @classmethod
    def from_settings(cls, settings: Settings, *, clock: Optional[Clock] = None) -> "SessionStore":
        try:
            lock_policy = LockPolicy(
                timeout=settings.lock_timeout,
                initial_delay=settings.lock_initial_delay,
                max_delay=settings.lock_max_delay,
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e
        codec = SessionRecordCodec(settings.id_format)

        handles = connect_mongo(settings)
        try:
            return cls(
                handles["sessions"],
                lifetime=settings.lifetime,
                lock_policy=lock_policy,
                clock=clock,
                codec=codec,
                client=handles["client"],
            )
        except PyMongoError as e:
            handles["client"].close()
            raise ConfigError(f"Could not prepare the session collection: {e}") from e

    def handler(self, cancel: Optional[threading.Event] = None) -> SessionHandler:
        return SessionHandler(self, cancel=cancel)

    def resolve_session_id(self, candidate: Optional[str]) -> str:
        """
        Reuse a cookie-supplied id if it names a live session, otherwise mint
        a new one. No lock is taken.
        """
        if candidate:
            try:
                if self.repository.fetch(candidate) is not None:
                    return candidate
            except InvalidSessionIdError:
                logger.info("discarding malformed session id from client")
        return new_session_id(self.codec.id_format)

    def gc(self) -> bool:
        return self.sweeper.sweep_expired()

    def purge_inactive(self) -> int:
        return self.sweeper.purge_inactive()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
