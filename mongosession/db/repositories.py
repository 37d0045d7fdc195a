from __future__ import annotations
import logging
from typing import Optional
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from mongosession.core.clock import Clock, SystemClock
from mongosession.core.hashing import session_fingerprint
from mongosession.db.schemas import SessionRecord
from mongosession.db.codec import SessionRecordCodec

logger = logging.getLogger(__name__)


class SessionRepository:
    """
    Read/write/destroy of session documents.

    Lock possession is not checked here; callers go through the lock manager
    before `fetch` and rely on `store` to reset the lock.
    """

    def __init__(
        self,
        sessions: Collection,
        *,
        lifetime: int,
        codec: Optional[SessionRecordCodec] = None,
        clock: Optional[Clock] = None,
    ):
        self.sessions = sessions
        self.lifetime = lifetime
        self.codec = codec or SessionRecordCodec()
        self.clock = clock or SystemClock()

    def fetch(self, session_id: str) -> Optional[SessionRecord]:
        """Live record for `session_id`, or None if missing, expired or inactive."""
        doc = self.sessions.find_one(self.codec.live_filter(session_id, self.clock.now()))
        if doc is None:
            return None
        return self.codec.decode(doc)

    def store(self, session_id: str, payload: bytes, prior: Optional[SessionRecord] = None) -> bool:
        expiry = self.clock.now() + self.lifetime
        fields = self.codec.write_fields(payload, expiry, prior)
        try:
            result = self.sessions.update_one(
                self.codec.id_filter(session_id),
                {"$set": fields},
                upsert=True,
            )
        except PyMongoError:
            logger.exception("session write failed", extra={"session": session_fingerprint(session_id)})
            return False
        if not result.acknowledged:
            logger.error("session write not acknowledged", extra={"session": session_fingerprint(session_id)})
            return False
        return True

    def discard(self, session_id: str) -> bool:
        try:
            result = self.sessions.delete_one(self.codec.id_filter(session_id))
        except PyMongoError:
            logger.exception("session remove failed", extra={"session": session_fingerprint(session_id)})
            return False
        if not result.acknowledged:
            logger.error("session remove not acknowledged", extra={"session": session_fingerprint(session_id)})
            return False
        return True
