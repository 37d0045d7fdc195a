from __future__ import annotations

import logging
from typing import Optional

from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from mongosession.core.clock import Clock, SystemClock
from mongosession.db.codec import SessionRecordCodec

logger = logging.getLogger(__name__)


class ExpirationSweeper:
    """
    Soft-deletes expired sessions (`active` -> 0) in one multi-document update.
    Physical removal is left to `purge_inactive`, run out of band.
    """

    def __init__(self, sessions: Collection, *, clock: Optional[Clock] = None):
        self.sessions = sessions
        self.clock = clock or SystemClock()

    def sweep_expired(self) -> bool:
        try:
            result = self.sessions.update_many(
                SessionRecordCodec.expired_filter(self.clock.now()),
                {"$set": {"active": 0}},
            )
        except PyMongoError:
            logger.exception("expired session sweep failed")
            return False
        if not result.acknowledged:
            logger.error("expired session sweep not acknowledged")
            return False
        logger.info("expired sessions deactivated", extra={"count": result.modified_count})
        return True

    def purge_inactive(self) -> int:
        """Hard-delete soft-deleted, expired sessions. Returns the number removed."""
        result = self.sessions.delete_many({"active": 0, "expiry": {"$lt": self.clock.now()}})
        removed = result.deleted_count
        logger.info("inactive sessions purged", extra={"count": removed})
        return removed
