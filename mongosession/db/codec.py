from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError

from mongosession.app.errors import InvalidSessionIdError, StoreFaultError
from mongosession.db.schemas import SessionRecord

Payload = Union[bytes, str]


class SessionRecordCodec:
    """
    Maps wire session ids/payloads onto stored document shapes and filters.

    id_format:
    - "string": the session id is the `_id` as-is
    - "objectid": the session id is the hex form of a `bson.ObjectId`
    """

    def __init__(self, id_format: str = "string"):
        if id_format not in ("string", "objectid"):
            raise ValueError(f"Unknown id format: {id_format!r}")
        self.id_format = id_format

    def document_id(self, session_id: str) -> Any:
        if not session_id:
            raise InvalidSessionIdError("Session id must be a non-empty string")
        if self.id_format == "objectid":
            try:
                return ObjectId(session_id)
            except (InvalidId, TypeError) as e:
                raise InvalidSessionIdError(f"Not an ObjectId session id: {session_id!r}") from e
        return str(session_id)

    @staticmethod
    def encode_payload(data: Payload) -> bytes:
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            return data.encode("utf-8")
        raise TypeError(f"Session payload must be bytes or str, got {type(data).__name__}")

    # -------------------------
    # filters
    # -------------------------
    def id_filter(self, session_id: str) -> Dict[str, Any]:
        return {"_id": self.document_id(session_id)}

    def live_filter(self, session_id: str, now: int) -> Dict[str, Any]:
        return {
            "_id": self.document_id(session_id),
            "expiry": {"$gte": now},
            "active": 1,
        }

    def open_lock_filter(self, session_id: str) -> Dict[str, Any]:
        return {"_id": self.document_id(session_id), "lock": 0}

    def locked_document(self, session_id: str) -> Dict[str, Any]:
        return {"_id": self.document_id(session_id), "lock": 1}

    @staticmethod
    def expired_filter(now: int) -> Dict[str, Any]:
        return {"expiry": {"$lt": now}, "active": 1}

    # -------------------------
    # documents
    # -------------------------
    @staticmethod
    def write_fields(payload: bytes, expiry: int, prior: Optional[SessionRecord] = None) -> Dict[str, Any]:
        """
        `$set` body for a write. New fields win over the prior record's;
        `lock` always ends up 0.
        """
        fields: Dict[str, Any] = prior.fields() if prior is not None else {}
        fields.update(
            {
                "data": payload,
                "lock": 0,
                "active": 1,
                "expiry": expiry,
            }
        )
        return fields

    @staticmethod
    def decode(document: Mapping[str, Any]) -> SessionRecord:
        try:
            return SessionRecord.model_validate(dict(document))
        except ValidationError as e:
            raise StoreFaultError(f"Malformed session document: {e}") from e
