from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional


class SessionRecord(BaseModel):
    """
    One document per session.
    Unknown document fields are kept so a merge-on-write preserves them.
    Other clients may share the collection, so field shapes are read leniently.
    """
    model_config = ConfigDict(extra="allow")

    doc_id: Any = Field(alias="_id")
    data: bytes = b""
    lock: int = 0
    active: int = 0
    expiry: Optional[float] = None

    @field_validator("data", mode="before")
    @classmethod
    def _missing_data(cls, v: Any) -> Any:
        return b"" if v is None else v

    def fields(self) -> Dict[str, Any]:
        """Stored fields without `_id`, extras included."""
        return self.model_dump(exclude={"doc_id"})
