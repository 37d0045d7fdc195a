from __future__ import annotations
import secrets

from bson import ObjectId


def _tok(nbytes: int = 24) -> str:
    return secrets.token_urlsafe(nbytes)

def new_session_id(id_format: str = "string") -> str:
    if id_format == "objectid":
        return str(ObjectId())
    return f"sess_{_tok()}"
