from __future__ import annotations
import hashlib


def sha256_of_text(text: str) -> str:
    """Return SHA256 hash of text string."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def session_fingerprint(session_id: object) -> str:
    """Short, log-safe stand-in for a session id."""
    return sha256_of_text(str(session_id))[:12]
