from __future__ import annotations

"""
Database layer:
- Session record codec
- Mongo connection and indexes
- Schemas
- Repositories
"""

from mongosession.db import codec, mongo, repositories, schemas

__all__ = [
    "codec",
    "mongo",
    "repositories",
    "schemas"
]
