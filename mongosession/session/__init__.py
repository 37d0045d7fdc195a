from __future__ import annotations

"""
Session layer:
- per-session lock over atomic document updates
- expiry sweep (soft delete) and purge
- store/handler binding the host's six session callbacks
"""

from mongosession.session import handler, lock, store, sweeper

__all__ = [
    "handler",
    "lock",
    "store",
    "sweeper",
]
