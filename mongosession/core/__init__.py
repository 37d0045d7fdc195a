from __future__ import annotations

"""
This module provides core functionality for the application.

It includes utilities for clock operations, hashing and ID generation.
"""

from mongosession.core import clock, hashing, ids

__all__ = [
    "clock",
    "hashing",
    "ids",
]
