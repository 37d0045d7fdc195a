"""MongoDB-backed server-side session store with per-session locking."""

from mongosession.app.errors import (
    AppError,
    ConfigError,
    LockCancelledError,
    LockTimeoutError,
    StoreFaultError,
)
from mongosession.app.settings import Settings, load_settings
from mongosession.session.handler import SessionHandler, SessionSaveHandler
from mongosession.session.store import SessionStore

__all__ = [
    "AppError",
    "ConfigError",
    "LockCancelledError",
    "LockTimeoutError",
    "SessionHandler",
    "SessionSaveHandler",
    "SessionStore",
    "Settings",
    "StoreFaultError",
    "load_settings",
]
