class AppError(Exception):
    """Base application error"""


class ConfigError(AppError):
    """Missing or invalid configuration, or unreachable server set"""


class DatabaseError(AppError):
    """MongoDB connection or query failure"""


class StoreFaultError(DatabaseError):
    """Store error the lock retry loop cannot reason about"""


class InvalidSessionIdError(AppError, ValueError):
    """Session ID cannot be mapped to a document _id"""


class LockError(AppError):
    """Session lock could not be obtained"""


class LockTimeoutError(LockError):
    """Lock wait budget exhausted"""


class LockCancelledError(LockError):
    """Lock acquisition abandoned by the caller"""
