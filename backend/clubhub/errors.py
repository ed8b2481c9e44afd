"""Domain errors raised by services and rendered by the API.

Each error carries the HTTP status the controllers should answer with, so
the single exception handler in `main` does not need to know about the
individual classes.
"""

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

# SQLSTATE codes for serialization failure and deadlock
_RETRYABLE_SQLSTATES = {"40001", "40P01"}
_RETRYABLE_MESSAGES = (
    "database is locked",
    "database table is locked",
    "could not serialize",
    "deadlock detected",
)
_DUPLICATE_MESSAGES = ("unique constraint", "duplicate key")


class ServiceError(Exception):
    """Base class for errors surfaced by the services."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    """Malformed identifiers or pagination values, rejected before any store access."""
    status_code = 400


class NotFound(ServiceError):
    """The target entity does not exist (or is not a club)."""
    status_code = 404


class AlreadyExists(ServiceError):
    status_code = 409


class TransientConflict(ServiceError):
    """The store reported contention; re-running the transaction should succeed."""
    status_code = 409


class StorageFault(ServiceError):
    """Any other persistence failure, or a conflict that outlived its retries."""
    status_code = 500


def _sqlstate(exc: DBAPIError):
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def classify_db_error(exc: DBAPIError) -> ServiceError:
    """Map a SQLAlchemy DBAPI error onto `TransientConflict` or `StorageFault`.

    A duplicate edge insert means another transaction created the same
    (actor, target) pair first, so it is retryable like a lock timeout.
    """
    text = str(getattr(exc, "orig", exc)).lower()
    if isinstance(exc, IntegrityError) and any(m in text for m in _DUPLICATE_MESSAGES):
        return TransientConflict("follow edge was modified concurrently")
    if _sqlstate(exc) in _RETRYABLE_SQLSTATES:
        return TransientConflict("write conflict, please retry")
    if isinstance(exc, OperationalError) and any(m in text for m in _RETRYABLE_MESSAGES):
        return TransientConflict("write conflict, please retry")
    return StorageFault("storage error")
