# Overview: Service-layer operations for concurrency; encapsulates business logic and database work.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class PersistenceError(Exception):
    """Storage-layer fault (connection loss, constraint the caller could not foresee)."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


# Driver messages that mean another transaction holds the row or table
_LOCK_CONFLICT_MARKERS = (
    "locked",
    "deadlock",
    "could not obtain lock",
    "lock wait timeout",
    "could not serialize",
)


def _is_lock_conflict(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", None) or exc).lower()
    return any(marker in message for marker in _LOCK_CONFLICT_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries lock conflicts (locked database, deadlock, lock timeout,
    serialization failure) and StaleDataError (optimistic locking conflicts).
    Any other OperationalError is rolled back and raised on the first attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if isinstance(exc, OperationalError) and not _is_lock_conflict(exc):
                raise
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info("Retrying after lock conflict (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def commit_or_fail(message: str = "Storage operation failed") -> None:
    """Commit the session; roll back and raise PersistenceError on any storage fault."""
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(message)
        raise PersistenceError(message) from exc
