# Overview: Transaction, locking and retry helpers shared by every write path.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageError, TrackerError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE. There the item's version_id
    compare-and-swap is what keeps concurrent approvers apart.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func is re-run from scratch, so it must
    re-read whatever it decides on.
    """
    if attempts is None:
        attempts = current_app.config.get("TRACKER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TRACKER_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (attempt %d/%d): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run func and commit its work as one unit.

    Either every item update, history append and queue delete made by func
    lands, or none does. Domain errors propagate unchanged after a rollback;
    any other SQLAlchemy failure becomes StorageError.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except TrackerError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Transaction failed and was rolled back")
        raise StorageError(f"Storage failure: {exc.__class__.__name__}") from exc
