# Overview: Transaction helpers shared by every multi-step write (checkout, purchases, adjustments).

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking to a read that precedes a write of the same rows.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; it serializes writers at the
    database level instead, and a losing writer surfaces as OperationalError
    ("database is locked"), which run_with_retry handles.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    One all-or-nothing unit of work on the scoped session.

    Commits when the block finishes, rolls back and re-raises on any error.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Writers that take the next value of a unique sequence (invoice numbers)
# can lose a race on the unique index; the retry reads the new maximum.
SEQUENCE_RACE_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a unit of work, retrying on concurrency-related failures.

    `func` must open its own transaction (normally via `atomic()`), so a
    retry re-reads every row it depends on, stock levels included.
    """
    for attempt in range(attempts):
        try:
            return func()
        except retry_on:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
