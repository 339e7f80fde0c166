# Overview: Row locking and retry helpers for stock and store credit read-modify-write sequences.
"""
Balance and stock updates follow one pattern:

    def _op():
        row = lock_for_update(query).first()   # re-read inside the attempt
        ...mutate...
        db.session.commit()
    run_with_retry(_op)

Product and DiscountCode carry a version_id column, so a concurrent writer
that slipped in between read and write makes the flush raise
StaleDataError. The attempt is rolled back and replayed from the re-read.
"""

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows the query returns.

    NOTE: SQLite ignores FOR UPDATE; there the version_id check is what
    catches lost updates.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func(), replaying it after a lock/version conflict.

    Sleeps backoff_base * 2**n between attempts and re-raises the last
    conflict once attempts are exhausted. Any other exception propagates
    immediately.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Concurrent update conflict (%s), retry %s/%s",
                type(exc).__name__, attempt, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
