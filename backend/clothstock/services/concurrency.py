# Overview: Unit-of-work helpers; every stock-changing workflow runs through run_in_transaction.

"""
Write serialization

Stock, numbering and document posting all read-then-write rows that other
requests touch too. On PostgreSQL the rows are locked with SELECT ... FOR
UPDATE; SQLite has no row locks, so the whole database write lock is taken
up front with BEGIN IMMEDIATE and the FOR UPDATE clause is a no-op there.
"""

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Failures that mean "someone else held the lock", worth a fresh attempt.
RETRYABLE = (OperationalError, StaleDataError)


def lock_for_update(query):
    """Add FOR UPDATE to a query. Ignored by SQLite (see module docstring)."""
    return query.with_for_update()


def _backoff(attempt: int, base: float) -> None:
    time.sleep(base * (2 ** attempt))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func(), rolling back and retrying on lock contention.

    Sleeps base, 2*base, 4*base... between attempts. The last failure is
    re-raised unchanged; any non-contention error propagates immediately.
    """
    attempt = 0
    while True:
        try:
            return func()
        except RETRYABLE:
            db.session.rollback()
            attempt += 1
            if attempt >= attempts:
                raise
            _backoff(attempt - 1, backoff_base)


def _begin_write() -> None:
    # An implicit read transaction may already be open; finish it so the
    # write lock is acquired before anything of this unit is read.
    if db.session().in_transaction():
        db.session.commit()
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func() as one unit of work: write lock, func, commit.

    Any exception rolls the whole unit back and propagates. Lock contention
    is retried from the start, so func must not keep state between calls.
    """
    def _unit():
        _begin_write()
        try:
            outcome = func()
            db.session.commit()
            return outcome
        except BaseException:
            db.session.rollback()
            raise

    return run_with_retry(_unit, attempts=attempts, backoff_base=backoff_base)
