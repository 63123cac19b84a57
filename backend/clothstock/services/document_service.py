# Overview: Service-layer operations for document numbers (sales S..., returns R...).

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentCounter
from ..time_utils import business_date_key
"""
Document Number Invariants (authoritative)

- Format: {prefix}{YYYYMMDD}-{seq:04d}, e.g. S20240115-0003.
- The date is the document's own business date (sold_at / returned_at in
  BUSINESS_TIMEZONE), not the server's clock.
- Numbers are unique per prefix; the unique constraint on the number column
  is the final arbiter.
- Allocation happens inside the caller's transaction. A rolled-back sale or
  return also rolls back its number.

Strategies (DOCUMENT_NUMBER_STRATEGY):
- "counter" (default): increment a DocumentCounter row per (type, day).
- "count": read the highest sequence used that day and insert inside a
  savepoint; on a collision retry with a fresh read, MAX_NUMBERING_ATTEMPTS
  times at most.
"""

SALE_PREFIX = "S"
RETURN_PREFIX = "R"

STRATEGY_COUNTER = "counter"
STRATEGY_COUNT = "count"

MAX_NUMBERING_ATTEMPTS = 5


class DocumentSequenceError(Exception):
    """Raised when a document number cannot be allocated."""

    def __init__(self, code: str, message: str, details: dict | None = None, status: int = 409):
        super().__init__(message)
        self.code = code
        self.details = details or {}
        self.status = status


def format_document_number(prefix: str, date_key: str, seq: int, pad: int = 4) -> str:
    return f"{prefix}{date_key}-{seq:0{pad}d}"


def _date_key(at: datetime) -> str:
    return business_date_key(at, current_app.config.get("BUSINESS_TIMEZONE", "UTC"))


def next_document_number(*, document_type: str, prefix: str, at: datetime) -> str:
    """
    Increment the (document_type, day) counter and return the new number.

    Must run inside the caller's write transaction; does not commit.
    """
    if not document_type:
        raise DocumentSequenceError("NUMBERING_FAILED", "document_type is required", status=500)

    date_key = _date_key(at)
    stmt = (
        update(DocumentCounter)
        .where(
            DocumentCounter.document_type == document_type,
            DocumentCounter.date_key == date_key,
        )
        .values(last_seq=DocumentCounter.last_seq + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentCounter(document_type=document_type, date_key=date_key, last_seq=1))
            return format_document_number(prefix, date_key, 1)
        except IntegrityError:
            # Another writer created today's row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    seq = (
        db.session.query(DocumentCounter.last_seq)
        .filter_by(document_type=document_type, date_key=date_key)
        .scalar()
    )
    return format_document_number(prefix, date_key, int(seq))


def _highest_sequence(number_column, prefix: str, date_key: str) -> int:
    day_prefix = f"{prefix}{date_key}-"
    numbers = db.session.query(number_column).filter(number_column.like(f"{day_prefix}%")).all()
    highest = 0
    for (number,) in numbers:
        suffix = number[len(day_prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def insert_with_numbering_retry(build, *, prefix: str, at: datetime, number_column):
    """
    Insert the document built by build(number) under the next free number.

    build: callable taking the proposed number and returning an unsaved model.
    number_column: the unique column holding the number (e.g. Sale.sale_no).

    Each attempt runs in a savepoint so a collision only discards that
    attempt. Integrity errors on anything but the number column propagate.
    """
    date_key = _date_key(at)
    column_name = number_column.key

    for attempt in range(1, MAX_NUMBERING_ATTEMPTS + 1):
        number = format_document_number(prefix, date_key, _highest_sequence(number_column, prefix, date_key) + 1)
        doc = build(number)
        try:
            with db.session.begin_nested():
                db.session.add(doc)
                db.session.flush()
            return doc
        except IntegrityError as exc:
            if column_name not in str(exc.orig):
                raise
            current_app.logger.warning(
                "Document number collision on %s (attempt %s/%s)", number, attempt, MAX_NUMBERING_ATTEMPTS
            )

    raise DocumentSequenceError(
        "NUMBERING_FAILED",
        "Could not allocate a document number, please retry",
        {"prefix": prefix, "date_key": date_key, "attempts": MAX_NUMBERING_ATTEMPTS},
    )


def allocate_document(build, *, document_type: str, prefix: str, at: datetime, number_column):
    """
    Number and insert a document with the configured strategy.

    Sales and returns both come through here, so one setting governs both.
    Returns the flushed model instance.
    """
    strategy = current_app.config.get("DOCUMENT_NUMBER_STRATEGY", STRATEGY_COUNTER)
    if strategy == STRATEGY_COUNT:
        return insert_with_numbering_retry(build, prefix=prefix, at=at, number_column=number_column)
    if strategy != STRATEGY_COUNTER:
        raise DocumentSequenceError(
            "NUMBERING_FAILED", f"Unknown numbering strategy: {strategy}", status=500
        )

    number = next_document_number(document_type=document_type, prefix=prefix, at=at)
    doc = build(number)
    db.session.add(doc)
    db.session.flush()
    return doc
