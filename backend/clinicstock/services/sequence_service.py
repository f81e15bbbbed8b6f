# Overview: Service-layer operations for named counters and document numbers.

"""
Atomic Sequence Generator

Counters are allocated with a single `UPDATE counters SET value = value + 1`
followed by a read inside the same transaction, so the row write lock is
held between the increment and the read. Two concurrent callers for the
same name can never observe the same value.

A missing counter is created with value 1. When two callers race to create
it, the loser hits the unique constraint, rolls back to a savepoint and
retries the increment.

Numbers may have gaps (rolled-back transactions, restarts). They never
repeat and never go backwards.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from ..errors import SequenceAllocationFailure, ValidationError
from ..extensions import db
from ..models import Counter
from ..time_utils import date_stamp
from .concurrency import store_operation

logger = logging.getLogger(__name__)


def _increment(counter_name: str) -> Optional[int]:
    stmt = (
        update(Counter)
        .where(Counter.name == counter_name)
        .values(value=Counter.value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    return db.session.execute(
        select(Counter.value).where(Counter.name == counter_name)
    ).scalar_one()


def next_value(counter_name: str, *, commit: bool = True) -> int:
    """
    Atomically allocate the next value of a named counter.

    With commit=False the increment stays in the caller's transaction (the
    row lock is held until the caller commits), so the number and whatever
    it labels persist or roll back together.

    Raises SequenceAllocationFailure when the store cannot be reached.
    """
    if not counter_name:
        raise ValidationError("counter_name is required")

    def _fail(operation, exc):
        return SequenceAllocationFailure(counter_name, exc)

    with store_operation(f"sequence:{counter_name}", error_cls=_fail):
        value = _increment(counter_name)
        if value is None:
            try:
                # Savepoint so a lost race leaves the caller's transaction intact
                with db.session.begin_nested():
                    db.session.add(Counter(name=counter_name, value=1))
                value = 1
            except IntegrityError:
                value = _increment(counter_name)
                if value is None:
                    raise
        if commit:
            db.session.commit()

    return value


def peek_value(counter_name: str) -> int:
    """Last allocated value (0 if never allocated). Read-only."""
    with store_operation(f"sequence-peek:{counter_name}"):
        value = db.session.execute(
            select(Counter.value).where(Counter.name == counter_name)
        ).scalar_one_or_none()
    return value or 0


def counter_name_for(document_type: str, on: Optional[date] = None) -> str:
    """Daily counter name, e.g. restock-20260104."""
    return f"{document_type}-{date_stamp(on)}"


def format_document_number(prefix: str, value: int, on: Optional[date] = None, pad: int = 4) -> str:
    return f"{prefix}-{date_stamp(on)}-{value:0{pad}d}"


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    on: Optional[date] = None,
    pad: int = 4,
    commit: bool = True,
) -> str:
    """
    Allocate the next document number for a type on a given day.

    e.g. document_type="restock", prefix="RST" -> "RST-20260104-0001"
    """
    if not document_type:
        raise ValidationError("document_type is required")
    if not prefix:
        raise ValidationError("prefix is required")

    value = next_value(counter_name_for(document_type, on), commit=commit)
    number = format_document_number(prefix, value, on, pad)
    logger.debug("Allocated %s", number)
    return number
