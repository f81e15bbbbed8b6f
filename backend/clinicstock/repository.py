# Overview: Soft-delete transitions and read predicates for catalogue records.

"""
Soft delete is explicit: reads that must hide deleted rows call
exclude_deleted() (or active_products()), and the only way in or out of
the deleted state is soft_delete() / restore().

is_deleted and is_active are separate flags with one rule tying them:
a deleted record is never active. restore() clears the deletion but leaves
the record inactive; reactivate() is a separate, deliberate step.
"""

from __future__ import annotations

from typing import Optional

from .errors import ValidationError
from .extensions import db
from .models import Product
from .services.concurrency import run_with_retry
from .time_utils import utcnow


def exclude_deleted(query, model):
    return query.filter(model.is_deleted.is_(False))


def active_products(category: Optional[str] = None, supplier_id: Optional[int] = None):
    """Query of products that are active and not soft-deleted, optionally filtered."""
    query = exclude_deleted(db.session.query(Product), Product).filter(Product.is_active.is_(True))
    if category:
        query = query.filter(Product.category == category)
    if supplier_id is not None:
        query = query.filter(Product.supplier_id == supplier_id)
    return query


def _transition(record, change, commit: bool):
    """
    Apply change(record) and commit.

    Products carry a version_id, so a stock movement committed after the
    record was read makes the flush fail with StaleDataError; the attempt
    is rolled back, the record reloaded and change() re-checked against it.
    """
    if not commit:
        change(record)
        return record

    def _attempt():
        change(record)
        db.session.commit()
        return record

    return run_with_retry(_attempt)


def soft_delete(record, deleted_by: Optional[int] = None, reason: Optional[str] = None, *, commit: bool = True):
    def change(r):
        if r.is_deleted:
            raise ValidationError(f"{type(r).__name__} {r.id} is already deleted")
        r.is_deleted = True
        r.is_active = False
        r.deleted_at = utcnow()
        r.deleted_by_user_id = deleted_by
        r.deletion_reason = reason

    return _transition(record, change, commit)


def restore(record, *, commit: bool = True):
    """Undo a soft delete. The record stays inactive until reactivate()."""
    def change(r):
        if not r.is_deleted:
            raise ValidationError(f"{type(r).__name__} {r.id} is not deleted")
        r.is_deleted = False
        r.deleted_at = None
        r.deleted_by_user_id = None
        r.deletion_reason = None

    return _transition(record, change, commit)


def reactivate(record, *, commit: bool = True):
    def change(r):
        if r.is_deleted:
            raise ValidationError(f"{type(r).__name__} {r.id} is deleted; restore it first")
        r.is_active = True

    return _transition(record, change, commit)
