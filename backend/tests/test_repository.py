"""
Soft-delete boundary tests.

Verifies:
- Deleted records are always inactive and hidden from active reads
- Restoring clears the deletion but leaves the record inactive
- Reactivation is a separate step that refuses deleted records
- A transition on a stale copy is retried against the reloaded row
"""

import logging

import pytest
from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.exc import StaleDataError

from clinicstock.errors import ValidationError
from clinicstock.extensions import db
from clinicstock.models import Product, Supplier
from clinicstock.repository import active_products, exclude_deleted, reactivate, restore, soft_delete
from clinicstock.services import movement_service
from clinicstock.services.concurrency import run_with_retry


class TestSoftDelete:

    def test_soft_delete_marks_and_deactivates(self, make_product, make_user):
        user = make_user("admin")
        product = make_product()
        soft_delete(product, deleted_by=user.id, reason="recalled")

        product = db.session.get(Product, product.id)
        assert product.is_deleted
        assert not product.is_active
        assert product.deleted_by_user_id == user.id
        assert product.deletion_reason == "recalled"
        assert product.deleted_at is not None

    def test_deleted_rows_hidden_from_reads(self, make_product):
        kept = make_product()
        gone = make_product()
        soft_delete(gone)
        assert [p.id for p in exclude_deleted(db.session.query(Product), Product)] == [kept.id]
        assert [p.id for p in active_products()] == [kept.id]

    def test_double_delete_rejected(self, make_product):
        product = make_product()
        soft_delete(product)
        with pytest.raises(ValidationError):
            soft_delete(product)

    def test_works_for_suppliers(self, supplier):
        soft_delete(supplier, reason="closed")
        assert db.session.query(Supplier).filter(Supplier.is_deleted.is_(True)).count() == 1


class TestRestore:

    def test_restore_leaves_record_inactive(self, make_product):
        product = make_product()
        soft_delete(product, reason="mistake")
        restore(product)

        product = db.session.get(Product, product.id)
        assert not product.is_deleted
        assert not product.is_active
        assert product.deleted_at is None
        assert product.deletion_reason is None
        assert active_products().count() == 0

    def test_reactivate_after_restore(self, make_product):
        product = make_product()
        soft_delete(product)
        restore(product)
        reactivate(product)
        assert [p.id for p in active_products()] == [product.id]

    def test_restore_requires_deleted_record(self, make_product):
        with pytest.raises(ValidationError):
            restore(make_product())

    def test_reactivate_refuses_deleted_record(self, make_product):
        product = make_product()
        soft_delete(product)
        with pytest.raises(ValidationError):
            reactivate(product)

    def test_uncommitted_transition_rolls_back(self, make_product):
        product = make_product()
        soft_delete(product, commit=False)
        db.session.rollback()
        assert not db.session.get(Product, product.id).is_deleted


class TestVersionConflicts:
    """Stock movements bump version_id behind the ORM's back."""

    def _stale_copy(self, product, **committed):
        version = product.version_id
        # Values as they were before the last write landed
        for key, value in committed.items():
            set_committed_value(product, key, value)
        set_committed_value(product, "version_id", version - 1)

    def test_stale_copy_is_retried(self, make_product, caplog):
        product = make_product()
        movement_service.record_movement(product.id, "restock", 4)
        self._stale_copy(product)

        with caplog.at_level(logging.WARNING, logger="clinicstock.services.concurrency"):
            soft_delete(product, reason="recalled")

        assert "Optimistic lock conflict" in caplog.text
        stored = db.session.get(Product, product.id)
        assert stored.is_deleted
        assert not stored.is_active
        assert stored.current_stock == 4
        assert movement_service.verify_ledger(product.id).consistent

    def test_retry_rechecks_reloaded_row(self, make_product):
        product = make_product()
        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(is_deleted=True, is_active=False, version_id=Product.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        self._stale_copy(product, is_deleted=False, is_active=True)

        with pytest.raises(ValidationError):
            soft_delete(product, reason="recalled")
        assert db.session.get(Product, product.id).deletion_reason is None

    def test_gives_up_after_attempts(self, db_session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("products row changed")

        with pytest.raises(StaleDataError):
            run_with_retry(always_stale, attempts=3, backoff_base=0)
        assert len(calls) == 3
