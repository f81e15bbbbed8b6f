# Overview: Service-layer operations for restocking; suggestions, single and bulk restocks, history.

"""
Restock Engine

SUGGESTIONS:
- deficit = reorder_point * threshold - current_stock, emitted when > 0
- priority: high when stock <= 0, medium when stock <= reorder point, else low
- ordered high -> medium -> low; within a priority, catalogue order (name, id)

SINGLE RESTOCK (one transaction):
product checks -> unit conversion -> movement number -> atomic stock and
analytics UPDATE -> movement row. Any failure rolls the whole line back.

BULK RESTOCK:
A RestockBatch parent is committed first, then every line runs through the
single path in its own transaction. A failed line is reported and skipped;
lines that already succeeded stay committed.

Permission checks happen upstream (route decorators); nothing here
re-checks them.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    BatchNotFound,
    ClinicError,
    ProductInactive,
    SupplierNotFound,
    UnitMismatch,
    UnknownUnit,
    ValidationError,
)
from ..extensions import db
from ..models import InventoryMovement, Product, RestockBatch, Supplier
from ..repository import active_products, exclude_deleted
from ..time_utils import utcnow
from . import movement_service, sequence_service, stock_service, unit_conversion
from .concurrency import store_operation

logger = logging.getLogger(__name__)


PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}

BATCH_PENDING = "pending"
BATCH_PROCESSING = "processing"
BATCH_COMPLETED = "completed"
BATCH_PARTIAL = "partial"
BATCH_FAILED = "failed"

DEFAULT_MAX_BULK_OPERATIONS = 100
MAX_HISTORY_LIMIT = 500


# =============================================================================
# REQUEST / RESULT TYPES
# =============================================================================

def _number(value, name: str, *, required: bool = True):
    if value is None and not required:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number")
    return value


def _text(value, name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip() or None


@dataclass(frozen=True)
class RestockOperation:
    product_id: int
    quantity: float
    unit: Optional[str] = None
    reference: Optional[str] = None
    notes: Optional[str] = None
    unit_cost: Optional[float] = None

    @classmethod
    def from_dict(cls, raw) -> "RestockOperation":
        """Parse {productId, quantity, unit?, reference?, notes?, unitCost?}."""
        if not isinstance(raw, dict):
            raise ValidationError("Restock operation must be an object")
        product_id = raw.get("productId")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("productId is required and must be an integer")
        unit_cost = _number(raw.get("unitCost"), "unitCost", required=False)
        if unit_cost is not None and unit_cost < 0:
            raise ValidationError("unitCost must not be negative")
        return cls(
            product_id=product_id,
            quantity=_number(raw.get("quantity"), "quantity"),
            unit=_text(raw.get("unit"), "unit"),
            reference=_text(raw.get("reference"), "reference"),
            notes=_text(raw.get("notes"), "notes"),
            unit_cost=unit_cost,
        )


@dataclass(frozen=True)
class BulkRestockRequest:
    operations: tuple[RestockOperation, ...]
    supplier_id: Optional[int] = None
    purchase_order_ref: Optional[str] = None
    batch_reference: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, raw, max_operations: int = DEFAULT_MAX_BULK_OPERATIONS) -> "BulkRestockRequest":
        if not isinstance(raw, dict):
            raise ValidationError("Request body must be an object")
        operations = raw.get("operations")
        if not isinstance(operations, list) or not operations:
            raise ValidationError("operations must be a non-empty list")
        if len(operations) > max_operations:
            raise ValidationError(f"A batch may contain at most {max_operations} operations")
        supplier_id = raw.get("supplierId")
        if supplier_id is not None and (isinstance(supplier_id, bool) or not isinstance(supplier_id, int)):
            raise ValidationError("supplierId must be an integer")
        return cls(
            operations=tuple(RestockOperation.from_dict(op) for op in operations),
            supplier_id=supplier_id,
            purchase_order_ref=_text(raw.get("purchaseOrderRef"), "purchaseOrderRef"),
            batch_reference=_text(raw.get("batchReference"), "batchReference"),
            notes=_text(raw.get("notes"), "notes"),
        )


@dataclass(frozen=True)
class RestockResult:
    product_id: int
    success: bool
    previous_stock: Optional[float] = None
    new_stock: Optional[float] = None
    quantity_added: Optional[float] = None
    unit: Optional[str] = None
    movement_number: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, product_id: int, message: str, code: str) -> "RestockResult":
        return cls(product_id=product_id, success=False, error=message, error_code=code)

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "success": self.success,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "quantity_added": self.quantity_added,
            "unit": self.unit,
            "movement_number": self.movement_number,
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass(frozen=True)
class BatchResult:
    batch_reference: str
    batch_id: int
    status: str
    total_operations: int
    success_count: int
    failure_count: int
    results: list[RestockResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "batch_reference": self.batch_reference,
            "batch_id": self.batch_id,
            "status": self.status,
            "total_operations": self.total_operations,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass(frozen=True)
class RestockSuggestion:
    product: dict
    current_stock: float
    reorder_point: float
    suggested_quantity: float
    priority: str
    days_until_stockout: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "product": self.product,
            "current_stock": self.current_stock,
            "reorder_point": self.reorder_point,
            "suggested_quantity": self.suggested_quantity,
            "priority": self.priority,
            "days_until_stockout": self.days_until_stockout,
        }


# =============================================================================
# SUGGESTIONS
# =============================================================================

def classify_priority(current_stock: float, reorder_point: float) -> str:
    if current_stock <= 0:
        return "high"
    if current_stock <= reorder_point:
        return "medium"
    return "low"


def build_suggestion(product, threshold: float = 1.0) -> Optional[RestockSuggestion]:
    """Suggestion for one product, or None when it has no deficit at this threshold."""
    deficit = stock_service.restock_deficit(product, threshold)
    if deficit <= 0:
        return None
    return RestockSuggestion(
        product={
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "base_unit": product.base_unit,
        },
        current_stock=product.current_stock,
        reorder_point=product.reorder_point,
        suggested_quantity=deficit,
        priority=classify_priority(product.current_stock, product.reorder_point),
        days_until_stockout=stock_service.estimate_days_until_stockout(product),
    )


def order_suggestions(suggestions: list[RestockSuggestion]) -> list[RestockSuggestion]:
    """Highest priority first; input order is kept within a priority."""
    return sorted(suggestions, key=lambda s: PRIORITY_RANK[s.priority])


def suggest(
    threshold: float = 1.0,
    category: Optional[str] = None,
    supplier_id: Optional[int] = None,
) -> list[RestockSuggestion]:
    _number(threshold, "threshold")
    if threshold < 0:
        raise ValidationError("threshold must not be negative")

    with store_operation("restock-suggestions"):
        products = (
            active_products(category=category, supplier_id=supplier_id)
            .order_by(Product.name.asc(), Product.id.asc())
            .all()
        )

    suggestions = [s for s in (build_suggestion(p, threshold) for p in products) if s is not None]
    return order_suggestions(suggestions)


def summarize(suggestions: list[RestockSuggestion]) -> dict:
    summary = {"total": len(suggestions), "high": 0, "medium": 0, "low": 0}
    for s in suggestions:
        summary[s.priority] += 1
    return summary


# =============================================================================
# RESTOCK EXECUTION
# =============================================================================

def _to_base_units(quantity: float, unit: str, base_unit: str) -> float:
    try:
        return unit_conversion.convert(quantity, unit, base_unit).value
    except UnknownUnit as exc:
        raise UnitMismatch(unit, base_unit, str(exc)) from exc


def restock_product(
    operation: RestockOperation,
    created_by: Optional[int],
    *,
    batch_id: Optional[int] = None,
    default_reference: Optional[str] = None,
) -> RestockResult:
    """
    Restock one product in one transaction.

    Raises ProductNotFound, ProductInactive, ValidationError, UnitMismatch
    or StoreUnavailable; on any of them nothing is persisted.
    """
    try:
        with store_operation(f"restock:{operation.product_id}"):
            product = movement_service.load_product_for_update(operation.product_id)
            if not product.is_active:
                raise ProductInactive(operation.product_id)
            if not math.isfinite(operation.quantity) or operation.quantity <= 0:
                raise ValidationError("Quantity must be positive")

            unit = operation.unit or product.base_unit
            converted = _to_base_units(operation.quantity, unit, product.base_unit)

            now = utcnow()
            analytics = stock_service.calculate_restock_analytics(product, converted, now)
            updates = {
                # Count and average are computed in SQL from the row being updated
                "restock_count": Product.restock_count + 1,
                "average_restock_quantity": (
                    (Product.average_restock_quantity * Product.restock_count + converted)
                    / (Product.restock_count + 1)
                ),
                # Frequency comes from the row as read above. SQLite takes no row
                # lock on that read, so if another restock has bumped version_id
                # since, its frequency is kept instead of being overwritten.
                "restock_frequency": case(
                    (Product.version_id == product.version_id, analytics.restock_frequency),
                    else_=Product.restock_frequency,
                ),
                "last_restock_date": analytics.last_restock_date,
            }
            if operation.unit_cost is not None:
                updates["unit_cost"] = operation.unit_cost

            result = movement_service.record_movement(
                product.id,
                "restock",
                operation.quantity,
                unit,
                product=product,
                reference=operation.reference or default_reference,
                notes=operation.notes or "Product restocked",
                unit_cost=operation.unit_cost,
                batch_id=batch_id,
                created_by=created_by,
                product_updates=updates,
                commit=False,
            )
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return RestockResult(
        product_id=operation.product_id,
        success=True,
        previous_stock=result.previous_stock,
        new_stock=result.new_stock,
        quantity_added=converted,
        unit=unit,
        movement_number=result.movement.movement_number,
    )


def _finish_status(success_count: int, failure_count: int) -> str:
    if failure_count == 0:
        return BATCH_COMPLETED
    if success_count == 0:
        return BATCH_FAILED
    return BATCH_PARTIAL


def bulk_restock(request: BulkRestockRequest, created_by: Optional[int]) -> BatchResult:
    """
    Run every line of a batch through restock_product, continuing past failures.

    Only deterministic line failures (ClinicError) and unexpected database
    errors on a line are captured into that line's result.
    """
    with store_operation("restock-batch:create"):
        if request.supplier_id is not None:
            supplier = exclude_deleted(db.session.query(Supplier.id), Supplier).filter(
                Supplier.id == request.supplier_id
            ).first()
            if supplier is None:
                raise SupplierNotFound(request.supplier_id)

        reference = request.batch_reference or sequence_service.next_document_number(
            document_type="batch", prefix="BATCH"
        )
        exists = db.session.query(RestockBatch.id).filter_by(batch_reference=reference).first()
        if exists:
            raise ValidationError(f"Batch reference '{reference}' already exists")

        batch = RestockBatch(
            batch_reference=reference,
            supplier_id=request.supplier_id,
            purchase_order_ref=request.purchase_order_ref,
            notes=request.notes,
            status=BATCH_PENDING,
            total_operations=len(request.operations),
            created_by_user_id=created_by,
        )
        db.session.add(batch)
        db.session.commit()
        batch_id = batch.id

        batch.status = BATCH_PROCESSING
        db.session.commit()

    results: list[RestockResult] = []
    for operation in request.operations:
        try:
            result = restock_product(
                operation, created_by, batch_id=batch_id, default_reference=reference
            )
        except ClinicError as exc:
            logger.warning(
                "Batch %s line for product %s failed: %s", reference, operation.product_id, exc.code
            )
            result = RestockResult.failure(operation.product_id, str(exc), exc.code)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Batch %s line for product %s failed", reference, operation.product_id)
            result = RestockResult.failure(operation.product_id, "Restock failed", "INTERNAL_ERROR")
        results.append(result)

    success_count = sum(1 for r in results if r.success)
    failure_count = len(results) - success_count
    status = _finish_status(success_count, failure_count)

    with store_operation("restock-batch:finish"):
        batch = db.session.get(RestockBatch, batch_id)
        batch.status = status
        batch.success_count = success_count
        batch.failure_count = failure_count
        batch.completed_at = utcnow()
        db.session.commit()

    logger.info(
        "Bulk restock %s %s: %d/%d lines succeeded",
        reference, status, success_count, len(results),
    )
    return BatchResult(
        batch_reference=reference,
        batch_id=batch_id,
        status=status,
        total_operations=len(results),
        success_count=success_count,
        failure_count=failure_count,
        results=results,
    )


# =============================================================================
# HISTORY
# =============================================================================

def _bounded(limit, default: int) -> int:
    if limit is None:
        return default
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer")
    return min(limit, MAX_HISTORY_LIMIT)


def get_restock_history(product_id: Optional[int] = None, limit: Optional[int] = 50) -> list[InventoryMovement]:
    limit = _bounded(limit, 50)
    with store_operation("restock-history"):
        query = db.session.query(InventoryMovement).filter(InventoryMovement.movement_type == "restock")
        if product_id is not None:
            query = query.filter(InventoryMovement.product_id == product_id)
        return (
            query.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
            .limit(limit)
            .all()
        )


def get_batch_history(limit: Optional[int] = 20) -> list[RestockBatch]:
    limit = _bounded(limit, 20)
    with store_operation("restock-batch-history"):
        return (
            db.session.query(RestockBatch)
            .order_by(RestockBatch.created_at.desc(), RestockBatch.id.desc())
            .limit(limit)
            .all()
        )


def get_batch_movements(batch_reference: str) -> tuple[RestockBatch, list[InventoryMovement]]:
    with store_operation("restock-batch-movements"):
        batch = db.session.query(RestockBatch).filter_by(batch_reference=batch_reference).one_or_none()
        if batch is None:
            raise BatchNotFound(batch_reference)
        movements = (
            db.session.query(InventoryMovement)
            .filter(InventoryMovement.batch_id == batch.id)
            .order_by(InventoryMovement.id.asc())
            .all()
        )
    return batch, movements
