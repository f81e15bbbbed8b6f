# Overview: Service-layer operations for the stock ledger; the single write path for product stock.

"""
Stock Ledger

Every stock change is one transaction containing:
1. a movement number from the sequence generator (row lock held, not committed)
2. an atomic `UPDATE products SET current_stock = current_stock + delta`
3. the InventoryMovement row recording the same delta

Nothing is read-modify-written, so concurrent movements on one product
accumulate correctly. Any failure rolls back all three.

SIGN RULES (delta applied to current_stock, in base units):
- sale, fixed_blend, bundle_sale, bundle_blend_ingredient, blend_ingredient,
  custom_blend: decrement
- return, restock, opening: increment
- adjustment: the caller's sign
- transfer: recorded, no stock effect

INVARIANT: current_stock == sum(converted_quantity) over stock-affecting
movements of the product.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select, update

from ..errors import ProductNotFound, ValidationError
from ..extensions import db
from ..models import InventoryMovement, Product
from . import sequence_service, unit_conversion
from .concurrency import lock_for_update, store_operation

logger = logging.getLogger(__name__)


DECREMENTING_TYPES = {
    "sale",
    "fixed_blend",
    "bundle_sale",
    "bundle_blend_ingredient",
    "blend_ingredient",
    "custom_blend",
}
INCREMENTING_TYPES = {"return", "restock", "opening"}
SIGNED_TYPES = {"adjustment"}
NON_STOCK_TYPES = {"transfer"}

MOVEMENT_TYPES = DECREMENTING_TYPES | INCREMENTING_TYPES | SIGNED_TYPES | NON_STOCK_TYPES

# movement_type -> (counter document type, number prefix)
MOVEMENT_NUMBERING = {
    "restock": ("restock", "RST"),
    "adjustment": ("adjustment", "ADJ"),
    "opening": ("opening", "OPN"),
    "return": ("return", "RTN"),
}
DEFAULT_NUMBERING = ("movement", "MOV")


@dataclass(frozen=True)
class MovementResult:
    movement: InventoryMovement
    previous_stock: float
    new_stock: float


@dataclass(frozen=True)
class LedgerCheck:
    product_id: int
    current_stock: float
    ledger_total: float
    consistent: bool

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "current_stock": self.current_stock,
            "ledger_total": self.ledger_total,
            "consistent": self.consistent,
        }


def stock_delta(movement_type: str, converted_quantity: float) -> float:
    if movement_type in DECREMENTING_TYPES:
        return -abs(converted_quantity)
    if movement_type in INCREMENTING_TYPES:
        return abs(converted_quantity)
    if movement_type in SIGNED_TYPES:
        return converted_quantity
    return 0


def load_product_for_update(product_id: int) -> Product:
    """Fetch a non-deleted product with a row lock (where the dialect supports it)."""
    product = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id, Product.is_deleted.is_(False))
    ).one_or_none()
    if product is None:
        raise ProductNotFound(product_id)
    return product


def record_movement(
    product_id: int,
    movement_type: str,
    quantity: float,
    unit: Optional[str] = None,
    *,
    product: Optional[Product] = None,
    reference: Optional[str] = None,
    notes: Optional[str] = None,
    unit_cost: Optional[float] = None,
    batch_id: Optional[int] = None,
    created_by: Optional[int] = None,
    product_updates: Optional[dict] = None,
    commit: bool = True,
) -> MovementResult:
    """
    Apply a stock movement and append its ledger entry.

    quantity is in `unit` (default: the product's base unit) and is
    converted to the base unit before it touches stock. product_updates are
    extra column values folded into the same UPDATE as the stock change.

    With commit=False the caller owns the transaction (and must roll back
    on failure).
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"Unknown movement type: {movement_type}")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or not math.isfinite(quantity):
        raise ValidationError("quantity must be a finite number")

    try:
        with store_operation(f"movement:{movement_type}:{product_id}"):
            if product is None:
                product = load_product_for_update(product_id)
            unit = unit or product.base_unit

            converted = unit_conversion.convert(quantity, unit, product.base_unit).value
            delta = stock_delta(movement_type, converted)
            entered = math.copysign(quantity, delta) if delta else quantity

            document_type, prefix = MOVEMENT_NUMBERING.get(movement_type, DEFAULT_NUMBERING)
            number = sequence_service.next_document_number(
                document_type=document_type, prefix=prefix, commit=False
            )

            values = {"version_id": Product.version_id + 1}
            if delta:
                values["current_stock"] = Product.current_stock + delta
            if product_updates:
                values.update(product_updates)
            db.session.execute(
                update(Product)
                .where(Product.id == product.id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

            movement = InventoryMovement(
                product_id=product.id,
                product_name=product.name,
                movement_type=movement_type,
                quantity=entered,
                unit=unit,
                base_unit=product.base_unit,
                converted_quantity=delta if movement_type not in NON_STOCK_TYPES else converted,
                movement_number=number,
                reference=reference,
                batch_id=batch_id,
                unit_cost=unit_cost,
                notes=notes,
                created_by_user_id=created_by,
            )
            db.session.add(movement)
            db.session.flush()

            new_stock = db.session.execute(
                select(Product.current_stock).where(Product.id == product.id)
            ).scalar_one()
            previous_stock = new_stock - delta
            # The ORM copy was bypassed by the UPDATE above
            db.session.expire(product)

            if commit:
                db.session.commit()
    except Exception:
        if commit:
            db.session.rollback()
        raise

    logger.info(
        "Movement %s %s product=%s delta=%s stock %s -> %s",
        number, movement_type, product_id, delta, previous_stock, new_stock,
    )
    return MovementResult(movement=movement, previous_stock=previous_stock, new_stock=new_stock)


def get_ledger_balance(product_id: int) -> float:
    """Sum of stock-affecting movement quantities for a product, in base units."""
    with store_operation(f"ledger-balance:{product_id}"):
        total = db.session.execute(
            select(func.coalesce(func.sum(InventoryMovement.converted_quantity), 0))
            .where(
                InventoryMovement.product_id == product_id,
                InventoryMovement.movement_type.notin_(NON_STOCK_TYPES),
            )
        ).scalar_one()
    return float(total)


def verify_ledger(product_id: int, tolerance: float = 1e-6) -> LedgerCheck:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFound(product_id)
    total = get_ledger_balance(product_id)
    return LedgerCheck(
        product_id=product_id,
        current_stock=product.current_stock,
        ledger_total=total,
        consistent=abs(product.current_stock - total) <= tolerance,
    )


def get_product_movements(product_id: int, limit: int = 50) -> list[InventoryMovement]:
    return (
        db.session.query(InventoryMovement)
        .filter(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )
