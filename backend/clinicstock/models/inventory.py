from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

class Supplier(db.Model):
    """Supplier reference for products and restock batches."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_active_deleted", "is_active", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Soft delete (see repository.soft_delete / restore)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, nullable=True)
    deletion_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data and its live stock level.

    STOCK RULES:
    - current_stock is signed: negative means oversold / backordered
    - current_stock only moves together with an InventoryMovement row, through
      movement_service.record_movement; never assign it directly
    - the sum of converted_quantity over a product's movements equals
      current_stock

    base_unit is the unit current_stock is counted in; movements entered in
    other units are converted to it first.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active_deleted", "is_active", "is_deleted"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    base_unit = db.Column(db.String(32), nullable=False, default="piece")

    current_stock = db.Column(db.Float, nullable=False, default=0)
    reserved_stock = db.Column(db.Float, nullable=False, default=0)
    reorder_point = db.Column(db.Float, nullable=False, default=0)

    unit_cost = db.Column(db.Float, nullable=True)

    # Rolling restock analytics, maintained by restock_service
    average_restock_quantity = db.Column(db.Float, nullable=False, default=0)
    restock_count = db.Column(db.Integer, nullable=False, default=0)
    # Days between restocks; 30 until there is history
    restock_frequency = db.Column(db.Integer, nullable=False, default=30)
    last_restock_date = db.Column(db.DateTime(timezone=True), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Soft delete (see repository.soft_delete / restore)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_by_user_id = db.Column(db.Integer, nullable=True)
    deletion_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "supplier_id": self.supplier_id,
            "base_unit": self.base_unit,
            "current_stock": self.current_stock,
            "reserved_stock": self.reserved_stock,
            "reorder_point": self.reorder_point,
            "unit_cost": self.unit_cost,
            "average_restock_quantity": self.average_restock_quantity,
            "restock_count": self.restock_count,
            "restock_frequency": self.restock_frequency,
            "last_restock_date": to_utc_z(self.last_restock_date),
            "is_active": self.is_active,
            "is_deleted": self.is_deleted,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class RestockBatch(db.Model):
    """
    Parent record for a bulk restock.

    Lifecycle: pending -> processing -> completed | partial | failed.
    Each successful line item links back through InventoryMovement.batch_id.
    """
    __tablename__ = "restock_batches"
    __table_args__ = (
        db.UniqueConstraint("batch_reference", name="uq_restock_batches_reference"),
        db.Index("ix_restock_batches_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_reference = db.Column(db.String(64), nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    purchase_order_ref = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(
        db.String(16),
        nullable=False,
        default="pending",
        server_default="pending",
        index=True,
    )

    total_operations = db.Column(db.Integer, nullable=False, default=0)
    success_count = db.Column(db.Integer, nullable=False, default=0)
    failure_count = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supplier = db.relationship("Supplier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_reference": self.batch_reference,
            "supplier_id": self.supplier_id,
            "purchase_order_ref": self.purchase_order_ref,
            "notes": self.notes,
            "status": self.status,
            "total_operations": self.total_operations,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "completed_at": to_utc_z(self.completed_at),
        }


class InventoryMovement(db.Model):
    """
    Immutable stock ledger entry.

    quantity/unit are what the caller entered; converted_quantity is the
    signed amount in the product's base unit that was applied to
    current_stock. product_name is a snapshot taken at write time.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.UniqueConstraint("movement_number", name="uq_inventory_movements_number"),
        db.Index("ix_inventory_movements_product_created", "product_id", "created_at"),
        db.Index("ix_inventory_movements_type_created", "movement_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    # sale | return | adjustment | restock | transfer | opening | fixed_blend |
    # bundle_sale | bundle_blend_ingredient | blend_ingredient | custom_blend
    movement_type = db.Column(db.String(32), nullable=False, index=True)

    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    base_unit = db.Column(db.String(32), nullable=False)
    converted_quantity = db.Column(db.Float, nullable=False)

    movement_number = db.Column(db.String(64), nullable=False)
    reference = db.Column(db.String(128), nullable=True, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("restock_batches.id"), nullable=True, index=True)

    unit_cost = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    batch = db.relationship("RestockBatch", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "movement_type": self.movement_type,
            "quantity": self.quantity,
            "unit": self.unit,
            "base_unit": self.base_unit,
            "converted_quantity": self.converted_quantity,
            "movement_number": self.movement_number,
            "reference": self.reference,
            "batch_id": self.batch_id,
            "unit_cost": self.unit_cost,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
