# Overview: Flask API routes for restock, units and the stock ledger; parses input and returns JSON responses.

# backend/clinicstock/routes/inventory.py
"""
Inventory routes.

SECURITY: All routes require authentication.
- Read operations require inventory.canViewInventory
- Restock suggestions and single restocks require inventory.canCreateRestockOrders
- Bulk restock additionally requires inventory.canBulkOperations
- The ledger view accepts canViewInventory OR canManageStock

Request bodies use camelCase keys ({productId, quantity, unitCost, ...});
responses use snake_case.
"""

import math

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from ..decorators import require_all_permissions, require_any_permission, require_auth, require_permission
from ..errors import ValidationError
from ..services import movement_service, restock_service, unit_conversion
from ..services.restock_service import BulkRestockRequest, RestockOperation


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _query_number(name: str, cast=int, default=None):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a {'number' if cast is float else 'integer'}")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


# =============================================================================
# UNITS
# =============================================================================

@inventory_bp.get("/units")
@require_auth
@require_permission("inventory", "canViewInventory")
def list_units_route():
    """
    List known measurement units.

    Query params:
    - type: weight | volume | length | count (optional filter)
    """
    unit_type = request.args.get("type")
    units = unit_conversion.list_units()
    if unit_type:
        if unit_type not in unit_conversion.UNIT_TYPES:
            raise ValidationError(f"type must be one of: {', '.join(unit_conversion.UNIT_TYPES)}")
        units = [u for u in units if u["type"] == unit_type]
    return jsonify({"units": units, "count": len(units)})


@inventory_bp.post("/units/convert")
@require_auth
@require_permission("inventory", "canViewInventory")
def convert_units_route():
    """
    Convert a quantity between two units of the same type.

    Request body: {value, fromUnit, toUnit}
    """
    payload = _json_body()
    value = payload.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError("value must be a finite number")
    from_unit = payload.get("fromUnit")
    to_unit = payload.get("toUnit")
    if not isinstance(from_unit, str) or not isinstance(to_unit, str):
        raise ValidationError("fromUnit and toUnit are required")

    result = unit_conversion.convert(value, from_unit, to_unit)
    return jsonify({"conversion": result.to_dict()})


# =============================================================================
# RESTOCK
# =============================================================================

@inventory_bp.get("/restock/suggestions")
@require_auth
@require_permission("inventory", "canCreateRestockOrders")
def restock_suggestions_route():
    """
    Products whose stock is below reorder_point * threshold.

    Query params:
    - threshold: float (default 1.0)
    - category: str
    - supplier_id: int
    """
    suggestions = restock_service.suggest(
        threshold=_query_number("threshold", float, 1.0),
        category=request.args.get("category") or None,
        supplier_id=_query_number("supplier_id"),
    )
    return jsonify({
        "suggestions": [s.to_dict() for s in suggestions],
        "summary": restock_service.summarize(suggestions),
    })


@inventory_bp.post("/restock")
@require_auth
@require_permission("inventory", "canCreateRestockOrders")
def restock_route():
    """
    Restock a single product.

    Request body: {productId, quantity, unit?, reference?, notes?, unitCost?}
    """
    operation = RestockOperation.from_dict(_json_body())
    try:
        result = restock_service.restock_product(operation, g.current_identity.id)
    except SQLAlchemyError:
        current_app.logger.exception("Failed to restock product %s", operation.product_id)
        return jsonify({"error": "Restock failed", "code": "INTERNAL_ERROR"}), 500

    return jsonify({"result": result.to_dict()}), 201


@inventory_bp.post("/restock/bulk")
@require_auth
@require_all_permissions(
    ("inventory", "canCreateRestockOrders"),
    ("inventory", "canBulkOperations"),
)
def bulk_restock_route():
    """
    Restock many products under one batch.

    Request body: {operations: [...], supplierId?, purchaseOrderRef?, batchReference?, notes?}

    Lines run independently; the response reports each one. 201 when every
    line succeeded, 207 when some failed, 422 when none succeeded.
    """
    bulk_request = BulkRestockRequest.from_dict(
        _json_body(), max_operations=current_app.config["MAX_BULK_OPERATIONS"]
    )
    batch = restock_service.bulk_restock(bulk_request, g.current_identity.id)

    if batch.status == restock_service.BATCH_COMPLETED:
        status_code = 201
    elif batch.status == restock_service.BATCH_PARTIAL:
        status_code = 207
    else:
        status_code = 422
    return jsonify({"batch": batch.to_dict()}), status_code


@inventory_bp.get("/restock")
@require_auth
@require_permission("inventory", "canViewInventory")
def restock_history_route():
    """
    Recent restock movements, newest first.

    Query params:
    - product_id: int
    - limit: int (default 50, max 500)
    """
    movements = restock_service.get_restock_history(
        product_id=_query_number("product_id"),
        limit=_query_number("limit", default=50),
    )
    return jsonify({"movements": [m.to_dict() for m in movements], "count": len(movements)})


@inventory_bp.get("/restock/batches")
@require_auth
@require_permission("inventory", "canViewInventory")
def batch_history_route():
    """Recent restock batches, newest first. Query params: limit (default 20)."""
    batches = restock_service.get_batch_history(limit=_query_number("limit", default=20))
    return jsonify({"batches": [b.to_dict() for b in batches], "count": len(batches)})


@inventory_bp.get("/restock/batches/<string:batch_reference>")
@require_auth
@require_permission("inventory", "canViewInventory")
def batch_detail_route(batch_reference: str):
    batch, movements = restock_service.get_batch_movements(batch_reference)
    return jsonify({"batch": batch.to_dict(), "movements": [m.to_dict() for m in movements]})


# =============================================================================
# LEDGER
# =============================================================================

@inventory_bp.get("/products/<int:product_id>/ledger")
@require_auth
@require_any_permission(
    ("inventory", "canViewInventory"),
    ("inventory", "canManageStock"),
)
def product_ledger_route(product_id: int):
    """
    Ledger consistency check plus the product's recent movements.

    Query params:
    - limit: int (default 50)
    """
    limit = _query_number("limit", default=50)
    if limit < 1:
        raise ValidationError("limit must be a positive integer")

    check = movement_service.verify_ledger(product_id)
    movements = movement_service.get_product_movements(product_id, limit=min(limit, 500))
    if not check.consistent:
        current_app.logger.error(
            "Ledger mismatch for product %s: stock=%s ledger=%s",
            product_id, check.current_stock, check.ledger_total,
        )
    return jsonify({"ledger": check.to_dict(), "movements": [m.to_dict() for m in movements]})
