# backend/stockroom/routes/stock.py
"""
Stock ledger routes.

- POST creates an append-only movement and updates the product's on-hand
  count in the same transaction.
- "out" movements never push stock below zero; the response carries both the
  requested quantity and the applied_delta.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import StockMovement
from ..services import stock_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    enforce_rules_stock_movement,
)

stock_bp = Blueprint("stock", __name__, url_prefix="/api/stock-movements")

STOCK_MOVEMENT_POLICY = ModelValidationPolicy(
    # product_name and sku are accepted for client compatibility; the stored
    # snapshot always comes from the product row.
    writable_fields={"product_id", "product_name", "sku", "type", "quantity", "reason", "notes"},
    required_on_create={"product_id", "type", "quantity", "reason"},
)


@stock_bp.get("")
def list_movements_route():
    product_id = request.args.get("product_id")
    rows = stock_service.list_movements(product_id=product_id)
    return jsonify([m.to_dict() for m in rows])


@stock_bp.get("/low-stock")
def low_stock_route():
    threshold = request.args.get("threshold", type=int)
    if threshold is None:
        threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    products = stock_service.low_stock_products(threshold=threshold)
    return jsonify([p.to_dict() for p in products])


@stock_bp.post("")
def create_movement_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=STOCK_MOVEMENT_POLICY,
            partial=False,
        )
        enforce_rules_stock_movement(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        movement = stock_service.apply_movement(
            product_id=patch["product_id"],
            movement_type=patch["type"],
            quantity=patch["quantity"],
            reason=patch["reason"],
            notes=patch.get("notes"),
        )
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create stock movement")
        return {"error": "Failed to create stock movement"}, 500

    return movement.to_dict(), 201
