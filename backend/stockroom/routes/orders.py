# Overview: Flask API routes for orders; parses input and returns JSON responses.

# backend/stockroom/routes/orders.py
"""
Order routes.

Request body for POST:
{
    "customer_name": "Jane Doe",
    "customer_email": "jane@example.com",   (optional)
    "status": "pending",                    (optional)
    "items": [
        {"product_id": "...", "quantity": 2, "unit_price": "10.00"}
    ],
    "credit_code": "CREDIT-...",            (optional)
    "amount_used": "15.00"                  (required with credit_code)
}

Subtotals and the order total are computed server-side; client-sent
"subtotal" / "total_amount" values are ignored.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Order, OrderItem
from ..services import order_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_order,
    enforce_rules_order_item,
    ValidationError,
    NotFoundError,
)

orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")

ORDER_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "customer_email", "customer_phone", "status", "notes"},
    required_on_create={"customer_name"},
)

ORDER_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "product_name", "sku", "quantity", "unit_price"},
    required_on_create={"product_id", "quantity"},
    money_fields={"unit_price": "unit_price_cents"},
)

# Present in client payloads, recomputed by the server
IGNORED_ORDER_FIELDS = ("total_amount", "order_number")
IGNORED_ITEM_FIELDS = ("subtotal", "id", "order_id")


@orders_bp.get("")
def list_orders_route():
    return jsonify([o.to_dict() for o in order_service.list_orders()])


@orders_bp.get("/<order_id>")
def get_order_route(order_id: str):
    order = order_service.get_order(order_id)
    if order is None:
        return {"error": "Order not found"}, 404
    return order.to_dict()


@orders_bp.get("/customer/<path:email>")
def list_customer_orders_route(email: str):
    return jsonify([o.to_dict() for o in order_service.list_orders_by_customer_email(email)])


@orders_bp.post("")
def create_order_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    payload = dict(payload)
    items = payload.pop("items", None)
    credit_code = payload.pop("credit_code", None)
    amount_used = payload.pop("amount_used", None)
    for key in IGNORED_ORDER_FIELDS:
        payload.pop(key, None)

    if not items or not isinstance(items, list):
        return {"error": "Order must have at least one item"}, 400

    try:
        order_patch = validate_payload(model=Order, payload=payload, policy=ORDER_POLICY, partial=False)
        enforce_rules_order(order_patch)

        item_patches = []
        for raw in items:
            if not isinstance(raw, dict):
                raise ValidationError("Each item must be an object")
            raw = {k: v for k, v in raw.items() if k not in IGNORED_ITEM_FIELDS}
            item_patch = validate_payload(model=OrderItem, payload=raw, policy=ORDER_ITEM_POLICY, partial=False)
            enforce_rules_order_item(item_patch)
            item_patches.append(item_patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        order, redemption = order_service.create_order(
            order_patch=order_patch,
            item_patches=item_patches,
            credit_code=credit_code,
            amount_used=amount_used,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return {"error": "Failed to create order"}, 500

    body = order.to_dict()
    if redemption is not None:
        body["store_credit"] = redemption.to_dict()
    return body, 201


@orders_bp.patch("/<order_id>")
def update_order_route(order_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_POLICY, partial=True)
        enforce_rules_order(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        order = order_service.update_order(order_id=order_id, patch=patch)
    except Exception:
        current_app.logger.exception("Failed to update order")
        return {"error": "Failed to update order"}, 500

    if order is None:
        return {"error": "Order not found"}, 404
    return order.to_dict(), 200


@orders_bp.delete("/<order_id>")
def delete_order_route(order_id: str):
    if not order_service.delete_order(order_id=order_id):
        return {"error": "Order not found"}, 404
    return "", 204
