# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/stockroom/routes/returns.py
"""
Return Processing API Routes

WHY: Settle returns and exchanges against an existing order via REST.

Request body for POST:
{
    "order_id": "...",
    "reason": "Wrong size",
    "status": "completed",                   (optional, default: pending)
    "customer_email": "jane@example.com",    (optional, defaults to the order's)
    "items": [
        {"product_id": "...", "quantity": 1, "exchange_product_id": "..."}
    ]
}

refund_amount and credit_amount are computed by the settlement service;
client-sent values are ignored, as are per-item price snapshots (the
original order's unit price is always used).

Response 201: the return with its items, plus
- settlement: total_return_value, total_exchange_value, refund_amount, credit_amount
- store_credit: the issued discount code, or null
"""

from flask import Blueprint, request, jsonify, current_app

from ..models import Return, ReturnItem
from ..services import return_service
from ..services.return_service import ReturnLineRequest
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_return,
    enforce_rules_return_item,
    ValidationError,
    NotFoundError,
)


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")

RETURN_POLICY = ModelValidationPolicy(
    writable_fields={"order_id", "reason", "status", "notes", "customer_name", "customer_email"},
    required_on_create={"order_id", "reason"},
)

RETURN_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "notes"},
)

RETURN_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "exchange_product_id"},
    required_on_create={"product_id", "quantity"},
)

# Present in client payloads, computed or looked up by the server
IGNORED_RETURN_FIELDS = ("order_number", "refund_amount", "credit_amount", "return_number")
IGNORED_ITEM_FIELDS = ("product_name", "sku", "unit_price", "subtotal", "exchange_product_name", "id", "return_id")


# =============================================================================
# RETURN CREATION
# =============================================================================

@returns_bp.post("")
def create_return_route():
    """
    Create a return and settle it.

    Returns:
        201: Return created (restocked; store credit issued when due)
        400: Invalid input / no qualifying items
        404: Order or product not found
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    payload = dict(payload)
    items = payload.pop("items", None)
    for key in IGNORED_RETURN_FIELDS:
        payload.pop(key, None)

    if not items or not isinstance(items, list):
        return {"error": "Return must have at least one item"}, 400

    try:
        patch = validate_payload(model=Return, payload=payload, policy=RETURN_POLICY, partial=False)
        enforce_rules_return(patch)

        lines = []
        for raw in items:
            if not isinstance(raw, dict):
                raise ValidationError("Each item must be an object")
            raw = {k: v for k, v in raw.items() if k not in IGNORED_ITEM_FIELDS}
            item_patch = validate_payload(model=ReturnItem, payload=raw, policy=RETURN_ITEM_POLICY, partial=False)
            enforce_rules_return_item(item_patch)
            lines.append(ReturnLineRequest(
                product_id=item_patch["product_id"],
                quantity=item_patch["quantity"],
                exchange_product_id=item_patch.get("exchange_product_id") or None,
            ))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return_doc, settlement, discount_code = return_service.create_return(
            order_id=patch["order_id"],
            lines=lines,
            reason=patch["reason"],
            status=patch.get("status") or return_service.RETURN_STATUS_PENDING,
            notes=patch.get("notes"),
            customer_name=patch.get("customer_name"),
            customer_email=patch.get("customer_email"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except Exception:
        current_app.logger.exception("Failed to create return")
        return {"error": "Failed to create return"}, 500

    body = return_doc.to_dict()
    body["settlement"] = settlement.to_dict()
    body["store_credit"] = discount_code.to_dict() if discount_code else None
    return body, 201


# =============================================================================
# RETURN QUERIES / UPDATES
# =============================================================================

@returns_bp.get("")
def list_returns_route():
    """
    List returns, newest first.

    Query params:
    - order_id: only returns against this order
    """
    order_id = request.args.get("order_id")
    return jsonify([r.to_dict() for r in return_service.list_returns(order_id=order_id)])


@returns_bp.get("/<return_id>")
def get_return_route(return_id: str):
    return_doc = return_service.get_return(return_id)
    if return_doc is None:
        return {"error": "Return not found"}, 404
    return return_doc.to_dict()


@returns_bp.patch("/<return_id>")
def update_return_route(return_id: str):
    """Move a return through its workflow (status) or edit notes."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Return, payload=payload, policy=RETURN_UPDATE_POLICY, partial=True)
        enforce_rules_return(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        return_doc = return_service.update_return(return_id=return_id, patch=patch)
    except Exception:
        current_app.logger.exception("Failed to update return")
        return {"error": "Failed to update return"}, 500

    if return_doc is None:
        return {"error": "Return not found"}, 404
    return return_doc.to_dict(), 200
