# Overview: Flask API routes for store credit (discount codes); parses input and returns JSON responses.

# backend/stockroom/routes/discount_codes.py
"""
Store credit routes.

POST /<code>/use spends part or all of a code's balance:
- 404 when the code does not exist
- 400 for a non-positive amount, an amount above the balance, or an expired code
- 200 {success, remaining_credit, fully_used}; remaining_credit is null once
  the balance reaches zero and the code is deleted
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import store_credit_service
from ..validation import ValidationError

discount_codes_bp = Blueprint("discount_codes", __name__, url_prefix="/api/discount-codes")


@discount_codes_bp.get("")
def list_discount_codes_route():
    customer_email = request.args.get("customer_email")
    codes = store_credit_service.list_credits(customer_email=customer_email)
    return jsonify([c.to_dict() for c in codes])


@discount_codes_bp.get("/<code>")
def get_discount_code_route(code: str):
    discount_code = store_credit_service.get_credit_by_code(code)
    if discount_code is None:
        return {"error": "Discount code not found"}, 404
    return discount_code.to_dict()


@discount_codes_bp.post("/<code>/use")
def use_discount_code_route(code: str):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        result = store_credit_service.redeem(code, payload.get("amount_used"))
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to use discount code")
        return {"error": "Failed to use discount code"}, 500

    if not result.found:
        return {"error": "Discount code not found"}, 404

    return result.to_dict(), 200


@discount_codes_bp.delete("/<credit_id>")
def delete_discount_code_route(credit_id: str):
    if not store_credit_service.delete_credit(credit_id):
        return {"error": "Discount code not found"}, 404
    return "", 204
