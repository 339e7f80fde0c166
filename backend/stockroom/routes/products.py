# Overview: Flask API routes for the product catalog; parses input and returns JSON responses.

# backend/stockroom/routes/products.py
"""
Product catalog routes.

Prices cross the API as two-decimal strings ("19.99") and are stored in
cents. Duplicate SKUs are rejected with 400.
"""
from flask import Blueprint, request, jsonify, current_app

from ..models import Product
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "product_name", "category", "brand", "description",
        "color", "size", "gender", "price", "cost_price",
        "stock_quantity", "warehouse", "is_featured",
    },
    required_on_create={"sku", "product_name", "category", "price"},
    money_fields={"price": "price_cents", "cost_price": "cost_price_cents"},
)

# stock_quantity is set on create only; afterwards use /api/stock-movements
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock_quantity"},
    money_fields=PRODUCT_POLICY.money_fields,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
def list_products():
    return jsonify([p.to_dict() for p in products_service.list_products()])


@products_bp.get("/<product_id>")
def get_product(product_id: str):
    product = products_service.get_product(product_id)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.get("/sku/<path:sku>")
def get_product_by_sku(sku: str):
    """Scan lookup: exact SKU match."""
    product = products_service.get_product_by_sku(sku)
    if product is None:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to save product")
        return {"error": "Failed to save product"}, 500

    return created.to_dict(), 201


@products_bp.patch("/<product_id>")
def update_product_route(product_id: str):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to save product")
        return {"error": "Failed to save product"}, 500

    if updated is None:
        return {"error": "Product not found"}, 404

    return updated.to_dict(), 200


@products_bp.delete("/<product_id>")
def delete_product_route(product_id: str):
    if not products_service.delete_product(product_id=product_id):
        return {"error": "Product not found"}, 404
    return "", 204
