# backend/stockroom/services/products_service.py
"""
Products Service

SKU is unique across the catalog. Duplicate SKUs are rejected with
ConflictError before the insert so the caller gets a readable message
instead of an IntegrityError.
"""
from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product
from ..validation import ConflictError

PRODUCT_MUTABLE_FIELDS = {
    "sku", "product_name", "category", "brand", "description",
    "color", "size", "gender", "price_cents", "cost_price_cents",
    "warehouse", "is_featured",
}

DUPLICATE_SKU_MESSAGE = "Product with this SKU already exists"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(sku: str, *, exclude_id: str | None = None) -> None:
    existing = get_product_by_sku(sku)
    if existing is not None and existing.id != exclude_id:
        raise ConflictError(DUPLICATE_SKU_MESSAGE)


def list_products() -> list[Product]:
    return db.session.query(Product).order_by(Product.product_name.asc(), Product.sku.asc()).all()


def get_product(product_id: str) -> Product | None:
    return db.session.get(Product, product_id)


def get_product_by_sku(sku: str) -> Product | None:
    """Exact SKU lookup (barcode/QR scan)."""
    return db.session.query(Product).filter_by(sku=sku).first()


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises:
        ConflictError: If SKU already exists
    """
    _ensure_sku_available(patch["sku"])

    # Opening stock only; later changes go through stock_service
    product = Product(stock_quantity=patch.get("stock_quantity") or 0)
    apply_product_patch(product, patch)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(DUPLICATE_SKU_MESSAGE)
    return product


def update_product(*, product_id: str, patch: dict) -> Product | None:
    """
    Update a product. Returns None when it does not exist.

    Raises:
        ConflictError: If the new SKU belongs to another product
    """
    product = get_product(product_id)
    if product is None:
        return None

    if "sku" in patch:
        _ensure_sku_available(patch["sku"], exclude_id=product.id)

    apply_product_patch(product, patch)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(DUPLICATE_SKU_MESSAGE)
    return product


def delete_product(*, product_id: str) -> bool:
    """
    Delete a product.

    NOTE: Orders, returns and stock movements keep their own name/SKU
    snapshot, so they stay readable after the product is gone. Open orders
    referencing the product are not checked.
    """
    product = get_product(product_id)
    if product is None:
        return False
    db.session.delete(product)
    db.session.commit()
    return True
