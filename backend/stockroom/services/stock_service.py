# Overview: Service-layer operations for the stock ledger; encapsulates business logic and database work.

# backend/stockroom/services/stock_service.py
"""
Stock Ledger Invariants (authoritative)

- Product.stock_quantity is the on-hand count; after product creation it
  is only written here.
- Every change appends one StockMovement row in the same DB transaction.
- Movement rows are append-only: no updates, no deletes.
- stock_quantity never goes negative. An "out" movement larger than the
  on-hand count floors the product at zero; the row keeps the requested
  quantity and records the real change in applied_delta.
- A movement for an unknown product fails as a whole: nothing is written.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, StockMovement
from ..validation import NotFoundError, ValidationError, STOCK_MOVEMENT_TYPES
from stockroom.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"


def _next_stock_level(current: int, movement_type: str, quantity: int) -> int:
    if movement_type == MOVEMENT_IN:
        return current + quantity
    if movement_type == MOVEMENT_OUT:
        return max(0, current - quantity)
    # adjustment: absolute count
    return max(0, quantity)


def _load_product(product_id: str, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _apply_movement_inner(
    *,
    product_id: str,
    movement_type: str,
    quantity: int,
    reason: str,
    notes: str | None = None,
) -> StockMovement:
    """
    Apply one movement inside the caller's transaction (flush, no commit).

    Used directly by return_service so restocking commits together with the
    return document.
    """
    if movement_type not in STOCK_MOVEMENT_TYPES:
        raise ValidationError("type must be one of: in, out, adjustment")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
        raise ValidationError("quantity must be a non-negative integer")

    product = _load_product(product_id, lock=True)

    before = product.stock_quantity or 0
    after = _next_stock_level(before, movement_type, quantity)
    product.stock_quantity = after

    movement = StockMovement(
        product_id=product.id,
        product_name=product.product_name,
        sku=product.sku,
        type=movement_type,
        quantity=quantity,
        applied_delta=after - before,
        reason=reason,
        notes=notes,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def apply_movement(
    product_id: str,
    movement_type: str,
    quantity: int,
    reason: str,
    notes: str | None = None,
) -> StockMovement:
    """
    Append a stock movement and update the product's on-hand count.

    Raises:
        NotFoundError: product does not exist (no movement is recorded)
        ValidationError: unknown type or negative quantity
    """
    def _op():
        movement = _apply_movement_inner(
            product_id=product_id,
            movement_type=movement_type,
            quantity=quantity,
            reason=reason,
            notes=notes,
        )
        db.session.commit()
        return movement

    try:
        return run_with_retry(_op)
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise


def list_movements(product_id: str | None = None) -> list[StockMovement]:
    """Movements newest first, optionally for a single product."""
    query = db.session.query(StockMovement)
    if product_id:
        query = query.filter_by(product_id=product_id)
    return query.order_by(StockMovement.created_at.desc()).all()


def low_stock_products(threshold: int = 10) -> list[Product]:
    """
    Products that are running low but not yet out.

    0 < stock_quantity < threshold; sold-out products are excluded.
    """
    return (
        db.session.query(Product)
        .filter(Product.stock_quantity > 0, Product.stock_quantity < threshold)
        .order_by(Product.stock_quantity.asc(), Product.product_name.asc())
        .all()
    )
