# Overview: Service-layer operations for orders; encapsulates business logic and database work.

# backend/stockroom/services/order_service.py
"""
Order Store

- Orders are created once together with their items.
- Item subtotals (unit_price x quantity) and the order total are computed
  here, never taken from the client, and are frozen: later catalog price
  changes do not touch existing orders.
- After creation only status, notes and customer contact fields change.

STORE CREDIT:
An order may consume store credit in the same request (credit_code +
amount_used). The order insert and the credit redemption then share one
transaction: either both land or neither does. Clients that create the
order first and redeem afterwards (POST /api/discount-codes/<code>/use)
get no such guarantee and must surface a warning when the second step
fails.
"""

from __future__ import annotations

from ..extensions import db
from ..identifiers import generate_order_number
from ..models import Order, OrderItem, Product
from ..validation import NotFoundError, ValidationError
from .concurrency import run_with_retry
from .store_credit_service import RedemptionResult, _redeem_inner, parse_redemption_amount

ORDER_MUTABLE_FIELDS = {"status", "notes", "customer_name", "customer_email", "customer_phone"}


def list_orders() -> list[Order]:
    return db.session.query(Order).order_by(Order.created_at.desc()).all()


def get_order(order_id: str) -> Order | None:
    return db.session.get(Order, order_id)


def list_orders_by_customer_email(email: str) -> list[Order]:
    return (
        db.session.query(Order)
        .filter_by(customer_email=email)
        .order_by(Order.created_at.desc())
        .all()
    )


def _build_item(item_patch: dict) -> OrderItem:
    """
    Build an OrderItem, filling name/SKU/price from the catalog when the
    client omitted them.
    """
    product_id = item_patch.get("product_id")
    if not product_id:
        raise ValidationError("product_id is required for each item")

    quantity = item_patch.get("quantity")
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    product_name = item_patch.get("product_name")
    sku = item_patch.get("sku")
    unit_price_cents = item_patch.get("unit_price_cents")

    if product_name is None or sku is None or unit_price_cents is None:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        product_name = product_name or product.product_name
        sku = sku or product.sku
        if unit_price_cents is None:
            unit_price_cents = product.price_cents

    return OrderItem(
        product_id=product_id,
        product_name=product_name,
        sku=sku,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        subtotal_cents=unit_price_cents * quantity,
    )


def create_order(
    *,
    order_patch: dict,
    item_patches: list[dict],
    credit_code: str | None = None,
    amount_used=None,
) -> tuple[Order, RedemptionResult | None]:
    """
    Create an order with its items, optionally paying part of it with store credit.

    Args:
        order_patch: validated order fields (customer_name, status, ...)
        item_patches: validated item dicts (product_id, quantity, unit_price_cents, ...)
        credit_code: discount code to redeem against this order
        amount_used: credit to spend (decimal string), required with credit_code

    Returns:
        (order, redemption) where redemption is None without credit_code

    Raises:
        ValidationError: no items, bad quantities, bad/over-limit credit amount
        NotFoundError: unknown product (when details must come from the catalog)
            or unknown credit code
    """
    if not item_patches:
        raise ValidationError("Order must have at least one item")

    amount_cents = None
    if credit_code:
        amount_cents = parse_redemption_amount(amount_used)

    def _op():
        items = [_build_item(p) for p in item_patches]
        total_cents = sum(item.subtotal_cents for item in items)

        if amount_cents is not None and amount_cents > total_cents:
            raise ValidationError("Amount used cannot exceed the order total")

        order = Order(
            order_number=generate_order_number(),
            customer_name=order_patch["customer_name"],
            customer_email=order_patch.get("customer_email"),
            customer_phone=order_patch.get("customer_phone"),
            status=order_patch.get("status") or "pending",
            notes=order_patch.get("notes"),
            total_amount_cents=total_cents,
        )
        order.items.extend(items)
        db.session.add(order)
        db.session.flush()

        redemption = None
        if credit_code:
            redemption = _redeem_inner(credit_code, amount_cents)
            if not redemption.found:
                raise NotFoundError("Discount code not found")

        db.session.commit()
        return order, redemption

    try:
        return run_with_retry(_op)
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise


def update_order(*, order_id: str, patch: dict) -> Order | None:
    """Update status/notes/contact fields. Items and totals never change."""
    order = get_order(order_id)
    if order is None:
        return None
    for k, v in patch.items():
        if k in ORDER_MUTABLE_FIELDS:
            setattr(order, k, v)
    db.session.commit()
    return order


def delete_order(*, order_id: str) -> bool:
    """Delete an order; its items go with it."""
    order = get_order(order_id)
    if order is None:
        return False
    db.session.delete(order)
    db.session.commit()
    return True
