"""
Return Settlement Service

WHY: A return can be a plain refund or an exchange for a product with a
different price. Settlement decides how much goes back as cash, how much
becomes store credit, and puts the returned units back on the shelf.

SETTLEMENT RULES:
- total_return_value   = sum(original order unit price x returned qty)
- total_exchange_value = sum(CURRENT catalog price of exchange product x returned qty)
  (exchanges are always like-for-like in count)
- refund_amount = total_return_value when nothing was exchanged, else 0
- credit_amount = max(0, total_return_value - total_exchange_value) when
  something was exchanged, else 0 (a plain return is refunded, not credited)

When the exchange is worth more than the return, both refund and credit are
zero. Collecting the difference is an additional-payment step outside this
service.

Lines with quantity 0 are ignored. All amounts are integer cents.

SIDE EFFECTS (single transaction):
1. Return + ReturnItems are written
2. One "in" stock movement per returned line restocks the product

AFTER COMMIT (best effort, never rolls the return back):
3. Store credit code issued when credit_amount > 0 and an email is known
4. Customer notified with the code, amount and expiry
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..identifiers import generate_return_number
from ..models import DiscountCode, Order, Product, Return, ReturnItem
from ..money import format_cents
from ..validation import ExternalServiceError, NotFoundError, ValidationError
from stockroom.time_utils import add_months, utcnow
from . import notification_service
from .concurrency import run_with_retry
from .stock_service import MOVEMENT_IN, _apply_movement_inner
from .store_credit_service import issue_credit

RETURN_STATUS_PENDING = "pending"
RETURN_STATUS_APPROVED = "approved"
RETURN_STATUS_REJECTED = "rejected"
RETURN_STATUS_COMPLETED = "completed"

RETURN_MUTABLE_FIELDS = {"status", "notes"}
RESTOCK_REASON = "return"


@dataclass(frozen=True)
class ReturnLineRequest:
    """One requested return line, as validated at the API boundary."""
    product_id: str
    quantity: int
    exchange_product_id: str | None = None


@dataclass(frozen=True)
class SettlementLine:
    """A return line resolved against the order and the catalog."""
    product_id: str
    product_name: str
    sku: str
    quantity: int
    unit_price_cents: int
    exchange_product_id: str | None = None
    exchange_product_name: str | None = None
    exchange_unit_price_cents: int | None = None

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class Settlement:
    total_return_cents: int
    total_exchange_cents: int
    refund_cents: int
    credit_cents: int

    def to_dict(self) -> dict:
        return {
            "total_return_value": format_cents(self.total_return_cents),
            "total_exchange_value": format_cents(self.total_exchange_cents),
            "refund_amount": format_cents(self.refund_cents),
            "credit_amount": format_cents(self.credit_cents),
        }


# =============================================================================
# SETTLEMENT COMPUTATION
# =============================================================================

def compute_settlement(lines: list[SettlementLine]) -> Settlement:
    """Pure refund/credit computation; see module docstring for the rules."""
    total_return = 0
    total_exchange = 0
    for line in lines:
        if line.quantity <= 0:
            continue
        total_return += line.unit_price_cents * line.quantity
        if line.exchange_product_id and line.exchange_unit_price_cents is not None:
            total_exchange += line.exchange_unit_price_cents * line.quantity

    if total_exchange == 0:
        refund, credit = total_return, 0
    else:
        refund, credit = 0, max(0, total_return - total_exchange)
    return Settlement(
        total_return_cents=total_return,
        total_exchange_cents=total_exchange,
        refund_cents=refund,
        credit_cents=credit,
    )


def resolve_lines(order: Order, requests: list[ReturnLineRequest]) -> list[SettlementLine]:
    """
    Match requested lines to the order's items and the catalog.

    When the order has several lines for the same product (e.g. bought at
    different prices), returned units are taken from those lines in order
    and each portion is priced at its own line's unit price.

    Raises:
        ValidationError: no qualifying lines, product not on the order,
            or more units returned than were ordered
        NotFoundError: returned or exchange product missing from the catalog
    """
    qualifying = [r for r in requests if r.quantity > 0]
    if not qualifying:
        raise ValidationError("Return must have at least one item")

    # product_id -> [[order_item, units still returnable], ...]
    available: dict[str, list[list]] = {}
    for item in order.items:
        available.setdefault(item.product_id, []).append([item, item.quantity])

    lines = []
    for req in qualifying:
        slots = available.get(req.product_id)
        if not slots:
            raise ValidationError(f"Product {req.product_id} is not part of order {order.order_number}")

        if db.session.get(Product, req.product_id) is None:
            raise NotFoundError(f"Product {req.product_id} not found")

        exchange = None
        if req.exchange_product_id:
            exchange = db.session.get(Product, req.exchange_product_id)
            if exchange is None:
                raise NotFoundError(f"Exchange product {req.exchange_product_id} not found")

        if req.quantity > sum(left for _, left in slots):
            ordered = sum(item.quantity for item, _ in slots)
            raise ValidationError(
                f"Cannot return more units of {slots[0][0].sku} than were ordered ({ordered})."
            )

        wanted = req.quantity
        for slot in slots:
            order_item, left = slot
            take = min(left, wanted)
            if take == 0:
                continue
            slot[1] -= take
            wanted -= take
            lines.append(SettlementLine(
                product_id=req.product_id,
                product_name=order_item.product_name,
                sku=order_item.sku,
                quantity=take,
                unit_price_cents=order_item.unit_price_cents,
                exchange_product_id=exchange.id if exchange else None,
                exchange_product_name=exchange.product_name if exchange else None,
                exchange_unit_price_cents=exchange.price_cents if exchange else None,
            ))
            if wanted == 0:
                break
    return lines


# =============================================================================
# RETURN CREATION
# =============================================================================

def create_return(
    *,
    order_id: str,
    lines: list[ReturnLineRequest],
    reason: str,
    status: str = RETURN_STATUS_PENDING,
    notes: str | None = None,
    customer_name: str | None = None,
    customer_email: str | None = None,
) -> tuple[Return, Settlement, DiscountCode | None]:
    """
    Settle a return/exchange against an order.

    Customer name/email default to the order's values.

    Returns:
        (return_doc, settlement, discount_code or None)

    Raises:
        NotFoundError: order (or a product) does not exist
        ValidationError: no qualifying lines or lines that do not match the order
    """
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")

    resolved = resolve_lines(order, lines)
    settlement = compute_settlement(resolved)

    def _op():
        return_doc = Return(
            return_number=generate_return_number(),
            order_id=order.id,
            order_number=order.order_number,
            customer_name=customer_name or order.customer_name,
            customer_email=customer_email or order.customer_email,
            status=status or RETURN_STATUS_PENDING,
            reason=reason,
            notes=notes,
            refund_amount_cents=settlement.refund_cents,
            credit_amount_cents=settlement.credit_cents,
            created_at=utcnow(),
        )
        for line in resolved:
            return_doc.items.append(ReturnItem(
                product_id=line.product_id,
                product_name=line.product_name,
                sku=line.sku,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                subtotal_cents=line.subtotal_cents,
                exchange_product_id=line.exchange_product_id,
                exchange_product_name=line.exchange_product_name,
            ))
        db.session.add(return_doc)
        db.session.flush()

        # Restock every returned line
        for line in resolved:
            _apply_movement_inner(
                product_id=line.product_id,
                movement_type=MOVEMENT_IN,
                quantity=line.quantity,
                reason=RESTOCK_REASON,
                notes=f"Return {return_doc.return_number}",
            )

        db.session.commit()
        return return_doc

    try:
        return_doc = run_with_retry(_op)
    except (NotFoundError, ValidationError):
        db.session.rollback()
        raise

    discount_code = None
    if settlement.credit_cents > 0 and return_doc.customer_email:
        discount_code = _issue_return_credit(return_doc)

    return return_doc, settlement, discount_code


def _issue_return_credit(return_doc: Return) -> DiscountCode | None:
    """
    Issue and announce store credit for a committed return.

    Failures are logged and swallowed: the return stands either way.
    """
    logger = current_app.logger
    expires_at = add_months(utcnow(), current_app.config.get("STORE_CREDIT_VALID_MONTHS", 6))

    try:
        discount_code = issue_credit(
            customer_email=return_doc.customer_email,
            amount_cents=return_doc.credit_amount_cents,
            expires_at=expires_at,
        )
    except (SQLAlchemyError, ValidationError):
        db.session.rollback()
        logger.exception("Failed to create discount code for return %s", return_doc.return_number)
        return None

    try:
        notification_service.send_store_credit_email(
            discount_code.customer_email,
            discount_code.code,
            format_cents(discount_code.amount_cents),
            discount_code.expires_at,
        )
    except ExternalServiceError:
        logger.exception("Failed to send discount code email for return %s", return_doc.return_number)

    return discount_code


# =============================================================================
# QUERIES / UPDATES
# =============================================================================

def get_return(return_id: str) -> Return | None:
    return db.session.get(Return, return_id)


def list_returns(order_id: str | None = None) -> list[Return]:
    query = db.session.query(Return)
    if order_id:
        query = query.filter_by(order_id=order_id)
    return query.order_by(Return.created_at.desc()).all()


def update_return(*, return_id: str, patch: dict) -> Return | None:
    """
    Update workflow fields only. Financial fields and items are fixed at
    settlement and ignored here.
    """
    return_doc = get_return(return_id)
    if return_doc is None:
        return None
    for k, v in patch.items():
        if k in RETURN_MUTABLE_FIELDS:
            setattr(return_doc, k, v)
    db.session.commit()
    return return_doc
