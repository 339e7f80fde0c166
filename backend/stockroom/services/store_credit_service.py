# Overview: Service-layer operations for store credit (discount codes).
"""
Store Credit Ledger

A DiscountCode carries the REMAINING balance of a customer's store credit.

LIFECYCLE:
1. Issued by return settlement when a return leaves credit over
2. Redeemed (possibly in several steps) against later orders
3. Deleted when a redemption brings the balance to exactly zero

REDEMPTION RULES:
- Code lookup is exact and case-sensitive
- The requested amount must be positive
- Requests above the balance are rejected, never clamped
- Expired codes cannot be redeemed
- Partial redemption only lowers the balance; is_used stays as it was

The balance read-modify-write runs under a row lock plus the version_id
column, and is retried on conflicts, so two concurrent redemptions of the
same code cannot both spend the same balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ..extensions import db
from ..identifiers import generate_credit_code
from ..models import DiscountCode
from ..money import format_cents
from ..validation import ValidationError, coerce_money
from stockroom.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


@dataclass(frozen=True)
class RedemptionResult:
    """
    Outcome of a redemption attempt.

    found=False: no code matched (nothing changed)
    fully_used=True: balance hit zero and the code was deleted (remaining is None)
    otherwise: remaining is the updated code
    """
    found: bool
    remaining: DiscountCode | None = None
    fully_used: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.found,
            "remaining_credit": self.remaining.to_dict() if self.remaining else None,
            "fully_used": self.fully_used,
        }


def parse_redemption_amount(value) -> int:
    """Amount requested by the caller, in cents; must be a positive number."""
    try:
        cents = coerce_money(value, "amount_used")
    except ValidationError:
        raise ValidationError("Amount used must be a positive number")
    if cents <= 0:
        raise ValidationError("Amount used must be a positive number")
    return cents


# =============================================================================
# ISSUE
# =============================================================================

def _issue_credit_inner(
    *,
    customer_email: str,
    amount_cents: int,
    expires_at: datetime | None,
) -> DiscountCode:
    if not customer_email:
        raise ValidationError("customer_email is required for store credit")
    if amount_cents <= 0:
        raise ValidationError("Store credit amount must be positive")

    discount_code = DiscountCode(
        code=generate_credit_code(),
        customer_email=customer_email,
        amount_cents=amount_cents,
        is_used=False,
        used_at=None,
        expires_at=expires_at,
        created_at=utcnow(),
    )
    db.session.add(discount_code)
    db.session.flush()
    return discount_code


def issue_credit(customer_email: str, amount_cents: int, expires_at: datetime | None = None) -> DiscountCode:
    """
    Create a new balance-bearing code.

    Code uniqueness relies on the timestamp + random suffix; a collision
    surfaces as an IntegrityError from the unique constraint.
    """
    discount_code = _issue_credit_inner(
        customer_email=customer_email,
        amount_cents=amount_cents,
        expires_at=expires_at,
    )
    db.session.commit()
    return discount_code


# =============================================================================
# REDEEM
# =============================================================================

def _redeem_inner(code: str, amount_cents: int, *, now: datetime | None = None) -> RedemptionResult:
    """
    Apply a redemption inside the caller's transaction (flush, no commit).

    Raises ValidationError before touching the row when the request is not
    acceptable, so a rejected redemption leaves the balance unchanged.
    """
    now = now or utcnow()

    query = lock_for_update(db.session.query(DiscountCode).filter(DiscountCode.code == code))
    discount_code = query.first()
    if discount_code is None:
        return RedemptionResult(found=False)

    if discount_code.is_expired(now):
        raise ValidationError("Discount code has expired")

    if amount_cents > discount_code.amount_cents:
        raise ValidationError(
            f"Amount exceeds available credit of ${format_cents(discount_code.amount_cents)}"
        )

    remaining = discount_code.amount_cents - amount_cents
    if remaining <= 0:
        db.session.delete(discount_code)
        db.session.flush()
        return RedemptionResult(found=True, remaining=None, fully_used=True)

    discount_code.amount_cents = remaining
    db.session.flush()
    return RedemptionResult(found=True, remaining=discount_code, fully_used=False)


def redeem(code: str, amount_requested) -> RedemptionResult:
    """
    Spend part or all of a code's balance.

    Args:
        code: exact discount code
        amount_requested: decimal string / number, must be > 0

    Returns:
        RedemptionResult (found=False when the code does not exist)

    Raises:
        ValidationError: non-positive amount, over-redemption, expired code
    """
    amount_cents = parse_redemption_amount(amount_requested)

    def _op():
        result = _redeem_inner(code, amount_cents)
        db.session.commit()
        return result

    try:
        return run_with_retry(_op)
    except ValidationError:
        db.session.rollback()
        raise


# =============================================================================
# QUERIES / MAINTENANCE
# =============================================================================

def list_credits(customer_email: str | None = None) -> list[DiscountCode]:
    query = db.session.query(DiscountCode)
    if customer_email:
        query = query.filter_by(customer_email=customer_email)
    return query.order_by(DiscountCode.created_at.desc()).all()


def get_credit_by_code(code: str) -> DiscountCode | None:
    return db.session.query(DiscountCode).filter(DiscountCode.code == code).first()


def delete_credit(credit_id: str) -> bool:
    """Unconditional removal (admin cleanup). Returns False if absent."""
    discount_code = db.session.get(DiscountCode, credit_id)
    if discount_code is None:
        return False
    db.session.delete(discount_code)
    db.session.commit()
    return True


def purge_expired(now: datetime | None = None) -> int:
    """Delete codes whose expires_at is in the past. Returns the number removed."""
    now = now or utcnow()
    expired = (
        db.session.query(DiscountCode)
        .filter(DiscountCode.expires_at.isnot(None), DiscountCode.expires_at < now)
        .all()
    )
    for discount_code in expired:
        db.session.delete(discount_code)
    db.session.commit()
    return len(expired)
