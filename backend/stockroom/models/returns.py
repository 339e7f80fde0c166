from __future__ import annotations

from ..extensions import db
from ..identifiers import new_uuid
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow


class Return(db.Model):
    """
    Return / exchange document.

    refund_amount_cents and credit_amount_cents are computed by
    return_service at settlement time and never edited afterwards.
    Customer fields are copied from the order so the document stays readable
    if the order is later deleted.
    """
    __tablename__ = "returns"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)

    # Human-readable document number (e.g., "RET-1760700000000-K3J9QZ0AB")
    return_number = db.Column(db.String(64), nullable=False, unique=True)

    order_id = db.Column(db.String(36), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    refund_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_number": self.return_number,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "status": self.status,
            "reason": self.reason,
            "notes": self.notes,
            "refund_amount": format_cents(self.refund_amount_cents),
            "credit_amount": format_cents(self.credit_amount_cents),
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ReturnItem(db.Model):
    """A returned line, optionally swapped for another product (exchange)."""
    __tablename__ = "return_items"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    return_id = db.Column(db.String(36), db.ForeignKey("returns.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    # Unit price from the original order item, not the current catalog price
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    exchange_product_id = db.Column(db.String(36), nullable=True)
    exchange_product_name = db.Column(db.String(255), nullable=True)

    return_doc = db.relationship(
        "Return",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": format_cents(self.unit_price_cents),
            "subtotal": format_cents(self.subtotal_cents),
            "exchange_product_id": self.exchange_product_id,
            "exchange_product_name": self.exchange_product_name,
        }
