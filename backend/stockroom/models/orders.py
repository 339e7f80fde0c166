from __future__ import annotations

from ..extensions import db
from ..identifiers import new_uuid
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow


class Order(db.Model):
    """
    Customer order.

    Created once together with its items. After creation only status, notes
    and customer contact fields change; items and amounts are frozen.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)

    # Human-readable document number (e.g., "ORD-1760700000000-042")
    order_number = db.Column(db.String(64), nullable=False, unique=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True, index=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    total_amount_cents = db.Column(db.Integer, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "status": self.status,
            "notes": self.notes,
            "total_amount": format_cents(self.total_amount_cents),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line item on an order; prices are a snapshot taken when the order was placed."""
    __tablename__ = "order_items"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.String(36), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship(
        "Order",
        backref=db.backref("items", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": format_cents(self.unit_price_cents),
            "subtotal": format_cents(self.subtotal_cents),
        }
