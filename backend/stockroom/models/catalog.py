from __future__ import annotations

from ..extensions import db
from ..identifiers import new_uuid
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Product master data.

    SKU is globally unique and is the value printed on labels and scanned at
    the counter. Prices are stored in cents; the API renders them as
    two-decimal strings.

    stock_quantity is the on-hand count. It is set once on create; after that
    it is only written through stock_service so every change has a
    StockMovement row.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_name", "category", "product_name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)

    # Variant details
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    gender = db.Column(db.String(32), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    warehouse = db.Column(db.String(120), nullable=True)

    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "category": self.category,
            "brand": self.brand,
            "description": self.description,
            "color": self.color,
            "size": self.size,
            "gender": self.gender,
            "price": format_cents(self.price_cents),
            "cost_price": format_cents(self.cost_price_cents),
            "stock_quantity": self.stock_quantity,
            "warehouse": self.warehouse,
            "is_featured": self.is_featured,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    TYPES:
    - in: stock += quantity
    - out: stock -= quantity, floored at zero
    - adjustment: stock = quantity (absolute count)

    quantity is what was requested; applied_delta is the change that actually
    landed on Product.stock_quantity. They differ only when an "out" movement
    is floored at zero, or for adjustments.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    # No foreign key: the history outlives a deleted product
    product_id = db.Column(db.String(36), nullable=False, index=True)

    # Snapshot of the product at the time of the movement
    product_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    applied_delta = db.Column(db.Integer, nullable=False, default=0)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "sku": self.sku,
            "type": self.type,
            "quantity": self.quantity,
            "applied_delta": self.applied_delta,
            "reason": self.reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
