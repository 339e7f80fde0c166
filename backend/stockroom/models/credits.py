from __future__ import annotations

from ..extensions import db
from ..identifiers import new_uuid
from ..money import format_cents
from ..time_utils import to_utc_z, utcnow


class DiscountCode(db.Model):
    """
    Store credit balance, redeemable by code.

    amount_cents is the REMAINING balance. Partial redemption lowers it;
    the row is deleted when it reaches exactly zero. is_used is not flipped
    by partial redemption.
    """
    __tablename__ = "discount_codes"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    code = db.Column(db.String(64), nullable=False, unique=True)
    customer_email = db.Column(db.String(255), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)

    is_used = db.Column(db.Boolean, nullable=False, default=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def is_expired(self, now) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "customer_email": self.customer_email,
            "amount": format_cents(self.amount_cents),
            "is_used": self.is_used,
            "used_at": to_utc_z(self.used_at),
            "expires_at": to_utc_z(self.expires_at),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
