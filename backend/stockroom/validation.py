# Overview: Request payload validation driven by SQLAlchemy column metadata, plus per-entity business rules.
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import to_cents


# Upper bound for any single price: $9,999,999.99
MAX_PRICE_CENTS = 999_999_999

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
RETURN_STATUSES = ("pending", "approved", "rejected", "completed")
STOCK_MOVEMENT_TYPES = ("in", "out", "adjustment")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INT_RE = re.compile(r"^-?\d+$")
_BOOL_STRINGS = {"true": True, "1": True, "yes": True, "false": False, "0": False, "no": False}


class ValidationError(ValueError):
    """Bad client input. Reported as 400."""


class ConflictError(ValueError):
    """Duplicate unique key (e.g., SKU). Reported as 400."""


class NotFoundError(LookupError):
    """Referenced entity does not exist. Reported as 404."""


class ExternalServiceError(RuntimeError):
    """A collaborator (mail server) failed. Logged, never surfaced to API callers."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a client may send for one model.

    - writable_fields: API keys accepted in the body; anything else is rejected
    - required_on_create: keys that must be present on POST
    - money_fields: API key -> cents column, e.g. {"price": "price_cents"}
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    money_fields: dict[str, str] = field(default_factory=dict)

    def column_for(self, key: str) -> str:
        return self.money_fields.get(key, key)


def coerce_money(value: Any, field_name: str) -> int:
    """Parse a money value into cents or raise ValidationError naming the field."""
    try:
        return to_cents(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be a decimal amount")


def _coerce_int(key: str, value: Any) -> int:
    # bool is an int subclass; floats and "1e3" / "2.0" strings are refused
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INT_RE.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{key} must be an integer")


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
        return _BOOL_STRINGS[value.strip().lower()]
    raise ValidationError(f"{key} must be true or false")


def _coerce_text(key: str, col, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{key} must be a string")
    text = str(value).strip()
    if not col.nullable and text == "":
        raise ValidationError(f"{key} cannot be blank")
    max_len = getattr(col.type, "length", None)
    if max_len and len(text) > max_len:
        raise ValidationError(f"{key} exceeds max length {max_len}")
    return text


def _coerce_column(key: str, col, value: Any):
    if isinstance(col.type, Integer):
        return _coerce_int(key, value)
    if isinstance(col.type, Boolean):
        return _coerce_bool(key, value)
    if isinstance(col.type, (String, Text)):
        return _coerce_text(key, col, value)
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Turn a JSON body into a patch dict keyed by column name.

    Types, nullability and String lengths come from the model's columns;
    the policy decides which keys are accepted at all. Money keys are
    parsed to cents and renamed ("price": "19.99" -> "price_cents": 1999).

    partial=True (PATCH) skips the required_on_create check.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(k for k in policy.required_on_create if k not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}

    for key in payload:
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        if policy.column_for(key) not in columns:
            raise ValidationError(f"Unknown field: {key}")

    patch: dict = {}
    for key, raw in payload.items():
        col_key = policy.column_for(key)
        col = columns[col_key]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[col_key] = None
        elif key in policy.money_fields:
            patch[col_key] = coerce_money(raw, key)
        else:
            patch[col_key] = _coerce_column(key, col, raw)

    return patch


def _enforce_email(patch: dict, key: str = "customer_email") -> None:
    # Blank email is the same as no email
    if key in patch and patch[key] == "":
        patch[key] = None
    email = patch.get(key)
    if email is not None and not _EMAIL_RE.match(email):
        raise ValidationError(f"{key} must be a valid email address")


def _enforce_price(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None:
        price = patch[key]
        if price < 0:
            raise ValidationError(f"{key.removesuffix('_cents')} must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"{key.removesuffix('_cents')} cannot exceed ${MAX_PRICE_CENTS / 100:,.2f}")


def enforce_rules_product(patch: dict) -> None:
    """Price bounds and non-negative opening stock."""
    _enforce_price(patch, "price_cents")
    _enforce_price(patch, "cost_price_cents")
    if "stock_quantity" in patch and patch["stock_quantity"] is not None:
        if patch["stock_quantity"] < 0:
            raise ValidationError("stock_quantity must be 0 or greater")


def enforce_rules_stock_movement(patch: dict) -> None:
    if patch.get("type") not in STOCK_MOVEMENT_TYPES:
        raise ValidationError("type must be one of: in, out, adjustment")

    # An adjustment is an absolute count, so zero is a valid target
    minimum = 0 if patch["type"] == "adjustment" else 1
    quantity = patch.get("quantity")
    if quantity is None or quantity < minimum:
        raise ValidationError(f"quantity must be at least {minimum}")


def enforce_rules_order(patch: dict) -> None:
    _enforce_email(patch)
    if "status" in patch and patch["status"] not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")


def enforce_rules_order_item(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] < 1:
        raise ValidationError("quantity must be at least 1")
    _enforce_price(patch, "unit_price_cents")


def enforce_rules_return(patch: dict) -> None:
    _enforce_email(patch)
    if "status" in patch and patch["status"] not in RETURN_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(RETURN_STATUSES)}")


def enforce_rules_return_item(patch: dict) -> None:
    if patch.get("quantity") is None or patch["quantity"] < 0:
        raise ValidationError("quantity must be 0 or greater")
