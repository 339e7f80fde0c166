# Overview: Generators for surrogate keys and human-readable document numbers.
"""
Identifier formats

- Row ids are UUID4 strings.
- Order numbers:  ORD-<epoch ms>-<3 digits>         e.g. ORD-1760700000000-042
- Return numbers: RET-<epoch ms>-<9 base36 chars>   e.g. RET-1760700000000-K3J9QZ0AB
- Credit codes:   CREDIT-<epoch ms>-<6 base36 chars>

Document numbers are unique by convention only: the timestamp plus the
random suffix makes a collision unlikely, and no retry is attempted when the
unique constraint rejects one.
"""

from __future__ import annotations

import secrets
import string
import uuid

from .time_utils import epoch_millis

BASE36_ALPHABET = string.digits + string.ascii_uppercase

ORDER_NUMBER_PREFIX = "ORD"
RETURN_NUMBER_PREFIX = "RET"
CREDIT_CODE_PREFIX = "CREDIT"


def new_uuid() -> str:
    return str(uuid.uuid4())


def random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def generate_order_number() -> str:
    return f"{ORDER_NUMBER_PREFIX}-{epoch_millis()}-{secrets.randbelow(1000):03d}"


def generate_return_number() -> str:
    return f"{RETURN_NUMBER_PREFIX}-{epoch_millis()}-{random_base36(9)}"


def generate_credit_code() -> str:
    return f"{CREDIT_CODE_PREFIX}-{epoch_millis()}-{random_base36(6)}"
