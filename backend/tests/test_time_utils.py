from datetime import datetime

from stockroom.identifiers import generate_credit_code, generate_order_number, generate_return_number
from stockroom.time_utils import add_months, epoch_millis, to_utc_z


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2026, 8, 31, 12, 0), 6) == datetime(2027, 2, 28, 12, 0)
    assert add_months(datetime(2027, 8, 31), 6) == datetime(2028, 2, 29)


def test_add_months_rolls_year():
    assert add_months(datetime(2026, 10, 17), 6) == datetime(2027, 4, 17)


def test_to_utc_z():
    assert to_utc_z(datetime(2026, 10, 17, 8, 0, 0, 123456)) == "2026-10-17T08:00:00Z"
    assert to_utc_z(None) is None


def test_epoch_millis():
    assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1)) == 1000


def test_document_number_formats():
    order_number = generate_order_number()
    prefix, millis, suffix = order_number.split("-")
    assert prefix == "ORD"
    assert millis.isdigit()
    assert len(suffix) == 3 and suffix.isdigit()

    prefix, millis, suffix = generate_return_number().split("-")
    assert prefix == "RET"
    assert len(suffix) == 9 and suffix.isalnum() and suffix.upper() == suffix

    prefix, millis, suffix = generate_credit_code().split("-")
    assert prefix == "CREDIT"
    assert len(suffix) == 6 and suffix.upper() == suffix
