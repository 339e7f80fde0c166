"""
Return settlement tests.

Verifies:
- refund / credit arithmetic for returns and exchanges
- restocking through the stock ledger
- store credit issue and notification after commit
- rejected returns leave no trace
"""

import logging
from datetime import timedelta

import pytest

from conftest import make_order, make_product
from stockroom.extensions import db
from stockroom.models import DiscountCode, Product, Return, StockMovement
from stockroom.services import order_service, return_service
from stockroom.services.return_service import (
    ReturnLineRequest,
    SettlementLine,
    compute_settlement,
)
from stockroom.time_utils import utcnow
from stockroom.validation import NotFoundError, ValidationError


def _line(qty, price, exchange_price=None):
    return SettlementLine(
        product_id="p1",
        product_name="Shirt",
        sku="SHIRT",
        quantity=qty,
        unit_price_cents=price,
        exchange_product_id="p2" if exchange_price is not None else None,
        exchange_unit_price_cents=exchange_price,
    )


# =============================================================================
# PURE SETTLEMENT ARITHMETIC
# =============================================================================


class TestComputeSettlement:
    def test_plain_return_refunds_everything(self):
        s = compute_settlement([_line(2, 2500)])
        assert s.total_return_cents == 5000
        assert s.total_exchange_cents == 0
        assert s.refund_cents == 5000
        assert s.credit_cents == 0

    def test_cheaper_exchange_leaves_credit(self):
        s = compute_settlement([_line(1, 5000, exchange_price=3000)])
        assert s.refund_cents == 0
        assert s.credit_cents == 2000

    def test_pricier_exchange_gives_nothing_back(self):
        s = compute_settlement([_line(1, 3000, exchange_price=5000)])
        assert s.total_exchange_cents == 5000
        assert s.refund_cents == 0
        assert s.credit_cents == 0

    def test_equal_exchange_gives_nothing_back(self):
        s = compute_settlement([_line(1, 3000, exchange_price=3000)])
        assert (s.refund_cents, s.credit_cents) == (0, 0)

    def test_zero_quantity_lines_ignored(self):
        s = compute_settlement([_line(0, 9999, exchange_price=1), _line(1, 1000)])
        assert s.total_return_cents == 1000
        assert s.total_exchange_cents == 0
        assert s.refund_cents == 1000

    def test_mixed_lines_credit_only(self):
        # One line exchanged, one plain: any exchange turns refund into credit
        s = compute_settlement([_line(1, 4000, exchange_price=1000), _line(1, 2000)])
        assert s.total_return_cents == 6000
        assert s.total_exchange_cents == 1000
        assert s.refund_cents == 0
        assert s.credit_cents == 5000

    def test_to_dict_renders_decimal_strings(self):
        s = compute_settlement([_line(1, 5000, exchange_price=3000)])
        assert s.to_dict() == {
            "total_return_value": "50.00",
            "total_exchange_value": "30.00",
            "refund_amount": "0.00",
            "credit_amount": "20.00",
        }


# =============================================================================
# CREATE RETURN (service, database)
# =============================================================================


class TestCreateReturn:
    def test_exchange_issues_credit_and_emails_code(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-L", price_cents=5000, stock_quantity=3)
        cap = make_product(sku="CAP-1", price_cents=3000, stock_quantity=3)
        order = make_order([(shirt, 1)])

        return_doc, settlement, code = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1, exchange_product_id=cap.id)],
            reason="Wrong size",
        )

        assert settlement.credit_cents == 2000
        assert settlement.refund_cents == 0
        assert return_doc.credit_amount_cents == 2000
        assert return_doc.items[0].exchange_product_name == cap.product_name

        assert code is not None
        assert code.code.startswith("CREDIT-")
        assert code.amount_cents == 2000
        assert code.customer_email == "jane@example.com"
        assert code.is_used is False

        # Roughly six months out
        assert code.expires_at - utcnow() > timedelta(days=170)

        assert len(sent_emails) == 1
        assert sent_emails[0]["code"] == code.code
        assert sent_emails[0]["amount"] == "20.00"

    def test_plain_return_refunds_without_code(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-M", price_cents=2500, stock_quantity=0)
        order = make_order([(shirt, 2)])

        return_doc, settlement, code = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=2)],
            reason="Changed mind",
        )

        assert settlement.refund_cents == 5000
        assert settlement.credit_cents == 0
        assert code is None
        assert sent_emails == []
        assert db.session.query(DiscountCode).count() == 0

    def test_pricier_exchange_no_refund_no_credit(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-S", price_cents=3000)
        jacket = make_product(sku="JACKET", price_cents=5000)
        order = make_order([(shirt, 1)])

        _, settlement, code = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1, exchange_product_id=jacket.id)],
            reason="Upgrade",
        )

        assert (settlement.refund_cents, settlement.credit_cents) == (0, 0)
        assert code is None

    def test_returned_units_are_restocked(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-XL", price_cents=1000, stock_quantity=5)
        order = make_order([(shirt, 3)])

        return_doc, _, _ = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=2)],
            reason="Defective",
        )

        db.session.expire_all()
        assert db.session.get(Product, shirt.id).stock_quantity == 7

        movements = db.session.query(StockMovement).filter_by(product_id=shirt.id).all()
        assert len(movements) == 1
        assert movements[0].type == "in"
        assert movements[0].quantity == 2
        assert movements[0].reason == "return"
        assert return_doc.return_number in movements[0].notes

    def test_uses_order_price_not_current_catalog_price(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-SALE", price_cents=4000)
        order = make_order([(shirt, 1)])

        shirt.price_cents = 1000
        db.session.commit()

        _, settlement, _ = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1)],
            reason="Late delivery",
        )
        assert settlement.refund_cents == 4000

    def test_zero_quantity_lines_skipped(self, db_session, sent_emails):
        a = make_product(sku="A", price_cents=1000)
        b = make_product(sku="B", price_cents=2000)
        order = make_order([(a, 1), (b, 1)])

        return_doc, settlement, _ = return_service.create_return(
            order_id=order.id,
            lines=[
                ReturnLineRequest(product_id=a.id, quantity=0),
                ReturnLineRequest(product_id=b.id, quantity=1),
            ],
            reason="Partial",
        )
        assert settlement.total_return_cents == 2000
        assert [item.sku for item in return_doc.items] == ["B"]

    def test_only_zero_quantity_lines_rejected(self, db_session, sent_emails):
        a = make_product(sku="A0", price_cents=1000)
        order = make_order([(a, 1)])

        with pytest.raises(ValidationError):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=a.id, quantity=0)],
                reason="Nothing",
            )
        assert db.session.query(Return).count() == 0

    def test_missing_order(self, db_session, sent_emails):
        with pytest.raises(NotFoundError):
            return_service.create_return(
                order_id="does-not-exist",
                lines=[ReturnLineRequest(product_id="x", quantity=1)],
                reason="Ghost",
            )
        assert db.session.query(Return).count() == 0
        assert db.session.query(StockMovement).count() == 0

    def test_cannot_return_more_than_ordered(self, db_session, sent_emails):
        a = make_product(sku="A2", price_cents=1000, stock_quantity=0)
        order = make_order([(a, 1)])

        with pytest.raises(ValidationError):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=a.id, quantity=2)],
                reason="Too many",
            )

        db.session.expire_all()
        assert db.session.get(Product, a.id).stock_quantity == 0
        assert db.session.query(Return).count() == 0

    def test_product_not_on_order(self, db_session, sent_emails):
        a = make_product(sku="A3", price_cents=1000)
        other = make_product(sku="OTHER", price_cents=1000)
        order = make_order([(a, 1)])

        with pytest.raises(ValidationError):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=other.id, quantity=1)],
                reason="Wrong item",
            )

    def test_unknown_exchange_product(self, db_session, sent_emails):
        a = make_product(sku="A4", price_cents=1000)
        order = make_order([(a, 1)])

        with pytest.raises(NotFoundError):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=a.id, quantity=1, exchange_product_id="nope")],
                reason="Exchange",
            )
        assert db.session.query(Return).count() == 0

    def test_credit_without_email_issues_no_code(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-NE", price_cents=5000)
        cap = make_product(sku="CAP-NE", price_cents=1000)
        order = make_order([(shirt, 1)], customer_email=None)

        return_doc, settlement, code = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1, exchange_product_id=cap.id)],
            reason="Exchange",
        )
        assert settlement.credit_cents == 4000
        assert return_doc.credit_amount_cents == 4000
        assert code is None
        assert sent_emails == []

    def test_email_failure_keeps_return_and_code(self, db_session, monkeypatch):
        from stockroom.services import notification_service
        from stockroom.validation import ExternalServiceError

        def boom(*args, **kwargs):
            raise ExternalServiceError("smtp down")

        monkeypatch.setattr(notification_service, "send_store_credit_email", boom)

        shirt = make_product(sku="SHIRT-EF", price_cents=5000)
        cap = make_product(sku="CAP-EF", price_cents=3000)
        order = make_order([(shirt, 1)])

        return_doc, _, code = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1, exchange_product_id=cap.id)],
            reason="Exchange",
        )
        assert code is not None
        assert db.session.query(Return).filter_by(id=return_doc.id).count() == 1
        assert db.session.query(DiscountCode).filter_by(code=code.code).count() == 1


class TestReturnWorkflow:
    def test_update_status_only_touches_workflow_fields(self, db_session, sent_emails):
        a = make_product(sku="WF", price_cents=1000)
        order = make_order([(a, 1)])
        return_doc, _, _ = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=a.id, quantity=1)],
            reason="Workflow",
        )

        updated = return_service.update_return(
            return_id=return_doc.id,
            patch={"status": "approved", "refund_amount_cents": 1},
        )
        assert updated.status == "approved"
        assert updated.refund_amount_cents == 1000

    def test_list_by_order(self, db_session, sent_emails):
        a = make_product(sku="LB", price_cents=1000)
        order_1 = make_order([(a, 2)])
        order_2 = make_order([(a, 1)])
        for order in (order_1, order_2):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=a.id, quantity=1)],
                reason="List",
            )

        assert len(return_service.list_returns()) == 2
        assert [r.order_id for r in return_service.list_returns(order_id=order_1.id)] == [order_1.id]


class TestCreditIssueFailure:
    def test_code_failure_keeps_return(self, db_session, sent_emails, monkeypatch, caplog):
        from sqlalchemy.exc import IntegrityError

        def collide(**kwargs):
            raise IntegrityError("INSERT INTO discount_codes", {}, Exception("UNIQUE constraint failed"))

        monkeypatch.setattr(return_service, "issue_credit", collide)

        shirt = make_product(sku="SHIRT-IE", price_cents=5000)
        cap = make_product(sku="CAP-IE", price_cents=3000)
        order = make_order([(shirt, 1)])

        with caplog.at_level(logging.ERROR):
            return_doc, settlement, code = return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=shirt.id, quantity=1, exchange_product_id=cap.id)],
                reason="Exchange",
            )

        assert code is None
        assert settlement.credit_cents == 2000
        assert sent_emails == []
        assert "Failed to create discount code" in caplog.text

        db.session.expire_all()
        stored = db.session.get(Return, return_doc.id)
        assert stored is not None
        assert stored.credit_amount_cents == 2000
        assert db.session.query(DiscountCode).count() == 0
        assert db.session.get(Product, shirt.id).stock_quantity == 1


class TestSplitOrderLines:
    def _order_with_two_prices(self, product):
        order, _ = order_service.create_order(
            order_patch={"customer_name": "Jane Doe", "customer_email": "jane@example.com"},
            item_patches=[
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 4000},
                {"product_id": product.id, "quantity": 1, "unit_price_cents": 3000},
            ],
        )
        return order

    def test_each_unit_priced_from_its_own_line(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-2P", price_cents=5000)
        order = self._order_with_two_prices(shirt)

        return_doc, settlement, _ = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=2)],
            reason="Both",
        )

        assert settlement.total_return_cents == 7000
        assert settlement.refund_cents == 7000
        assert sorted(item.unit_price_cents for item in return_doc.items) == [3000, 4000]

    def test_partial_return_across_lines(self, db_session, sent_emails):
        shirt = make_product(sku="SHIRT-2Q", price_cents=5000)
        order = self._order_with_two_prices(shirt)

        _, settlement, _ = return_service.create_return(
            order_id=order.id,
            lines=[ReturnLineRequest(product_id=shirt.id, quantity=1)],
            reason="One",
        )
        assert settlement.total_return_cents in (3000, 4000)

        with pytest.raises(ValidationError):
            return_service.create_return(
                order_id=order.id,
                lines=[ReturnLineRequest(product_id=shirt.id, quantity=3)],
                reason="Too many",
            )
