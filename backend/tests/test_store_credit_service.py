import unittest
from datetime import timedelta

from flask import Flask

from stockroom.extensions import db
from stockroom.models import DiscountCode
from stockroom.services import store_credit_service
from stockroom.services.store_credit_service import parse_redemption_amount
from stockroom.time_utils import utcnow
from stockroom.validation import ValidationError


class StoreCreditServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = Flask(__name__)
        cls.app.config.update(
            SECRET_KEY="test",
            SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
            SQLALCHEMY_TRACK_MODIFICATIONS=False,
            TESTING=True,
        )
        db.init_app(cls.app)
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        from stockroom import models  # noqa: F401
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(DiscountCode).delete()
        db.session.commit()

        self.code = store_credit_service.issue_credit(
            customer_email="jane@example.com",
            amount_cents=5000,
            expires_at=utcnow() + timedelta(days=30),
        )
        self.code_value = self.code.code

    def _reload(self):
        db.session.expire_all()
        return store_credit_service.get_credit_by_code(self.code_value)

    def test_issue_generates_credit_code(self):
        self.assertTrue(self.code_value.startswith("CREDIT-"))
        self.assertEqual(self.code.amount_cents, 5000)
        self.assertFalse(self.code.is_used)
        self.assertIsNone(self.code.used_at)

    def test_issue_requires_positive_amount(self):
        with self.assertRaises(ValidationError):
            store_credit_service.issue_credit(customer_email="jane@example.com", amount_cents=0)

    def test_partial_redemption_lowers_balance(self):
        result = store_credit_service.redeem(self.code_value, "15.00")

        self.assertTrue(result.found)
        self.assertFalse(result.fully_used)
        self.assertEqual(result.to_dict()["remaining_credit"]["amount"], "35.00")

        remaining = self._reload()
        self.assertEqual(remaining.amount_cents, 3500)
        self.assertFalse(remaining.is_used)

    def test_exact_redemption_deletes_code(self):
        result = store_credit_service.redeem(self.code_value, "50.00")

        self.assertTrue(result.fully_used)
        self.assertIsNone(result.remaining)
        self.assertEqual(
            result.to_dict(),
            {"success": True, "remaining_credit": None, "fully_used": True},
        )
        self.assertIsNone(self._reload())

    def test_over_redemption_rejected_and_unchanged(self):
        with self.assertRaises(ValidationError) as ctx:
            store_credit_service.redeem(self.code_value, "50.01")
        self.assertIn("50.00", str(ctx.exception))
        self.assertEqual(self._reload().amount_cents, 5000)

    def test_spending_twice_until_gone(self):
        store_credit_service.redeem(self.code_value, 20)
        store_credit_service.redeem(self.code_value, 30)

        result = store_credit_service.redeem(self.code_value, 20)
        self.assertFalse(result.found)

    def test_unknown_code_not_found(self):
        result = store_credit_service.redeem("CREDIT-0-NOPE00", "1.00")
        self.assertFalse(result.found)

    def test_code_lookup_is_case_sensitive(self):
        result = store_credit_service.redeem(self.code_value.lower(), "1.00")
        self.assertFalse(result.found)

    def test_expired_code_rejected(self):
        self.code.expires_at = utcnow() - timedelta(days=1)
        db.session.commit()

        with self.assertRaises(ValidationError):
            store_credit_service.redeem(self.code_value, "1.00")
        self.assertEqual(self._reload().amount_cents, 5000)

    def test_non_positive_amounts_rejected(self):
        for bad in (0, "0", -5, "-1.00", "abc", None, "", True):
            with self.subTest(amount=bad):
                with self.assertRaises(ValidationError):
                    parse_redemption_amount(bad)

    def test_amount_rounds_half_up_to_cents(self):
        self.assertEqual(parse_redemption_amount("10.005"), 1001)
        self.assertEqual(parse_redemption_amount(12.5), 1250)

    def test_list_filters_by_email(self):
        store_credit_service.issue_credit(customer_email="bob@example.com", amount_cents=100)

        self.assertEqual(len(store_credit_service.list_credits()), 2)
        only_bob = store_credit_service.list_credits(customer_email="bob@example.com")
        self.assertEqual([c.customer_email for c in only_bob], ["bob@example.com"])

    def test_purge_expired(self):
        old = store_credit_service.issue_credit(
            customer_email="old@example.com",
            amount_cents=100,
            expires_at=utcnow() - timedelta(days=1),
        )
        store_credit_service.issue_credit(customer_email="forever@example.com", amount_cents=100)
        old_code = old.code

        removed = store_credit_service.purge_expired()

        self.assertEqual(removed, 1)
        self.assertIsNone(store_credit_service.get_credit_by_code(old_code))
        self.assertIsNotNone(self._reload())

    def test_delete_credit(self):
        credit_id = self.code.id
        self.assertTrue(store_credit_service.delete_credit(credit_id))
        self.assertFalse(store_credit_service.delete_credit(credit_id))


if __name__ == "__main__":
    unittest.main()
