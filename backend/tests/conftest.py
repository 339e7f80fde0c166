"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, catalog/order factories, and test client.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Product
from stockroom.services import order_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SMTP_USER': None,
        'SMTP_PASS': None,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client on a clean database."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def sent_emails(monkeypatch):
    """Capture store credit emails instead of talking to SMTP."""
    from stockroom.services import notification_service

    sent = []

    def fake_send(email, code, amount, expires_at):
        sent.append({"email": email, "code": code, "amount": amount, "expires_at": expires_at})
        return True

    monkeypatch.setattr(notification_service, "send_store_credit_email", fake_send)
    return sent


def make_product(sku="SKU-001", name="Test Product", price_cents=1000, stock_quantity=0, category="General"):
    """Insert a product directly (bypasses the API)."""
    product = Product(
        sku=sku,
        product_name=name,
        category=category,
        price_cents=price_cents,
        stock_quantity=stock_quantity,
    )
    db.session.add(product)
    db.session.commit()
    return product


def make_order(lines, customer_name="Jane Doe", customer_email="jane@example.com", status="delivered"):
    """
    Create an order through the service.

    lines: [(product, quantity), ...]; unit prices come from the catalog.
    """
    order, _ = order_service.create_order(
        order_patch={
            "customer_name": customer_name,
            "customer_email": customer_email,
            "status": status,
        },
        item_patches=[{"product_id": p.id, "quantity": qty} for p, qty in lines],
    )
    return order
