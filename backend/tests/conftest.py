"""
Pytest fixtures for stockroom backend tests.

Provides the app on an in-memory SQLite database, a per-test clean slate,
a test client, and small factories for items and customers.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Customer, InventoryItem


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'DB_RETRY_BACKOFF': 0.0,
    'LOW_STOCK_THRESHOLD': 10,
    'REPORT_TIMEZONE': 'UTC',
    'MAIL_FROM': 'reports@stockroom.test',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
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
def make_item(db_session):
    """Factory: insert an inventory item directly."""
    def _make(name="Widget", quantity=5, price_cents=500, category=None, description=None):
        item = InventoryItem(
            name=name,
            description=description or f"{name} description",
            category=category,
            quantity=quantity,
            price_cents=price_cents,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: insert a customer directly."""
    def _make(name="Ada Lovelace", mobile="5550100", address="12 Analytical Row", email=None):
        customer = Customer(name=name, mobile=mobile, address=address, email=email)
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current stock straight from the database, bypassing the identity map."""
    def _stock(item_id: int):
        return db_session.query(InventoryItem.quantity).filter_by(id=item_id).scalar()
    return _stock
