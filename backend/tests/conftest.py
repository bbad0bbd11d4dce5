"""
Pytest fixtures for matepos backend tests.

Provides the app with an in-memory database, a per-test data wipe, the
register cart, seeded payment methods / products and a test client.
"""

from decimal import Decimal

import pytest

from matepos import create_app
from matepos.extensions import db
from matepos.models import Category, DiscountSettings, DISCOUNT_SETTINGS_ID, PaymentMethod, Product
from matepos.services.cart_service import get_cart


USER_ID = "operator-1"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CART_STORAGE_DIR': str(tmp_path_factory.mktemp('cart')),
        'SALE_RETRY_DELAY_SECONDS': 0,
        'DASHBOARD_READ_TIMEOUT_SECONDS': None,
        'STREAM_HEARTBEAT_SECONDS': 0.05,
    })

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
    """Fresh data (and an empty register cart) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        get_cart().clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def headers():
    return {'X-User-Id': USER_ID}


@pytest.fixture(scope='function')
def payment_methods(db_session):
    """cash + card active, transfer inactive."""
    methods = [
        PaymentMethod(code="cash", name="Efectivo", active=True),
        PaymentMethod(code="card", name="Tarjeta", active=True),
        PaymentMethod(code="transfer", name="Transferencia", active=False),
    ]
    db_session.add_all(methods)
    db_session.commit()
    return {m.code: m for m in methods}


@pytest.fixture(scope='function')
def discount_settings(db_session):
    """6+ units: 10% off, 12+ units: 15% off."""
    settings = DiscountSettings(
        id=DISCOUNT_SETTINGS_ID,
        tier1_quantity=6,
        tier1_discount=Decimal("10"),
        tier2_quantity=12,
        tier2_discount=Decimal("15"),
    )
    db_session.add(settings)
    db_session.commit()
    return settings


@pytest.fixture(scope='function')
def products(db_session):
    category = Category(name="Yerbas")
    db_session.add(category)
    db_session.flush()

    items = [
        Product(category_id=category.id, name="Yerba Playadito 1kg", price=Decimal("100.00"), stock=50),
        Product(category_id=category.id, name="Mate Imperial", price=Decimal("250.00"), stock=3),
    ]
    db_session.add_all(items)
    db_session.commit()
    return items


@pytest.fixture(scope='function')
def cart(db_session):
    return get_cart()
