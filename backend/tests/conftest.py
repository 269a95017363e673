"""
Pytest fixtures for posledger backend tests.

Provides test database setup, tenant fixtures, stock helpers and test client.
"""

from datetime import datetime

import pytest
from posledger import create_app
from posledger.extensions import db
from posledger.models import Organization, Supplier
from posledger.schemas import ProductRequest
from posledger.services.batch_service import create_batch
from posledger.services.product_service import register_product


DAY1 = datetime(2024, 1, 1, 9, 0, 0)
DAY2 = datetime(2024, 1, 2, 9, 0, 0)
DAY3 = datetime(2024, 1, 3, 9, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PURCHASE_AUTO_CREATE_PRODUCTS': True,
        'DB_RETRY_ATTEMPTS': 3,
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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def supplier_a(db_session, org_a):
    """Create a supplier in Organization A."""
    supplier = Supplier(org_id=org_a.id, name="Acme Wholesale", phone="01700000001", is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def supplier_b(db_session, org_b):
    """Create a supplier in Organization B."""
    supplier = Supplier(org_id=org_b.id, name="Beta Traders", phone="01800000002", is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


def _register(org_id: int, name: str, **overrides):
    payload = {
        "name": name,
        "category": "Grocery",
        "purchase_price_cents": 100,
        "retail_price_cents": 200,
        "wholesale_price_cents": 150,
    }
    payload.update(overrides)
    return register_product(org_id, ProductRequest.from_payload(payload))


@pytest.fixture(scope='function')
def product_a(db_session, org_a):
    """Registered product in Organization A with no stock."""
    return _register(org_a.id, "Rice 5kg")


@pytest.fixture(scope='function')
def product_a2(db_session, org_a, product_a):
    """Second registered product in Organization A with no stock."""
    return _register(org_a.id, "Lentils 1kg", purchase_price_cents=80, retail_price_cents=130, wholesale_price_cents=110)


@pytest.fixture(scope='function')
def product_b(db_session, org_b):
    """Registered product in Organization B with no stock."""
    return _register(org_b.id, "Flour 2kg")


@pytest.fixture(scope='function')
def make_batch(db_session):
    """
    Append a batch and add its quantity to the product, keeping the
    aggregate equal to the ledger.
    """
    def _make(product, quantity, *, purchase_price_cents=100, purchase_date=DAY1):
        batch = create_batch(
            org_id=product.org_id,
            product=product,
            quantity=quantity,
            purchase_price_cents=purchase_price_cents,
            purchase_date=purchase_date,
        )
        product.quantity += quantity
        db_session.commit()
        return batch

    return _make


def tenant_headers(code: str = "ACME") -> dict:
    """Helper to create X-Tenant-Code headers."""
    return {"X-Tenant-Code": code}
