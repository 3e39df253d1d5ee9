"""
Pytest fixtures for Stockroom backend tests.

Provides test database setup, a fresh store/projection per test, role
providers, request headers, and small factories for catalog/order documents.
"""

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.services.permission_service import RolePermissionProvider
from stockroom.services.runtime import inventory
from stockroom.services import category_service, order_service, products_service, supplier_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Seeding is exercised explicitly in test_projection.py
        'SEED_DEFAULT_CATEGORIES': False,
        'STORE_COMMIT_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database and projection for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        inventory.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def admin():
    return RolePermissionProvider("admin")


@pytest.fixture
def manager():
    return RolePermissionProvider("manager")


@pytest.fixture
def staff():
    return RolePermissionProvider("staff")


@pytest.fixture
def admin_headers():
    return {"X-User-Role": "admin"}


@pytest.fixture
def manager_headers():
    return {"X-User-Role": "manager"}


@pytest.fixture
def staff_headers():
    return {"X-User-Role": "staff"}


@pytest.fixture
def make_category(db_session, admin):
    def _make(name="Electronics", **extra):
        return category_service.create_category(data={"name": name, **extra}, permissions=admin)
    return _make


@pytest.fixture
def make_supplier(db_session, admin):
    def _make(name="Acme Supply", **extra):
        data = {
            "name": name,
            "contactPerson": "Jane Doe",
            "email": "jane@acme.test",
            "phone": "555-0100",
            **extra,
        }
        return supplier_service.create_supplier(data=data, permissions=admin)
    return _make


@pytest.fixture
def make_product(db_session, admin):
    def _make(name="Laptop", category="Electronics", stock=20, price=999.99, **extra):
        data = {
            "name": name,
            "sku": extra.pop("sku", f"SKU-{name.upper()}"),
            "category": category,
            "stock": stock,
            "price": price,
            **extra,
        }
        return products_service.create_product(data=data, permissions=admin)
    return _make


@pytest.fixture
def make_order(db_session, admin):
    def _make(items, **extra):
        data = {
            "customer": {
                "name": "Sam Buyer",
                "email": "sam@example.test",
                "phone": "555-0199",
                "address": "1 Main St",
            },
            "items": items,
            **extra,
        }
        return order_service.create_order(data=data, permissions=admin)
    return _make
