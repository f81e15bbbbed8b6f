"""
Pytest fixtures for clinicstock backend tests.

Provides test database setup, user/product factories, token helpers, and test client.
"""

import pytest

from clinicstock import create_app
from clinicstock.extensions import db
from clinicstock.models import Product, Supplier
from clinicstock.services.auth_service import create_user
from clinicstock.services.identity_service import get_identity_cache
from clinicstock.services.token_service import create_access_token


TEST_PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'JWT_SECRET': 'test-jwt-secret',
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
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
        get_identity_cache().clear_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: create a user with a role and optional explicit permissions."""
    counter = {"n": 0}

    def _make(role="staff", permissions=None, username=None):
        counter["n"] += 1
        return create_user(
            username=username or f"{role}_{counter['n']}",
            password=TEST_PASSWORD,
            role=role,
            feature_permissions=permissions,
        )

    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: create a product (stock is set directly; tests that check the ledger book it)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']:03d}",
            "base_unit": "piece",
            "current_stock": 0,
            "reorder_point": 10,
        }
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Pharma", code="ACME")
    db_session.add(supplier)
    db_session.commit()
    return supplier


def token_for(user, **kwargs) -> str:
    """Helper to issue a bearer token for a user."""
    return create_access_token(user.id, role=user.role, **kwargs)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_for():
    """Authorization headers for a user object."""
    def _headers(user):
        return auth_headers(token_for(user))
    return _headers
