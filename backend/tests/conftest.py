"""
Pytest fixtures for stockroom backend tests.

Provides the test database, accounts for each role, session contexts for
service-level tests, and auth headers for API tests.
"""

import pytest

from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import ROLE_ADMIN, ROLE_STAFF
from stockroom.services.auth_service import register_user
from stockroom.services.session_service import SessionContext, create_session
from stockroom.services import category_service, products_service

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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


def make_user(email: str, role: str = ROLE_STAFF, name: str | None = None, active: bool = True):
    user = register_user(email=email, password=PASSWORD, name=name, role=role)
    if not active:
        user.profile.is_active = False
        db.session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("admin@example.com", role=ROLE_ADMIN, name="Ada Admin")


@pytest.fixture(scope='function')
def staff_user(db_session):
    return make_user("staff@example.com", name="Sam Staff")


@pytest.fixture(scope='function')
def inactive_user(db_session):
    return make_user("inactive@example.com", name="Ivy Inactive", active=False)


def context_for(user) -> SessionContext:
    return SessionContext(user=user, profile=user.profile)


@pytest.fixture(scope='function')
def admin_ctx(admin_user):
    return context_for(admin_user)


@pytest.fixture(scope='function')
def staff_ctx(staff_user):
    return context_for(staff_user)


@pytest.fixture(scope='function')
def inactive_ctx(inactive_user):
    return context_for(inactive_user)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user) -> dict:
    _, token = create_session(user_id=user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture(scope='function')
def staff_headers(staff_user):
    return headers_for(staff_user)


@pytest.fixture(scope='function')
def inactive_headers(inactive_user):
    return headers_for(inactive_user)


@pytest.fixture(scope='function')
def category(admin_ctx):
    return category_service.create_category(
        admin_ctx, patch={"name": "Electronics", "description": "Devices"}
    )


@pytest.fixture(scope='function')
def make_product(staff_ctx):
    """Factory creating products through the service (opening balance goes through the ledger)."""
    def _make(sku: str = "SKU-001", quantity: int = 0, **fields):
        patch = {"name": fields.pop("name", f"Product {sku}"), "sku": sku, "quantity": quantity}
        patch.update(fields)
        return products_service.create_product(staff_ctx, patch=patch)
    return _make
