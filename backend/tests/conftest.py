"""
Pytest fixtures for warehouse backend tests.

Provides test database setup, accounts, a loaded store, and test client.
"""

import pytest
from warehouse import create_app
from warehouse.extensions import db
from warehouse.models import Profile
from warehouse.services.gateway import RemoteDataGateway
from warehouse.services.identity_service import sign_up
from warehouse.services.records import DEFAULT_ROLE_PERMISSIONS
from warehouse.services.store import WarehouseStore


DEFAULT_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SQLALCHEMY_ENGINE_OPTIONS': {},
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
        app.extensions["warehouse_stores"].clear()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def create_account(db_session):
    """Factory: identity + profile. Returns the Profile row."""
    def _create(username, email=None, role="staff", password=DEFAULT_PASSWORD, must_set_password=False):
        identity = sign_up(email or f"{username}@warehouse.test", password)
        profile = Profile(
            user_id=identity.id,
            username=username,
            email=identity.email,
            role=role,
            permissions=list(DEFAULT_ROLE_PERMISSIONS.get(role, [])),
            must_set_password=must_set_password,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return _create


@pytest.fixture(scope='function')
def admin_profile(create_account):
    return create_account("admin", "admin@warehouse.test", role="admin")


@pytest.fixture(scope='function')
def staff_profile(create_account):
    return create_account("staff", "staff@warehouse.test", role="staff")


@pytest.fixture(scope='function')
def store(db_session):
    """A loaded store over an empty database."""
    store = WarehouseStore(RemoteDataGateway())
    store.refresh_data()
    return store


@pytest.fixture(scope='function')
def steel_pipes(store):
    """25 on hand, alert at 30: starts low."""
    return store.add_product({
        "name": "Steel Pipes (2m)",
        "sku": "SP-002",
        "category": "Construction",
        "quantity": 25,
        "stock_alert": 30,
    })


@pytest.fixture(scope='function')
def bearings(store):
    return store.add_product({
        "name": "Industrial Bearings",
        "sku": "IB-001",
        "category": "Machinery Parts",
        "quantity": 150,
        "stock_alert": 50,
    })


def get_auth_token(client, email: str, password: str = DEFAULT_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_profile):
    return auth_headers(get_auth_token(client, admin_profile.email))


@pytest.fixture(scope='function')
def staff_headers(client, staff_profile):
    return auth_headers(get_auth_token(client, staff_profile.email))
