"""
Pytest fixtures for smartshop backend tests.

Provides test database setup, two independent shops (for ownership
checks), and a test client.
"""

import pytest
from smartshop import create_app
from smartshop.extensions import db
from smartshop.models import User, Shop, Product, Customer
from smartshop.services.auth_service import hash_password
from smartshop.services.session_service import create_session

TEST_PASSWORD = "Password123!"

_password_hash_cache = {}


def cached_password_hash(password: str = TEST_PASSWORD) -> str:
    """bcrypt at cost 12 is slow; hash each test password once per run."""
    if password not in _password_hash_cache:
        _password_hash_cache[password] = hash_password(password)
    return _password_hash_cache[password]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DEFAULT_TIMEZONE': 'UTC',
        'DECREMENT_STOCK_ON_SALE': False,
        'ALLOW_SIGNUP': True,
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
def user_a(db_session):
    """Owner of shop A."""
    user = User(
        username="user_a",
        email="user_a@example.com",
        name="User A",
        password_hash=cached_password_hash(),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user_b(db_session):
    """Owner of shop B."""
    user = User(
        username="user_b",
        email="user_b@example.com",
        name="User B",
        password_hash=cached_password_hash(),
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def shop_a(db_session, user_a):
    shop = Shop(user_id=user_a.id, name="Test Shop", phone="0800000001")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session, user_b):
    shop = Shop(user_id=user_b.id, name="Other Shop", phone="0800000002")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    """Test Product in shop A, priced 150."""
    product = Product(
        shop_id=shop_a.id,
        name="Test Product",
        code="TP-001",
        cost_price_cents=100,
        selling_price_cents=150,
        current_stock=10,
        minimum_stock=2,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, shop_b):
    product = Product(
        shop_id=shop_b.id,
        name="Foreign Product",
        code="FP-001",
        selling_price_cents=2000,
        current_stock=5,
        minimum_stock=1,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, shop_a):
    customer = Customer(shop_id=shop_a.id, name="Test Customer", phone="0811111111")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def customer_b(db_session, shop_b):
    customer = Customer(shop_id=shop_b.id, name="Foreign Customer")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def headers_a(user_a):
    """Bearer headers for user A (session created directly, no bcrypt round-trip)."""
    _, token = create_session(user_id=user_a.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def headers_b(user_b):
    _, token = create_session(user_id=user_b.id)
    return auth_headers(token)


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
