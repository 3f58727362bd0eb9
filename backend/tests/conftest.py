"""
Pytest fixtures for kiosk backend tests.

Provides the application on an in-memory database, a clean database per
test, back-office users, catalog fixtures and httpx mock transports for
the POS and crypto gateway.
"""

import json

import httpx
import pytest

from kiosk import create_app
from kiosk.config import Config
from kiosk.extensions import db
from kiosk.models import Category, Customer, Product, User
from kiosk.services.auth_service import hash_password


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test"
    LOG_LEVEL = "WARNING"
    KIOSK_ID = "KIOSK-TEST"
    KIOSK_LOCATION = "Test Store"
    POS_API_URL = "http://pos.test"
    KIOSK_API_KEY = "pos-key"
    NOWPAYMENTS_API_URL = "https://gateway.test/v1"
    NOWPAYMENTS_API_KEY = "np-key"
    NOWPAYMENTS_IPN_SECRET = "ipn-secret"
    CRYPTO_IPN_CALLBACK_URL = ""
    SESSION_IDLE_SECONDS = 60
    SESSION_WARNING_SECONDS = 60
    JOINT_BUILDER_IDLE_SECONDS = 300
    POINT_VALUE_CENTS = 100
    DEFAULT_TRANSACTION_PREFIX = "TRX"
    CORS_ORIGINS = ["http://localhost:5173"]


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(TestingConfig)
    storage = tmp_path_factory.mktemp("storage")
    app.config.update({
        'UPLOAD_FOLDER': str(storage / "uploads"),
        'ASSET_CACHE_FOLDER': str(storage / "asset_cache"),
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


class FakeUpstream:
    """
    Records requests and answers them from a route table.

    routes maps (method, path) to a dict (JSON body, HTTP 200), a
    (status, body) tuple, or an exception instance to raise.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append({
            "method": request.method,
            "path": request.url.path,
            "params": dict(request.url.params),
            "headers": dict(request.headers),
            "json": body,
        })
        answer = self.routes.get((request.method, request.url.path))
        if answer is None:
            return httpx.Response(404, json={"message": "not found"})
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, tuple):
            status, payload = answer
            return httpx.Response(status, json=payload)
        return httpx.Response(200, json=answer)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(scope='function')
def pos(app):
    """Fake POS API accepting every order."""
    upstream = FakeUpstream({
        ("POST", "/api/orders/submit"): {"success": True, "data": {"queued": True}},
    })
    app.config["POS_TRANSPORT"] = upstream.transport
    yield upstream
    app.config["POS_TRANSPORT"] = None


@pytest.fixture(scope='function')
def gateway(app):
    """Fake NOWPayments API; tests fill in routes as needed."""
    upstream = FakeUpstream()
    app.config["NOWPAYMENTS_TRANSPORT"] = upstream.transport
    yield upstream
    app.config["NOWPAYMENTS_TRANSPORT"] = None


@pytest.fixture(scope='function')
def admin_user(db_session):
    user = User(username="admin", email="admin@kiosk.test", password_hash=hash_password(PASSWORD), role="admin")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def staff_user(db_session):
    user = User(username="staff", email="staff@kiosk.test", password_hash=hash_password(PASSWORD), role="staff")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin", PASSWORD))


@pytest.fixture(scope='function')
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "staff", PASSWORD))


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(category_code="CAT-001", name="Flowers")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def product(db_session, category):
    """Simple product: 500 baht, 450 for members, 10% product cashback."""
    prod = Product(
        product_code="PRD-001",
        category_id=category.id,
        name="Lemon Haze 1g",
        price_cents=50000,
        member_price_cents=45000,
        cashback_enabled=True,
        cashback_type="percentage",
        cashback_value=1000,
        pos_item_id="POS-LH1",
    )
    db_session.add(prod)
    db_session.commit()
    return prod


@pytest.fixture(scope='function')
def member(db_session):
    customer = Customer(customer_code="CK-0001", member_id="M100", name="Somchai", last_name="Dee")
    db_session.add(customer)
    db_session.commit()
    return customer


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
