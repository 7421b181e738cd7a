import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from core.db import Base, build_engine, get_db
from core import config as core_config
from models.user import User
from security import jwt as jwt_utils
from services import email as email_service
from services.order_store import OrderStore
from services.razorpay import GatewayError, get_gateway_client
from services.subscriptions import SqlUserDirectory, SubscriptionActivator

CHECKOUT_SECRET = "test-checkout-secret"
WEBHOOK_SECRET = "test-webhook-secret"


class FakeGateway:
    """Zero-I/O stand-in for the Razorpay client."""

    def __init__(self):
        self.calls = []
        self.fail = False
        self._counter = 0

    def create_order(self, amount, currency, receipt, notes):
        self.calls.append({"amount": amount, "currency": currency, "receipt": receipt, "notes": dict(notes)})
        if self.fail:
            raise GatewayError("gateway down")
        self._counter += 1
        return {
            "gateway_order_id": f"order_test{self._counter:04d}",
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
        }


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.RAZORPAY_KEY_ID = "rzp_test_key"
    core_config.settings.RAZORPAY_KEY_SECRET = CHECKOUT_SECRET
    core_config.settings.RAZORPAY_WEBHOOK_SECRET = WEBHOOK_SECRET
    core_config.settings.PAYMENT_CURRENCY = "INR"
    core_config.settings.TESTING = True
    yield


@pytest.fixture()
def db_session_override():
    engine = build_engine("sqlite+pysqlite:///:memory:")
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    def _get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def mock_email_send(monkeypatch):
    sent = []

    def _fake_send(to_email: str, subject: str, body: str) -> None:
        sent.append({"to": to_email, "subject": subject, "body": body})

    monkeypatch.setattr(email_service, "send_email", _fake_send)
    return sent


@pytest.fixture()
def fake_gateway(db_session_override):
    gateway = FakeGateway()
    app.dependency_overrides[get_gateway_client] = lambda: gateway
    return gateway


@pytest.fixture()
def client(db_session_override, fake_gateway):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def activations(monkeypatch):
    """Records every SubscriptionActivator.activate call, then runs the real one."""
    calls = []
    original = SubscriptionActivator.activate

    def _recording(self, owner_id, plan):
        calls.append((owner_id, plan))
        return original(self, owner_id, plan)

    monkeypatch.setattr(SubscriptionActivator, "activate", _recording)
    return calls


@pytest.fixture()
def store(db_session_override):
    activator = SubscriptionActivator(SqlUserDirectory(db_session_override))
    return OrderStore(db_session_override, on_paid=[activator.on_order_paid])


def _make_user(db, first_name, last_name, email):
    user = User(first_name=first_name, last_name=last_name, email=email)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def test_user(db_session_override):
    """Create a test user."""
    return _make_user(db_session_override, "Test", "User", "test@example.com")


@pytest.fixture
def other_user(db_session_override):
    return _make_user(db_session_override, "Other", "Person", "other@example.com")


@pytest.fixture
def auth_token(test_user):
    """Generate a valid JWT token for test user."""
    return jwt_utils.create_access_token(str(test_user.id))


@pytest.fixture
def auth_headers(auth_token):
    """Return authorization headers with valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def other_headers(other_user):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(other_user.id))}"}
