# tests/conftest.py
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from resumedesk.api.v1.auth import get_current_user
from resumedesk.db.base import Base
from resumedesk.db.models import Gateway, User
from resumedesk.db.session import make_engine, get_db
from resumedesk.main import app
from resumedesk.services.gateways.paymob_gateway import PaymobGateway
from resumedesk.services.gateways.registry import get_gateways
from resumedesk.services.gateways.stripe_gateway import StripeGateway

from payloads import PAYMOB_HMAC_SECRET, STRIPE_WEBHOOK_SECRET


@pytest.fixture
def db_session():
    # one in-memory database per test
    engine = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    db = SessionLocal()
    yield db
    db.close()
    engine.dispose()


def make_user(db, user_id, email=None):
    user = User(id=user_id, email=email or f"{user_id}@example.com", first_name="Test", last_name="User")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user_a(db_session):
    return make_user(db_session, "user-a")


@pytest.fixture
def user_b(db_session):
    return make_user(db_session, "user-b")


@pytest.fixture
def stripe_gateway():
    return StripeGateway(secret_key="sk_test_123", webhook_secret=STRIPE_WEBHOOK_SECRET)


@pytest.fixture
def paymob_gateway():
    return PaymobGateway(
        api_key="paymob-api-key",
        integration_id=4242,
        iframe_id="777",
        hmac_secret=PAYMOB_HMAC_SECRET,
    )


@pytest.fixture
def api(db_session, user_a, stripe_gateway, paymob_gateway):
    """
    Wire the app to the test database, an authenticated user_a and test
    gateway adapters. Call `api.login(user)` to switch the caller.
    """
    class Api:
        gateways = {Gateway.STRIPE: stripe_gateway, Gateway.PAYMOB: paymob_gateway}

        def login(self, user):
            app.dependency_overrides[get_current_user] = lambda: user

        def logout(self):
            app.dependency_overrides.pop(get_current_user, None)

        def client(self):
            return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")

    harness = Api()
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_gateways] = lambda: harness.gateways
    harness.login(user_a)
    yield harness
    app.dependency_overrides.clear()


