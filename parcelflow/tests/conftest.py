"""
Centralized Test Configuration.

In-memory SQLite database, an in-memory Redis double, a fake payment
gateway and a fake identity verifier, wired into the app through
dependency overrides.
"""

import itertools
from typing import Any, Dict, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from parcelflow.app.main import app
from parcelflow.app.db.session import get_db, get_session_factory, Base
from parcelflow.app.core.redis_client import get_redis
from parcelflow.app.core.identity import get_token_verifier
from parcelflow.app.core.exceptions import AuthError
from parcelflow.app.core.timeutils import utcnow
from parcelflow.app.domain.parcels.lifecycle import ParcelLifecycleEngine
from parcelflow.app.domain.payments.gateway import CheckoutSession, get_payment_gateway
from parcelflow.app.domain.payments.reconciliation import PaymentReconciliationService
from parcelflow.app.models.enums import UserRole, RiderStatus, WorkStatus
from parcelflow.app.models.rider import Rider
from parcelflow.app.models.user import User
from parcelflow.app.services.notification_service import NotificationService
from parcelflow.app.services.rider_work_state import RiderWorkStateManager
from parcelflow.app.services.tracking_ledger import TrackingLedger

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self.fail = False

    async def ping(self):
        return not self.fail

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = value
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


class FakeGateway:
    """Checkout sessions kept in memory; ``complete`` plays the customer paying."""

    def __init__(self):
        self.sessions: Dict[str, CheckoutSession] = {}
        self.created = []
        self.retrieve_calls = 0
        self._ids = itertools.count(1)

    async def create_checkout_session(self, *, amount_minor, currency, product_name,
                                      customer_email, metadata, success_url, cancel_url,
                                      idempotency_key=None):
        session_id = f"cs_test_{next(self._ids)}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.test/{session_id}",
            amount_total=amount_minor,
            currency=currency,
            customer_email=customer_email,
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        self.created.append({
            "amount_minor": amount_minor,
            "currency": currency,
            "product_name": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "idempotency_key": idempotency_key,
        })
        return session

    async def retrieve_checkout_session(self, session_id):
        self.retrieve_calls += 1
        return self.sessions[session_id]

    def complete(self, session_id: str, payment_intent: Optional[str] = None) -> CheckoutSession:
        session = self.sessions[session_id]
        session.payment_status = "paid"
        session.payment_intent = payment_intent or f"pi_{session_id}"
        return session


class FakeVerifier:
    """Maps bearer tokens to identity claims."""

    def __init__(self):
        self.tokens: Dict[str, Dict[str, Any]] = {}

    async def verify(self, token: str) -> Dict[str, Any]:
        claims = self.tokens.get(token)
        if claims is None:
            raise AuthError("unauthorized access")
        return claims


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def redis():
    return MockRedis()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
async def client(redis, gateway, verifier):
    """Async client for testing."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal
    app.dependency_overrides[get_redis] = override_get_redis
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_token_verifier] = lambda: verifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


@pytest.fixture
def ledger():
    return TrackingLedger(TestingSessionLocal)


@pytest.fixture
def notifier():
    return NotificationService(TestingSessionLocal)


@pytest.fixture
def lifecycle(db_session, ledger, notifier):
    return ParcelLifecycleEngine(db_session, ledger, RiderWorkStateManager(db_session), notifier)


@pytest.fixture
def reconciliation(db_session, gateway, lifecycle, ledger, notifier):
    return PaymentReconciliationService(
        db_session, gateway, lifecycle, ledger, notifier,
        currency="bdt", site_domain="https://parcels.test",
    )


@pytest.fixture
def sign_in(verifier):
    """
    Register a user with a role and return Bearer headers for them.

    ``register=False`` signs in an identity with no user row.
    """
    async def _sign_in(email: str, role: UserRole = UserRole.USER, register: bool = True):
        if register:
            async with TestingSessionLocal() as session:
                session.add(User(email=email, role=role, created_at=utcnow()))
                await session.commit()
        token = f"token-{email}"
        verifier.tokens[token] = {"email": email, "user_id": f"uid-{email}"}
        return {"Authorization": f"Bearer {token}"}

    return _sign_in


@pytest.fixture
def make_rider():
    """Insert a rider directly, approved and available unless told otherwise."""
    async def _make_rider(
        email: str,
        name: str = "Test Rider",
        status: RiderStatus = RiderStatus.APPROVED,
        work_status: Optional[WorkStatus] = WorkStatus.AVAILABLE,
        district: str = "Dhaka",
    ) -> Rider:
        async with TestingSessionLocal() as session:
            rider = Rider(
                name=name,
                email=email,
                phone="01700000000",
                rider_region="Dhaka",
                rider_district=district,
                status=status,
                work_status=work_status,
                created_at=utcnow(),
            )
            session.add(rider)
            await session.commit()
            return rider

    return _make_rider


def parcel_payload(sender_email: str = "sender@test.com", **overrides) -> Dict[str, Any]:
    payload = {
        "parcel_type": "document",
        "parcel_name": "Contract papers",
        "parcel_weight": 0.5,
        "amount": 100,
        "sender_name": "Sender",
        "sender_email": sender_email,
        "sender_region": "Dhaka",
        "sender_district": "Dhaka",
        "sender_address": "House 1, Road 2",
        "receiver_name": "Receiver",
        "receiver_phone": "01800000000",
        "receiver_region": "Chattogram",
        "receiver_district": "Chattogram",
        "receiver_address": "House 3, Road 4",
    }
    payload.update(overrides)
    return payload
