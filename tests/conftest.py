"""Pytest fixtures for testing"""

import os

# Point the service at the test database before settings are loaded
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from typing import Callable, Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from policy_gateway.api.main import create_app
from policy_gateway.api.dependencies import get_payment_gateway
from policy_gateway.infrastructure.database.models import Base
from policy_gateway.infrastructure.database.session import SessionLocal, engine, get_db
from policy_gateway.infrastructure.clients.payments import PaymentIntentGateway
from policy_gateway.domain.models import ApplicationDraft, Caller, IntentHandle, Nominee, Role
from policy_gateway.services.coordinator import LifecycleCoordinator


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> Callable[[], Session]:
    """Fresh sessions for simulating independent concurrent callers"""
    return SessionLocal


@pytest.fixture
def gateway() -> AsyncMock:
    """Payment processor double; no network"""
    gateway = AsyncMock(spec=PaymentIntentGateway)
    gateway.create_intent.return_value = IntentHandle(intent_id="pi_test_1", client_secret="pi_test_1_secret_abc")
    return gateway


@pytest.fixture
def coordinator(db: Session, gateway: AsyncMock) -> LifecycleCoordinator:
    return LifecycleCoordinator(db, gateway)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: PaymentIntentGateway(base_url="http://processor.test")
    return TestClient(app)


@pytest.fixture
def customer() -> Caller:
    return Caller(email="a@x.com", role=Role.CUSTOMER)


@pytest.fixture
def agent() -> Caller:
    return Caller(email="agent@insure.test", role=Role.AGENT)


@pytest.fixture
def admin() -> Caller:
    return Caller(email="admin@insure.test", role=Role.ADMIN)


@pytest.fixture
def make_draft() -> Callable[..., ApplicationDraft]:
    """Build a valid application; keyword arguments override fields"""

    def _make(**overrides) -> ApplicationDraft:
        fields = dict(
            name="Amina Rahman",
            email="a@x.com",
            address="12 Lake Road, Dhaka",
            national_id="1990123456789",
            nominee=Nominee(name="Karim Rahman", relationship="Spouse"),
            insurance_type="life",
            coverage_amount=50000,
            payment_term="monthly",
            health_disclosure=["None"],
        )
        fields.update(overrides)
        return ApplicationDraft(**fields)

    return _make


@pytest.fixture
def application_payload() -> dict:
    """Valid JSON body for POST /v1/applications"""
    return {
        "name": "Amina Rahman",
        "email": "a@x.com",
        "address": "12 Lake Road, Dhaka",
        "national_id": "1990123456789",
        "nominee": {"name": "Karim Rahman", "relationship": "Spouse"},
        "insurance_type": "life",
        "coverage_amount": 50000,
        "payment_term": "monthly",
        "health_disclosure": ["Asthma"],
    }


@pytest.fixture
def headers_for() -> Callable[[Caller], dict]:
    """Identity headers the authentication proxy would forward"""

    def _headers(caller: Caller) -> dict:
        return {"X-User-Email": caller.email, "X-User-Role": caller.role.value}

    return _headers
