"""
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest before any tests run.
"""

import json
import os

# Set test environment variables BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["ENVIRONMENT"] = "testing"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing"
os.environ["USE_GCS"] = "false"  # Disable GCS for tests
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""
os.environ["ADMIN_NOTIFICATION_EMAILS"] = "ops@example.com"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["LOG_TO_FILE"] = "false"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from celery.result import EagerResult  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from kombu.exceptions import OperationalError  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.dependencies import (  # noqa: E402
    get_notifier,
    get_payment_gateway,
    get_retention_jobs,
    get_storage,
)
from app.core.security import create_access_token, get_password_hash  # noqa: E402
from app.db.models import ArchiveBase, Base, Event, User, UserRole  # noqa: E402
from app.db.session import SessionLocal, engine  # noqa: E402
from app.jobs.retention import RetentionJobs  # noqa: E402
from app.services.notification_service import DeliveryResult  # noqa: E402
from app.services.payment_gateway import PaymentGatewayClient, compute_signature  # noqa: E402
from main import app  # noqa: E402

TEST_PASSWORD = "SecurePassword123!"
_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


class RecordingNotifier:
    """Stands in for the email dispatcher and keeps every job it was given."""

    transport = "console"

    def __init__(self):
        self.settings = settings
        self.queued = []
        self.sent = []
        self.fail_sends = False
        self.broker_down = False

    def enqueue(self, job):
        if self.broker_down:
            raise OperationalError("Error 111 connecting to localhost:6379. Connection refused.")
        self.queued.append(job)
        result = DeliveryResult(
            recipients=job.recipients,
            subject=job.subject,
            delivered=True,
            attempts=1,
            transport=self.transport,
        )
        return EagerResult(f"task-{len(self.queued)}", result.to_dict(), "SUCCESS")

    def send(self, job):
        self.sent.append(job)
        return DeliveryResult(
            recipients=job.recipients,
            subject=job.subject,
            delivered=not self.fail_sends,
            attempts=1,
            transport=self.transport,
            error="SMTP unavailable" if self.fail_sends else None,
        )


class InMemoryStorage:
    """File host double that keeps uploads in a dict."""

    def __init__(self):
        self.files = {}
        self.deleted = []

    def upload(self, data, folder, filename="upload", content_type=None):
        public_id = f"{folder}/{filename}"
        self.files[public_id] = data
        return {"url": f"https://storage.test/{public_id}", "public_id": public_id}

    def delete(self, public_id):
        self.deleted.append(public_id)
        return self.files.pop(public_id, None) is not None


def sign(order_id: str, payment_id: str) -> str:
    """Signature the gateway would send for a genuine checkout."""
    return compute_signature(settings.razorpay_key_secret, order_id, payment_id)


@pytest.fixture(autouse=True)
def reset_database():
    """Fresh schema for every test."""
    ArchiveBase.metadata.drop_all(bind=engine)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    ArchiveBase.metadata.drop_all(bind=engine)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway_requests():
    return []


@pytest.fixture
def gateway(gateway_requests):
    """Real gateway client talking to a mocked orders API."""

    def handler(request: httpx.Request) -> httpx.Response:
        gateway_requests.append(request)
        payload = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "order_test_1",
                "entity": "order",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "notes": payload["notes"],
                "status": "created",
            },
        )

    client = PaymentGatewayClient(
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        transport=httpx.MockTransport(handler),
    )
    yield client
    client.close()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def retention_jobs(notifier):
    return RetentionJobs(SessionLocal, notifier, settings)


@pytest.fixture
def client(gateway, notifier, storage, retention_jobs):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_retention_jobs] = lambda: retention_jobs
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(role: UserRole = UserRole.PARTICIPANT, email: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            username=f"user{counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            full_name=f"Test User {counter['n']}",
            phone="9876543210",
            password_hash=_PASSWORD_HASH,
            role=role,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_event(db_session):
    def _make(**overrides) -> Event:
        values = {
            "title": "State Skating Championship",
            "location": "Pune",
            "start_date": date.today() + timedelta(days=10),
            "is_team_event": False,
            "price_per_person": Decimal("500.00"),
            "price_per_team": None,
            "live": True,
        }
        values.update(overrides)
        event = Event(**values)
        db_session.add(event)
        db_session.commit()
        return event

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def participant(make_user):
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user(role=UserRole.ADMIN)
