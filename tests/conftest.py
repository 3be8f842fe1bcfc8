"""
Pytest Configuration for ExamGuard Tests
"""
import os
from datetime import datetime, timedelta

import pytest

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-32-chars-min")
os.environ.setdefault("LOG_TO_FILE", "false")

from fastapi.testclient import TestClient  # noqa: E402


class FakeClock:
    """Controllable replacement for datetime.utcnow"""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float):
        self.now += timedelta(seconds=seconds)


def make_question_pool(store, domain_id: int = 1, count: int = 5):
    """Q1..Qn with options "<i>-a".."<i>-d"; the correct answer is always "<i>-a" """
    return [
        store.create_question(
            id=i,
            domain_id=domain_id,
            content=f"Question {i}",
            options=[f"{i}-a", f"{i}-b", f"{i}-c", f"{i}-d"],
            correct_answer=f"{i}-a",
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    """In-memory store with one active 30-minute exam over a 5-question pool"""
    from examguard.models import ExamStatus
    from examguard.storage import InMemoryRecordStore

    store = InMemoryRecordStore()
    store.create_exam(
        id=1,
        domain_id=1,
        title="Networking Basics",
        duration=30,
        question_count=2,
        status=ExamStatus.ACTIVE,
    )
    make_question_pool(store)
    return store


@pytest.fixture
def services(store, clock):
    from examguard.api.deps import Services
    from examguard.config import settings

    return Services(config=settings, store=store, clock=clock)


@pytest.fixture
def app(services):
    """Create FastAPI app for testing"""
    from examguard.main import create_app
    return create_app(services)


@pytest.fixture
def client(app):
    """FastAPI test client (startup/shutdown events run)"""
    with TestClient(app) as test_client:
        yield test_client


def make_token(user_id: str, role: str = "student") -> str:
    import jwt

    secret = os.getenv("JWT_SECRET", "test-jwt-secret-key-32-chars-min")
    payload = {
        "user_id": user_id,
        "role": role,
        "type": "access",
        "iat": datetime.utcnow(),
        "exp": datetime.utcnow() + timedelta(hours=1),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def auth_headers():
    """Auth headers for the student user 'student-1'"""
    return {"Authorization": f"Bearer {make_token('student-1')}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token('admin-1', role='admin')}"}


@pytest.fixture
def candidate(services):
    """student-1 assigned to exam 1, pinned seed"""
    return services.store.create_candidate(user_id="student-1", exam_id=1, random_seed="abc123")
