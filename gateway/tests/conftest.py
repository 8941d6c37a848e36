import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from gateway.app.api.deps import get_generation_service, get_ledger, get_reputation_checker
from gateway.app.config.settings import settings
from gateway.app.core.errors import UpstreamError
from gateway.app.db.engine import reset_engine_for_tests
from gateway.app.db.models import Base
from gateway.app.db.session import get_db, reset_sessionmaker_for_tests
from gateway.app.main import app
from gateway.app.providers.types import GenerationError
from gateway.app.services.quota_service import QuotaLedger
from gateway.app.services.reputation import ReputationVerdict

DEVICE_ID = "0123456789abcdef"
CLIENT_IP = "8.8.8.8"
IMAGE_URL = "https://images.playground.com/abc123.jpeg"


class FrozenClock:
    """Callable clock for QuotaLedger; tests move it forward explicitly."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeReputation:
    provider_id = "fake"

    def __init__(self):
        self.blocked: set[str] = set()
        self.fail = False
        self.calls: list[str] = []

    async def check(self, ip_address: str) -> ReputationVerdict:
        self.calls.append(ip_address)
        if self.fail:
            raise UpstreamError(code="REPUTATION_UNAVAILABLE")
        if ip_address in self.blocked:
            return ReputationVerdict(allowed=False, reason="vpn")
        return ReputationVerdict(allowed=True)


class FakeGeneration:
    def __init__(self, result=IMAGE_URL):
        self.result = result
        self.prompts: list[str] = []

    async def generate(self, prompt: str):
        self.prompts.append(prompt)
        return self.result


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def db_session(db_url):
    engine = create_engine(db_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger(clock):
    return QuotaLedger(free_daily_limit=3, reset_policy="calendar_day", premium_duration_days=30, clock=clock)


@pytest.fixture
def reputation():
    return FakeReputation()


@pytest.fixture
def generation():
    return FakeGeneration()


@pytest.fixture
def client(db_url, db_session, ledger, reputation, generation, monkeypatch):
    # Override settings for testing
    monkeypatch.setattr(settings, "database_url", db_url)
    monkeypatch.setattr(settings, "identity_mode", "device")
    monkeypatch.setattr(settings, "reputation_enabled", False)
    monkeypatch.setattr(settings, "image_url_strategy", "direct")

    # Reset engine and session for new DB URL
    reset_engine_for_tests()
    reset_sessionmaker_for_tests()

    def override_get_db():
        yield db_session

    try:
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_ledger] = lambda: ledger
        app.dependency_overrides[get_reputation_checker] = lambda: reputation
        app.dependency_overrides[get_generation_service] = lambda: generation
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()
        reset_engine_for_tests()
        reset_sessionmaker_for_tests()
