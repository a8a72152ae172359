"""
Pytest Configuration and Fixtures

Each test gets its own in-memory SQLite database with the module catalog
seeded, a controllable clock and a stub text generator for STELLA.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.db.base import Base
from app.models.module import TrainingModule
from app.services.catalog import seed_modules
from app.services.events import EventPublisher
from app.services.guidance import RecommendationAdapter
from app.services.llm_client import GenerationResponse
from app.services.sessions import SessionLifecycleManager

GUIDANCE_JSON = '{"message": "Nice plank work!", "actionItems": ["Add 10 seconds to your hold"]}'


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class StubGenerator:
    """TextGenerator double: returns ``text``, raises ``error`` or sleeps ``delay`` seconds."""

    def __init__(self, text: str = GUIDANCE_JSON, error: Exception | None = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return GenerationResponse(text=self.text, model=request.model or "stub")

    async def aclose(self):
        return None


# =============================================================================
# Runtime
# =============================================================================

@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings():
    """Settings isolated from any local .env."""
    return Settings(
        _env_file=None,
        debug=True,
        llm_api_key=None,
        guidance_timeout_seconds=0.2,
        complete_timeout_seconds=2.0,
    )


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def events():
    return EventPublisher()


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        await seed_modules(session)
        session.add(TrainingModule(
            module_id="quick-module",
            title="Quick Module",
            category="physical",
            difficulty="beginner",
            required_sessions=1,
            required_milestones=[],
            minimum_assessment_score=None,
            certification_name="Quick Certification",
            certification_credit_value=40,
        ))
        await session.commit()
        yield session


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def generator():
    return StubGenerator()


@pytest.fixture
def adapter(generator, settings):
    return RecommendationAdapter(generator, timeout=settings.guidance_timeout_seconds)


@pytest.fixture
def manager(db, adapter, settings, events, clock):
    return SessionLifecycleManager(db, adapter, settings=settings, events=events, clock=clock)


@pytest.fixture
def make_generator():
    """Factory for StubGenerator, for tests that need more than one."""
    return StubGenerator
