import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kc_review.models.base import Base
# Import all models so they register with Base.metadata for create_all
import kc_review.models  # noqa: F401
from kc_review.review_workflow.proposal_store import ProposalStore
from kc_review.review_workflow.service import ReviewService

SAMPLE_COEFFICIENTS = {
    "kc_initial": 0.4,
    "kc_development": 0.7,
    "kc_mid": 1.15,
    "kc_late": 0.8,
    "initial_stage_days": 25,
    "development_stage_days": 35,
    "mid_stage_days": 40,
    "late_stage_days": 30,
}

SAMPLE_PROVENANCE = {
    "source": "Test User Submission",
    "submitted_by_name": "Test User",
    "submitted_by_email": "testuser@example.com",
    "notes": "Submitted for review workflow testing.",
}


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def test_engine(tmp_path):
    # Use SQLite for tests (no Postgres dependency needed for unit tests)
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def review_settings():
    from unittest.mock import MagicMock

    settings = MagicMock()
    settings.review_operation_timeout_seconds = 10.0
    settings.max_multiplier = 2.0
    return settings


@pytest.fixture
def store():
    return ProposalStore()


@pytest.fixture
def review_service(session_factory, review_settings):
    return ReviewService(session_factory, review_settings)


@pytest.fixture
async def client(test_engine, session_factory):
    from kc_review.dependencies import get_db, get_session_factory
    from kc_review.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def coefficients() -> dict:
    """The coefficient set from the original admin-panel test submission."""
    return dict(SAMPLE_COEFFICIENTS)


@pytest.fixture
def provenance() -> dict:
    return dict(SAMPLE_PROVENANCE)
