"""
Pytest fixtures for the viralyzer backend tests.

Provides:
- In-memory SQLite database shared through a StaticPool
- Dev-mode user and project factories
- Draft cache backed by a temporary file
- ASGI test client with the database, draft cache and render client overridden
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Any

# Set test environment variables before importing app modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEV_MODE"] = "true"
os.environ["RENDER_API_KEY"] = "test-render-key"
os.environ["PUBLIC_BASE_URL"] = "https://api.viralyzer.test"
os.environ["DRAFT_CACHE_PATH"] = str(Path(tempfile.mkdtemp(prefix="viralyzer_test_")) / "drafts.db")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from viralyzer.api.deps import get_render_client, settings
from viralyzer.main import app
from viralyzer.models import Base, Project, User
from viralyzer.models.database import get_db
from viralyzer.services.draft_cache import DraftCache, get_draft_cache
from viralyzer.services.render_client import RenderServiceClient

# =============================================================================
# Test Database Configuration
# =============================================================================

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite defers BEGIN; emit it ourselves so SAVEPOINTs behave
@event.listens_for(test_engine.sync_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema and session per test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
async def user(db_session: AsyncSession) -> User:
    """The dev-mode user the API resolves for requests without a token."""
    user = User(
        firebase_uid=settings.dev_user_id,
        email=settings.dev_user_email,
        name=settings.dev_user_name,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
def make_project(db_session: AsyncSession, user: User) -> Callable[..., Any]:
    """Factory for projects owned by the dev user."""

    async def _make(name: str = "Morning routine", status: str = "Scripting", **kwargs: Any) -> Project:
        project = Project(user_id=user.id, name=name, status=status, **kwargs)
        db_session.add(project)
        await db_session.commit()
        return project

    return _make


@pytest.fixture
async def project(make_project) -> Project:
    return await make_project()


@pytest.fixture
def sample_document() -> dict[str, Any]:
    """A raw editor document with the usual client-side noise."""
    return {
        "timeline": {
            "background": "#000000",
            "tracks": [
                {
                    "clips": [
                        {
                            "asset": {"type": "title", "text": "Hook", "color": "#ffffff"},
                            "start": "0",
                            "length": 3,
                            "fit": "cover",
                            "transition": {"in": "fade", "duration": 1},
                        },
                        {
                            "asset": {"src": "https://cdn.example.com/clip.mp4"},
                            "start": 3,
                            "length": 0,
                        },
                    ]
                },
                {
                    "clips": [
                        {"asset": {"src": "https://cdn.example.com/music.mp3", "volume": 0.4}, "start": -2},
                    ]
                },
            ],
        },
    }


# =============================================================================
# Draft Cache / Render Service Fixtures
# =============================================================================


@pytest.fixture
def draft_cache(tmp_path: Path) -> Generator[DraftCache, None, None]:
    cache = DraftCache(tmp_path / "drafts.db")
    yield cache
    cache.close()


@pytest.fixture
def render_requests() -> list[httpx.Request]:
    """Requests seen by the fake render service."""
    return []


@pytest.fixture
def render_service_handler(render_requests: list[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    """Default fake render service: accepts every render and reports it as rendering."""

    def handler(request: httpx.Request) -> httpx.Response:
        render_requests.append(request)
        if request.method == "POST" and request.url.path.endswith("/render"):
            return httpx.Response(201, json={"success": True, "response": {"id": "render-123"}})
        if request.method == "GET":
            render_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"response": {"id": render_id, "status": "rendering"}})
        return httpx.Response(404, json={"message": "not found"})

    return handler


@pytest.fixture
def render_client(render_service_handler) -> RenderServiceClient:
    return RenderServiceClient(settings, transport=httpx.MockTransport(render_service_handler))


# =============================================================================
# API Client
# =============================================================================


@pytest.fixture
async def client(
    db_session: AsyncSession,
    user: User,
    draft_cache: DraftCache,
    render_client: RenderServiceClient,
) -> AsyncGenerator[AsyncClient, None]:
    """ASGI client sharing the test session; requests resolve to the dev user."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_draft_cache] = lambda: draft_cache
    app.dependency_overrides[get_render_client] = lambda: render_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
