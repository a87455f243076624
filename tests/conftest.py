"""
Shared fixtures.

Every test gets its own SQLite file (aiosqlite) with the full schema. The
API client talks to the real app over ASGITransport; only get_db_session is
overridden to point at that file. Lifespan does not run under
ASGITransport, so nothing here needs PostgreSQL.
"""

import os

# Must be set before tracker.config is imported anywhere.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SESSION_SECRET_KEY", "test-secret")
os.environ.setdefault("DEBUG", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tracker.auth.session import issue_session_token
from tracker.db import models  # noqa: F401  registers the tables on Base.metadata
from tracker.db.engine import Base, get_db_session
from tracker.db.repositories import TrackerRepository
from tracker.main import app


@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tracker.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def repo(session):
    return TrackerRepository(session)


@pytest.fixture
async def client(session_maker):
    async def override_get_db_session():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(repo):
    """Create and commit a user: `await make_user("ada@example.com", role="admin")`."""

    async def _make_user(email, name=None, role="employee", protected=False):
        async with repo.atomic():
            return await repo.create_user(
                name=name or email.split("@")[0],
                email=email,
                role=role,
                protected=protected,
            )

    return _make_user


def auth_headers(email=None, **profile):
    """Authorization header carrying a session for the given OAuth profile."""
    if email is not None:
        profile["email"] = email
    return {"Authorization": f"Bearer {issue_session_token(profile)}"}


@pytest.fixture
def auth():
    return auth_headers
