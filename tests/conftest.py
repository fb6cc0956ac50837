"""
Test Configuration and Fixtures

Each test gets a fresh in-memory SQLite database. API tests go through the
real FastAPI app with the get_db dependency pointed at that database.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ADMIN_ROLES", "admin,super_admin")

import uuid
from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.tenant_context import RequestContext
from app.database import Base, enable_sqlite_savepoints, get_db
from app.main import app


# ======================
# Database Fixtures
# ======================

@pytest.fixture
async def engine():
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(test_engine)
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests. Do not mix with the client fixture."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ======================
# Tenant Fixtures
# ======================

@pytest.fixture
def tenant_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def context(tenant_id) -> RequestContext:
    return RequestContext(tenant_id=tenant_id, user_id="buyer@test")


@pytest.fixture
def admin_context(tenant_id) -> RequestContext:
    return RequestContext(tenant_id=tenant_id, user_id="admin@test", roles=frozenset({"admin"}))


@pytest.fixture
def tenant_headers(tenant_id) -> Dict[str, str]:
    return {"X-Tenant-ID": str(tenant_id), "X-User-ID": "buyer@test"}


@pytest.fixture
def admin_headers(tenant_id) -> Dict[str, str]:
    return {"X-Tenant-ID": str(tenant_id), "X-User-ID": "admin@test", "X-User-Roles": "admin"}


# ======================
# HTTP Client Fixtures
# ======================

@pytest.fixture
async def client(session_factory, tenant_headers) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client with tenant headers, one committed transaction per request."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=tenant_headers) as ac:
        yield ac
    app.dependency_overrides.clear()
