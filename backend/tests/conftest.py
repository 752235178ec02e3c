"""
Shared pytest fixtures.

Environment variables are set before any application module is imported,
since settings and the global engine are created at import time.
"""
import os
import tempfile
from decimal import Decimal
from typing import Any, AsyncGenerator

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("IMAGE_CACHE_DIR", tempfile.mkdtemp(prefix="wholesale-images-"))
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("ZOHO_WEBHOOK_SECRET", "test-webhook-secret")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from wholesale.core.config import Settings
from wholesale.core.database import Base, SessionContextFactory, get_db_session, session_context_factory
from wholesale.models import Product, User, UserRole, UserStatus

ADMIN_KEY = os.environ["ADMIN_API_KEY"]
WEBHOOK_SECRET = os.environ["ZOHO_WEBHOOK_SECRET"]


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def session_context(session_factory) -> SessionContextFactory:
    return session_context_factory(session_factory)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with Zoho credentials and instant retries."""
    return Settings(
        environment="test",
        database_url="sqlite+aiosqlite:///:memory:",
        zoho_client_id="client-id",
        zoho_client_secret="client-secret",
        zoho_refresh_token="refresh-token",
        zoho_organization_id="org-1",
        zoho_webhook_secret=WEBHOOK_SECRET,
        admin_api_key=ADMIN_KEY,
        image_cache_dir=str(tmp_path / "images"),
        image_queue_delay_seconds=0,
        zoho_max_attempts=3,
    )


# ============================================
# FACTORIES
# ============================================

@pytest.fixture
def make_product(session_context):
    """Insert a product; keyword arguments override the defaults."""
    counter = {"n": 0}

    async def factory(**overrides: Any) -> Product:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "sku": f"SKU-{n}",
            "name": f"Product {n}",
            "category": "novelty",
            "base_price": Decimal("10.00"),
            "stock_quantity": 10,
            "is_active": True,
            "is_online": True,
            "zoho_item_id": f"item-{n}",
        }
        values.update(overrides)
        async with session_context() as session:
            product = Product(**values)
            session.add(product)
            await session.flush()
        return product

    return factory


@pytest.fixture
def make_user(session_context):
    """Insert a user; the password column holds a placeholder, not a hash."""
    counter = {"n": 0}

    async def factory(**overrides: Any) -> User:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "email": f"buyer{n}@example.com",
            "password": "not-a-hash",
            "role": UserRole.CUSTOMER.value,
            "status": UserStatus.APPROVED.value,
            "business_name": f"Buyer {n} LLC",
            "contact_name": f"Buyer {n}",
        }
        values.update(overrides)
        async with session_context() as session:
            user = User(**values)
            session.add(user)
            await session.flush()
        return user

    return factory


# ============================================
# HTTP
# ============================================

def zoho_handler(routes: dict[str, Any]):
    """
    MockTransport handler answering Zoho calls by URL path suffix.

    Token refreshes always succeed. A route value may be a dict (JSON body,
    status 200), an httpx.Response, or a callable taking the request.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth/v2/token"):
            return httpx.Response(200, json={"access_token": "token-1", "expires_in": 3600})
        for suffix, route in routes.items():
            if request.url.path.endswith(suffix):
                if callable(route):
                    return route(request)
                if isinstance(route, httpx.Response):
                    return route
                return httpx.Response(200, json={"code": 0, **route})
        return httpx.Response(404, json={"code": 1004, "message": "Not found"})

    return handler


@pytest.fixture
def registry(settings, session_context):
    from wholesale.services.registry import ServiceRegistry

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(zoho_handler({})))
    return ServiceRegistry.create(settings, session_context, http_client=http_client)


@pytest.fixture
def app(registry, session_factory):
    from wholesale.main import app

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.state.registry = registry
    app.dependency_overrides[get_db_session] = override_get_db_session
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    """Synchronous test client. The lifespan is not run; the registry is set directly."""
    return TestClient(app)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
