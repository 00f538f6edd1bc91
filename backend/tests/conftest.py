"""Pytest configuration and fixtures for testing."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./tradeflow_test.db")
os.environ.setdefault("ENVIRONMENT", "test")

from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tradeflow.main import app
from tradeflow.database import Base, get_db, get_session_factory
from tradeflow.models.product import Product

BUYER_ID = "buyer-1"
OTHER_BUYER_ID = "buyer-2"
VENDOR_ID = "vendor-1"
OTHER_VENDOR_ID = "vendor-2"


def principal_headers(user_id: str, role: str) -> dict:
    """Identity headers as set by the auth gateway."""
    return {"X-User-Id": user_id, "X-User-Role": role}


@pytest.fixture
async def engine(tmp_path):
    """
    Fresh SQLite database file for each test.

    A file (rather than :memory:) lets concurrent sessions see each other's commits.
    """
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for seeding and inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Create test client with database dependency overrides.

    Every request gets its own session, as in production.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def buyer() -> dict:
    return principal_headers(BUYER_ID, "buyer")


@pytest.fixture
def other_buyer() -> dict:
    return principal_headers(OTHER_BUYER_ID, "buyer")


@pytest.fixture
def vendor() -> dict:
    return principal_headers(VENDOR_ID, "vendor")


@pytest.fixture
def other_vendor() -> dict:
    return principal_headers(OTHER_VENDOR_ID, "vendor")


@pytest.fixture
def admin() -> dict:
    return principal_headers("admin-1", "admin")


@pytest.fixture
async def product(db: AsyncSession) -> Product:
    """
    A $1000 product listed by VENDOR_ID.

    Returns:
        Product
    """
    item = Product(
        vendor_id=VENDOR_ID,
        name="Industrial Water Pump",
        description="Stainless steel centrifugal pump",
        category_name="Machinery",
        price=Decimal("1000.00"),
        min_order_quantity=5,
        stock_quantity=200,
    )
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


@pytest.fixture
async def open_rfq(client: AsyncClient, buyer: dict, product: Product) -> dict:
    """
    An open RFQ from BUYER_ID for 3 units of the product.

    Returns:
        RFQ data
    """
    response = await client.post(
        "/api/rfqs",
        headers=buyer,
        json={
            "title": "Pumps for plant upgrade",
            "product_id": product.id,
            "quantity": 3,
            "target_price": "11.00",
        }
    )
    assert response.status_code == 201
    return response.json()
