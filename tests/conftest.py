from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.core.audit import ActorContext, ActorType
from src.core.database import get_db
from src.core.database.base import Base
from src.main import app
from src.modules.pricing.models import VehicleType
from tests.factories import (
    create_driver,
    create_location,
    create_network,
    create_partner,
    create_service,
    create_vehicle,
    set_price,
)

# In-memory SQLite shared by all connections of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh database and session per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client with overridden database dependency."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def operator() -> ActorContext:
    return ActorContext(actor_type=ActorType.OPERATOR, actor_id="op-1")


@pytest.fixture
async def world(db_session: AsyncSession) -> dict:
    """
    One network with a partner, a truck-wash location offering one service,
    list prices for SEMI_TRUCK (1000) and TRAILER_ONLY (500), and a fleet driver
    with a registered tractor.
    """
    network = await create_network(db_session)
    partner = await create_partner(db_session, network.id)
    service = await create_service(db_session, network.id)
    location = await create_location(db_session, network.id, services=[service])
    await set_price(db_session, network.id, service, "1000.00")
    await set_price(db_session, network.id, service, "500.00", VehicleType.TRAILER_ONLY)
    driver = await create_driver(db_session, network.id, partner.id)
    tractor = await create_vehicle(db_session, network.id, "ABC-123", partner_id=partner.id)
    return {
        "network": network,
        "partner": partner,
        "service": service,
        "location": location,
        "driver": driver,
        "tractor": tractor,
    }
