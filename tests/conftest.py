from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gymschedule.database import Base, enable_sqlite_foreign_keys, get_db
from gymschedule.main import app
from gymschedule.models.customer import Customer
from gymschedule.models.service import Service
from gymschedule.models.trainer import Trainer

test_engine = create_async_engine("sqlite+aiosqlite://", echo=False)
enable_sqlite_foreign_keys(test_engine)
test_session = async_sessionmaker(test_engine, expire_on_commit=False)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with test_session() as session:
        yield session


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def seed_gym(
    session: AsyncSession,
    *,
    membership_end: date | None = None,
    trainer_active: bool = True,
    service_active: bool = True,
) -> tuple[Trainer, Customer, Service]:
    """Insert one trainer, one customer and one service and commit."""
    trainer = Trainer(id=1, name="Coach Ana", active=trainer_active)
    customer = Customer(
        id=10,
        name="Bruno",
        membership_type="standard",
        membership_end_date=membership_end or date.today() + timedelta(days=90),
    )
    service = Service(id=100, name="Personal training", price=25.0, is_active=service_active)
    session.add_all([trainer, customer, service])
    await session.commit()
    return trainer, customer, service
