import pytest
from decimal import Decimal
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from main import app
from app.core.database import get_async_session, Base
from app import models  # noqa: F401  register mappers
from app.core.unit_of_work import UnitOfWork
from app.db.seeds.initial_data import SeedData, create_initial_data
from app.models.inventory.stock import Stock
from app.models.inventory.stock_movement import StockMovement
from app.models.shared.enums import StockMovementType
from app.models.shared.references import MovementReference
from app.services.inventory.stock_ledger_service import StockLedgerService

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Reference used for opening balances put in place by tests
OPENING_BALANCE = MovementReference.purchase(0)

@pytest.fixture
async def test_engine():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()

@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session

@pytest.fixture
def uow(session: AsyncSession) -> UnitOfWork:
    return UnitOfWork(session)

@pytest.fixture
async def seed(session_factory) -> SeedData:
    async with session_factory() as session:
        return await create_initial_data(session)

@pytest.fixture
def put_stock(uow: UnitOfWork, seed: SeedData):
    """Give a product an opening balance at a branch"""
    async def _put_stock(sku: str, quantity, unit_cost, branch_id: int = None) -> Stock:
        ledger = StockLedgerService(uow.session)
        async with uow.atomic():
            change = await ledger.apply_delta(
                seed.business_id,
                branch_id or seed.main_branch_id,
                seed.product_ids[sku],
                Decimal(str(quantity)),
                Decimal(str(unit_cost)),
                is_receipt=True,
                movement_type=StockMovementType.PURCHASE,
                reference=OPENING_BALANCE,
                current_user_id=1
            )
        return change.stock
    return _put_stock

@pytest.fixture
def fetch_stock(session: AsyncSession, seed: SeedData):
    """Re-read a stock row from the database"""
    async def _fetch_stock(sku: str, branch_id: int = None):
        result = await session.execute(
            select(Stock)
            .where(
                Stock.business_id == seed.business_id,
                Stock.branch_id == (branch_id or seed.main_branch_id),
                Stock.product_id == seed.product_ids[sku]
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
    return _fetch_stock

@pytest.fixture
def count_movements(session: AsyncSession):
    async def _count_movements(**filters) -> int:
        query = select(func.count(StockMovement.id))
        for name, value in filters.items():
            query = query.where(getattr(StockMovement, name) == value)
        return (await session.execute(query)).scalar()
    return _count_movements

@pytest.fixture
async def client(session_factory, seed) -> AsyncGenerator[AsyncClient, None]:
    """Create test client"""
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

@pytest.fixture
def actor_headers() -> dict:
    return {"X-Actor-Id": "7"}
