import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delayguard.application.container import ApplicationContainer
from delayguard.core.models import (
    Order,
    OrderDelayContext,
    Shop,
    ShopSettings,
    TrackingEvent,
    TrackingSnapshot,
    TrackingStatusEnum,
)
from delayguard.infrastructure.db_schema import metadata
from delayguard.infrastructure.repositories import (
    OrderRepository,
    OutboxRepository,
    ShopRepository,
)
from delayguard.infrastructure.unit_of_work import UnitOfWork

CONFIG_PATH = Path(__file__).resolve().parent / "delayguard" / "config.yaml"

NOW = datetime(2025, 11, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def now() -> datetime:
    return NOW


@pytest.fixture()
async def container(tmp_path) -> ApplicationContainer:
    container = ApplicationContainer()
    container.config.from_yaml(CONFIG_PATH, required=True)
    container.config.from_dict(
        {
            "infrastructure": {
                "db": {"dsn": f"sqlite+aiosqlite:///{tmp_path / 'delayguard.db'}"},
                "tracking": {"api_key": "test-key"},
            }
        }
    )
    return container


@pytest.fixture()
async def session_factory(
    container: ApplicationContainer,
) -> async_sessionmaker[AsyncSession]:
    return container.infrastructure_container.session_factory()


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(autouse=True)
async def setup_database(container: ApplicationContainer):
    engine = container.infrastructure_container.async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def uow(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWork:
    return UnitOfWork(session_factory)


@pytest.fixture
async def outbox_repo(session: AsyncSession) -> OutboxRepository:
    return OutboxRepository(session)


@pytest.fixture
def shop_factory(uow: UnitOfWork):
    async def _create_shop(**settings) -> Shop:
        async with uow() as unit:
            shop = await unit.shops.create(
                ShopRepository.CreateDTO(
                    shop_domain=f"{uuid.uuid4().hex[:8]}.myshopify.com",
                    settings=ShopSettings(**settings),
                )
            )
            await unit.commit()
        return shop

    return _create_shop


@pytest.fixture
def order_factory(uow: UnitOfWork, shop_factory):
    async def _create_order(shop: Shop | None = None, **kwargs) -> Order:
        shop = shop or await shop_factory()
        defaults = {
            "shop_id": shop.id,
            "shopify_order_id": str(uuid.uuid4().int)[:12],
            "order_number": "#1001",
            "customer_name": "John Doe",
            "customer_email": "customer@example.com",
            "customer_phone": "+1-555-0100",
            "status": "unfulfilled",
            "created_at": NOW - timedelta(days=1),
        }
        defaults.update(kwargs)
        async with uow() as unit:
            order = await unit.orders.create(OrderRepository.CreateDTO(**defaults))
            await unit.commit()
        return order

    return _create_order


@pytest.fixture
def load_context(uow: UnitOfWork):
    async def _load(order_id: str) -> OrderDelayContext:
        async with uow() as unit:
            return await unit.orders.get_delay_context(order_id)

    return _load


@pytest.fixture
def order_model_factory():
    """Orders built in memory, for the pure rules."""

    def _build(**kwargs) -> Order:
        defaults = {
            "id": str(uuid.uuid4()),
            "shop_id": str(uuid.uuid4()),
            "shopify_order_id": "450789469",
            "order_number": "#1001",
            "customer_name": "John Doe",
            "customer_email": "customer@example.com",
            "customer_phone": "+1-555-0100",
            "status": "unfulfilled",
            "created_at": NOW,
        }
        defaults.update(kwargs)
        return Order(**defaults)

    return _build


@pytest.fixture
def context_factory(order_model_factory):
    def _build(settings: dict | None = None, **order_fields) -> OrderDelayContext:
        return OrderDelayContext(
            order=order_model_factory(**order_fields),
            settings=ShopSettings(
                merchant_email="merchant@shop.com",
                merchant_phone="+1-555-9999",
                merchant_name="Shop Owner",
                **(settings or {}),
            ),
            shop_domain="test-shop.myshopify.com",
        )

    return _build


@pytest.fixture
def snapshot_factory():
    def _build(**kwargs) -> TrackingSnapshot:
        defaults = {
            "tracking_number": "TRACK123",
            "carrier_code": "ups",
            "status": TrackingStatusEnum.IN_TRANSIT,
            "estimated_delivery_date": NOW + timedelta(days=2),
            "original_estimated_delivery_date": NOW + timedelta(days=2),
            "events": [
                TrackingEvent(
                    timestamp=NOW - timedelta(days=1),
                    status="IN_TRANSIT",
                    description="Departed facility",
                    location="Louisville, KY",
                )
            ],
        }
        defaults.update(kwargs)
        return TrackingSnapshot(**defaults)

    return _build
