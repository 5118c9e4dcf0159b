from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from dependency_injector import providers
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tracking_service.application.container import ApplicationContainer
from tracking_service.core.models import Identity, RoleEnum, Shipment, User
from tracking_service.infrastructure.db_schema import metadata
from tracking_service.infrastructure.kafka_producer import KafkaProducer
from tracking_service.infrastructure.repositories import ShipmentRepository, UserRepository
from tracking_service.infrastructure.unit_of_work import UnitOfWork
from tracking_service.presentation.app import build_api, build_container


@pytest.fixture
def kafka_producer():
    """Mock Kafka producer for tests"""
    producer = AsyncMock(spec=KafkaProducer)
    producer.send_message = AsyncMock()
    return producer


@pytest.fixture()
async def container(tmp_path, kafka_producer) -> ApplicationContainer:
    container = build_container()
    container.config.infrastructure.db.dsn.from_value(
        f"sqlite+aiosqlite:///{tmp_path / 'tracking.db'}"
    )
    container.config.infrastructure.db.pool_size.from_value(5)
    container.infrastructure_container.kafka_producer.override(
        providers.Object(kafka_producer)
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


@pytest.fixture()
async def uow(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWork:
    return UnitOfWork(session_factory)


@pytest.fixture()
def fast_api_app(container: ApplicationContainer) -> FastAPI:
    return build_api(container)


@pytest_asyncio.fixture(autouse=True)
async def setup_database(container: ApplicationContainer):
    engine = container.infrastructure_container.async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def test_async_client(fast_api_app) -> AsyncClient:
    async with AsyncClient(
        transport=ASGITransport(app=fast_api_app),
        base_url="http://test.com",
    ) as client:
        client.app = fast_api_app
        yield client


@pytest.fixture
def admin() -> Identity:
    return Identity(id="admin-1", email="admin@example.com", role=RoleEnum.ADMIN)


@pytest.fixture
def identity_factory():
    def _create_identity(**kwargs) -> Identity:
        defaults = {"id": "user-1", "email": "alice@example.com", "role": RoleEnum.USER}
        defaults.update(kwargs)
        return Identity(**defaults)

    return _create_identity


@pytest.fixture
def shipment_factory(uow: UnitOfWork):
    """Insert a shipment with fixed identifiers straight through the repository."""
    counter = {"n": 0}

    async def _create_shipment(**kwargs) -> Shipment:
        counter["n"] += 1
        n = counter["n"]
        defaults = {
            "shipment_id": f"EXS-240101-{n:06X}",
            "tracking_number": f"EX24US{n:07d}A",
            "sender_country_code": "US",
            "destination_country_code": "NG",
            "created_by_user_id": "user-1",
            "created_by_email": "alice@example.com",
            "status": "Created",
            "status_note": "Shipment has been created and is being processed.",
            "invoice": {"amount": Decimal("0"), "currency": "USD", "paid": False},
        }
        defaults.update(kwargs)
        async with uow() as unit:
            shipment = await unit.shipments.create(ShipmentRepository.CreateDTO(**defaults))
            await unit.commit()
        return shipment

    return _create_shipment


@pytest.fixture
def user_factory(uow: UnitOfWork):
    async def _create_user(**kwargs) -> User:
        defaults = {"email": "bob@example.com", "name": "Bob"}
        defaults.update(kwargs)
        async with uow() as unit:
            user = await unit.users.create(UserRepository.CreateDTO(**defaults))
            await unit.commit()
        return user

    return _create_user


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
