from typing import Callable

from dependency_injector import containers, providers
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from tracking_service.infrastructure.email_sender import EmailSender
from tracking_service.infrastructure.kafka_producer import KafkaProducer
from tracking_service.infrastructure.unit_of_work import UnitOfWork


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    async_engine = providers.Singleton[AsyncEngine](
        create_async_engine,
        config.db.dsn,
        pool_size=config.db.pool_size.as_int(),
        pool_recycle=config.db.pool_recycle.as_int(),
        pool_pre_ping=True,
    )
    session_factory: Callable[..., AsyncSession] = providers.Factory(
        sessionmaker, async_engine, expire_on_commit=False, class_=AsyncSession
    )
    unit_of_work = providers.Singleton[UnitOfWork](
        UnitOfWork,
        session_factory=session_factory,
        operation_timeout=config.db.operation_timeout.as_float(),
    )
    kafka_producer = providers.Singleton[KafkaProducer](
        KafkaProducer,
        bootstrap_servers=config.kafka.bootstrap_servers,
        topic=config.kafka.email_topic,
    )
    email_sender = providers.Singleton[EmailSender](
        EmailSender, kafka_producer=kafka_producer
    )
