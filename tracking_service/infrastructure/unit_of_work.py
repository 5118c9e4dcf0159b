from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tracking_service.infrastructure.repositories import (
    BlockedEmailRepository,
    NotificationRepository,
    ShipmentRepository,
    StatusRepository,
    TrackingHistoryRepository,
    UserRepository,
)


class UnitOfWork:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        operation_timeout: float = 5.0,
    ) -> None:
        self._session_factory = session_factory
        self._operation_timeout = operation_timeout

    @asynccontextmanager
    async def __call__(self):
        async with self._session_factory() as session:
            try:
                yield _UnitOfWorkImplementation(session, self._operation_timeout)
                # Rollback if commit wasn't explicitly called
                await session.rollback()
            except Exception:
                await session.rollback()
                raise


class _UnitOfWorkImplementation:
    def __init__(self, session: AsyncSession, timeout: float):
        self._session = session
        self._shipment_repo = ShipmentRepository(session, timeout)
        self._tracking_history_repo = TrackingHistoryRepository(session, timeout)
        self._user_repo = UserRepository(session, timeout)
        self._notification_repo = NotificationRepository(session, timeout)
        self._blocked_email_repo = BlockedEmailRepository(session, timeout)
        self._status_repo = StatusRepository(session, timeout)

    @property
    def shipments(self) -> ShipmentRepository:
        return self._shipment_repo

    @property
    def tracking_history(self) -> TrackingHistoryRepository:
        return self._tracking_history_repo

    @property
    def users(self) -> UserRepository:
        return self._user_repo

    @property
    def notifications(self) -> NotificationRepository:
        return self._notification_repo

    @property
    def blocked_emails(self) -> BlockedEmailRepository:
        return self._blocked_email_repo

    @property
    def statuses(self) -> StatusRepository:
        return self._status_repo

    async def commit(self):
        await self._session.commit()
