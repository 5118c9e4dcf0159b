import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from tracking_service.application.container import ApplicationContainer
from tracking_service.presentation import api, identity
from tracking_service.presentation.error_handlers import register_error_handlers

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def build_container() -> ApplicationContainer:
    container = ApplicationContainer()
    container.config.from_yaml(CONFIG_PATH, required=True)
    return container


def build_api(container: ApplicationContainer) -> FastAPI:
    infrastructure = container.infrastructure_container

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        kafka_producer = infrastructure.kafka_producer()
        try:
            await kafka_producer.start()
        except Exception as e:
            logger.error(
                f"Kafka producer failed to start, emails will not be queued: {e}"
            )
        yield
        await kafka_producer.stop()
        await infrastructure.async_engine().dispose()
        logger.info("Store connections closed")

    app = FastAPI(title="tracking-service", lifespan=lifespan)
    app.include_router(api.router)
    register_error_handlers(app)
    container.wire(modules=[api, identity])
    app.container = container
    return app
