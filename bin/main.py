import asyncio
import logging

import uvicorn

from tracking_service.infrastructure.db_schema import metadata
from tracking_service.presentation.app import build_api, build_container

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_schema(container) -> None:
    engine = container.infrastructure_container.async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)


async def main():
    container = build_container()
    await create_schema(container)

    app = build_api(container)

    logger.info("Starting Tracking Service...")
    await uvicorn.Server(
        uvicorn.Config(
            app,
            host=container.config.server.host(),
            port=int(container.config.server.port()),
            log_level="info",
        )
    ).serve()


if __name__ == "__main__":
    asyncio.run(main())
