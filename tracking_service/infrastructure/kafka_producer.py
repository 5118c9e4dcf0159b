import json
import logging
from typing import Any

from aiokafka import AIOKafkaProducer

logger = logging.getLogger(__name__)


def _encode_value(value: dict[str, Any]) -> bytes:
    # datetimes and Decimals in email contexts go out as strings
    return json.dumps(value, default=str).encode("utf-8")


def _encode_key(key: str | None) -> bytes | None:
    return key.encode("utf-8") if key else None


class KafkaProducer:
    """JSON producer bound to the email request topic.

    Started and stopped by the application lifespan. While it is stopped,
    sends fail fast so callers can log the lost email and carry on.
    """

    def __init__(self, bootstrap_servers: str, topic: str):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._producer: AIOKafkaProducer | None = None

    @property
    def topic(self) -> str:
        return self._topic

    @property
    def started(self) -> bool:
        return self._producer is not None

    async def start(self) -> None:
        if self._producer is not None:
            return

        producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            value_serializer=_encode_value,
            key_serializer=_encode_key,
            acks="all",
        )
        await producer.start()
        self._producer = producer
        logger.info(f"Email producer connected to {self._bootstrap_servers}, topic {self._topic}")

    async def stop(self) -> None:
        producer, self._producer = self._producer, None
        if producer is None:
            return
        await producer.stop()
        logger.info(f"Email producer for topic {self._topic} stopped")

    async def send_message(self, message: dict[str, Any], key: str | None = None) -> None:
        if self._producer is None:
            raise RuntimeError("Producer is not started. Call start() first.")

        await self._producer.send_and_wait(self._topic, value=message, key=key)
