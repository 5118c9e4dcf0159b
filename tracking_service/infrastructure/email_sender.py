import logging
from datetime import datetime, timezone
from enum import StrEnum

from tracking_service.infrastructure.kafka_producer import KafkaProducer

logger = logging.getLogger(__name__)


class EmailTemplateEnum(StrEnum):
    ACCOUNT_RESTORED = "ACCOUNT.RESTORED"
    ACCOUNT_DELETED = "ACCOUNT.DELETED"
    SHIPMENT_STATUS = "SHIPMENT.STATUS"
    INVOICE_UPDATED = "INVOICE.UPDATED"


class EmailSender:
    """Hands email requests to the mail worker through Kafka.

    Delivery is fire-and-forget: callers get an exception if the broker
    refuses the message, never a delivery receipt.
    """

    def __init__(self, kafka_producer: KafkaProducer):
        self._kafka_producer = kafka_producer

    async def _send(self, template: EmailTemplateEnum, to: str, context: dict) -> None:
        await self._kafka_producer.send_message(
            message={
                "template": template,
                "to": to,
                "context": context,
                "requested_at": datetime.now(timezone.utc).isoformat(),
            },
            key=to,
        )
        logger.info(f"Queued {template} email for {to}")

    async def send_restore_email(self, to: str, name: str = "Customer") -> None:
        await self._send(EmailTemplateEnum.ACCOUNT_RESTORED, to, {"name": name})

    async def send_deleted_email(self, to: str, name: str = "Customer") -> None:
        await self._send(EmailTemplateEnum.ACCOUNT_DELETED, to, {"name": name})

    async def send_shipment_status_email(
        self, to: str, shipment_id: str, status_label: str, name: str = "Customer"
    ) -> None:
        await self._send(
            EmailTemplateEnum.SHIPMENT_STATUS,
            to,
            {"name": name, "shipment_id": shipment_id, "status_label": status_label},
        )

    async def send_invoice_update_email(
        self, to: str, shipment_id: str, paid: bool, name: str = "Customer"
    ) -> None:
        await self._send(
            EmailTemplateEnum.INVOICE_UPDATED,
            to,
            {"name": name, "shipment_id": shipment_id, "paid": paid},
        )
