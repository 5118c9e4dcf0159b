from sqlalchemy import ColumnElement, and_, or_

from tracking_service.application.access_control import AccessControlGate
from tracking_service.core.models import Identity, ShipmentSummary
from tracking_service.infrastructure.db_schema import shipments_tbl
from tracking_service.infrastructure.unit_of_work import UnitOfWork

MAX_RESULTS = 8


def prefix_filter(query: str) -> ColumnElement[bool]:
    """Case-insensitive starts-with over both identifiers.

    ``autoescape`` escapes the LIKE wildcards and the escape character, so
    user input can only ever match literally.
    """
    return or_(
        shipments_tbl.c.shipment_id.istartswith(query, autoescape=True),
        shipments_tbl.c.tracking_number.istartswith(query, autoescape=True),
    )


class ShipmentSearch:
    def __init__(self, unit_of_work: UnitOfWork, access_control: AccessControlGate):
        self._unit_of_work = unit_of_work
        self._access_control = access_control

    async def search_by_prefix(
        self, identity: Identity | None, query: str | None, limit: int = MAX_RESULTS
    ) -> list[ShipmentSummary]:
        identity = self._access_control.require_identity(identity)

        query = (query or "").strip().upper()
        if not query:
            return []

        where = prefix_filter(query)
        visibility = self._access_control.shipment_visibility(identity)
        if visibility is not None:
            where = and_(where, visibility)

        async with self._unit_of_work() as uow:
            return await uow.shipments.list_summaries(
                where, limit=min(max(limit, 1), MAX_RESULTS)
            )
