from typing import Mapping

from sqlalchemy import ColumnElement, false, func, or_

from tracking_service.core.errors import Forbidden, Unauthorized
from tracking_service.core.models import Identity, normalize_role
from tracking_service.infrastructure.db_schema import shipments_tbl

USER_ID_HEADER = "x-user-id"
USER_EMAIL_HEADER = "x-user-email"
USER_ROLE_HEADER = "x-user-role"


def normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


class AccessControlGate:
    """Resolves the caller and decides what it may see and do.

    Identity comes from the upstream identity provider, which forwards the
    authenticated user as ``X-User-Id``, ``X-User-Email`` and
    ``X-User-Role`` headers.
    """

    def resolve_identity(self, headers: Mapping[str, str]) -> Identity | None:
        user_id = (headers.get(USER_ID_HEADER) or "").strip()
        email = normalize_email(headers.get(USER_EMAIL_HEADER))
        if not user_id and not email:
            return None

        return Identity(
            id=user_id or None,
            email=email or None,
            role=normalize_role(headers.get(USER_ROLE_HEADER)),
        )

    def require_identity(self, identity: Identity | None) -> Identity:
        if identity is None:
            raise Unauthorized
        return identity

    def require_admin(self, identity: Identity | None) -> Identity:
        identity = self.require_identity(identity)
        if not identity.is_admin:
            raise Forbidden
        return identity

    def shipment_visibility(self, identity: Identity) -> ColumnElement[bool] | None:
        """Filter narrowing shipment queries to what ``identity`` may see.

        ``None`` means unrestricted. A non-admin without id and email gets a
        filter that matches nothing.
        """
        if identity.is_admin:
            return None
        return self.owned_by(identity.id, identity.email)

    def owned_by(self, user_id: str | None, email: str | None) -> ColumnElement[bool]:
        conditions = []
        if user_id:
            conditions.append(shipments_tbl.c.created_by_user_id == user_id)
        email = normalize_email(email)
        if email:
            conditions.append(
                func.lower(func.trim(shipments_tbl.c.created_by_email)) == email
            )
        if not conditions:
            return false()
        return or_(*conditions)

    def notification_owner(self, identity: Identity) -> str | None:
        """Email a notification must belong to; ``None`` for admins."""
        if identity.is_admin:
            return None
        return normalize_email(identity.email)
