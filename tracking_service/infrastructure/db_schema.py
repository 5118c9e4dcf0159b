import uuid

from sqlalchemy import (
    DECIMAL,
    Boolean,
    Column,
    DateTime,
    Index,
    MetaData,
    Table,
    Text,
    Uuid,
    func,
)

metadata = MetaData()

shipments_tbl = Table(
    "shipments",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("shipment_id", Text, nullable=False, unique=True),
    Column("tracking_number", Text, nullable=False, unique=True),
    Column("sender_country_code", Text, nullable=False),
    Column("destination_country_code", Text, nullable=False),
    Column("sender_name", Text),
    Column("receiver_name", Text),
    Column("created_by_user_id", Text, index=True),
    Column("created_by_email", Text, index=True),
    Column("status", Text, nullable=False),
    Column("status_note", Text, nullable=False, default=""),
    Column("status_color", Text, nullable=False, default=""),
    Column("next_step", Text, nullable=False, default=""),
    Column("status_updated_at", DateTime(timezone=True)),
    Column("cancelled_at", DateTime(timezone=True)),
    Column("invoice_amount", DECIMAL(12, 2), nullable=False, default=0),
    Column("invoice_currency", Text, nullable=False, default="USD"),
    Column("invoice_paid", Boolean, nullable=False, default=False),
    Column("invoice_paid_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
)

tracking_history_tbl = Table(
    "tracking_history",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("shipment_id", Text, nullable=False, index=True),
    Column("status", Text, nullable=False),
    Column("location", Text, nullable=False, default=""),
    Column("description", Text, nullable=False, default=""),
    Column("occurred_at", DateTime(timezone=True), nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

users_tbl = Table(
    "users",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("email", Text, nullable=False, unique=True),
    Column("name", Text, nullable=False, default=""),
    Column("role", Text, nullable=False, default="USER"),
    Column("is_deleted", Boolean, nullable=False, default=False),
    Column("deleted_at", DateTime(timezone=True)),
    Column("deleted_by", Text),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

notifications_tbl = Table(
    "notifications",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("user_email", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("message", Text, nullable=False),
    Column("shipment_id", Text),
    Column("read", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_notifications_user_email_created_at", "user_email", "created_at"),
)

blocked_emails_tbl = Table(
    "blocked_emails",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("user_id", Text, index=True),
    Column("email", Text, nullable=False, unique=True),
    Column("reason", Text, nullable=False, default=""),
    Column("blocked_at", DateTime(timezone=True), nullable=False),
)

statuses_tbl = Table(
    "statuses",
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("key", Text, nullable=False, unique=True),
    Column("label", Text, nullable=False),
    Column("color", Text, nullable=False, default="blue"),
    Column("default_update", Text, nullable=False, default=""),
    Column("next_step", Text, nullable=False, default=""),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)
