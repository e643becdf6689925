import uuid

from sqlalchemy import (
    JSON,
    UUID,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    false,
    func,
    true,
)

metadata = MetaData()

shops_tbl = Table(
    "shops",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("shop_domain", Text, nullable=False, unique=True),
    Column("warehouse_delay_days", Integer, nullable=False, server_default="2"),
    Column("carrier_delay_days", Integer, nullable=False, server_default="1"),
    Column("transit_delay_days", Integer, nullable=False, server_default="7"),
    Column("warehouse_delays_enabled", Boolean, nullable=False, server_default=true()),
    Column("carrier_delays_enabled", Boolean, nullable=False, server_default=true()),
    Column("transit_delays_enabled", Boolean, nullable=False, server_default=true()),
    Column("email_enabled", Boolean, nullable=False, server_default=true()),
    Column("sms_enabled", Boolean, nullable=False, server_default=false()),
    Column("merchant_email", Text, nullable=True),
    Column("merchant_phone", Text, nullable=True),
    Column("merchant_name", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

orders_tbl = Table(
    "orders",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column(
        "shop_id",
        UUID(as_uuid=True),
        ForeignKey("shops.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("shopify_order_id", Text, nullable=False),
    Column("order_number", Text, nullable=False),
    Column("customer_name", Text, nullable=True),
    Column("customer_email", Text, nullable=True),
    Column("customer_phone", Text, nullable=True),
    Column("status", Text, nullable=True),
    Column("tracking_number", Text, nullable=True),
    Column("carrier_code", Text, nullable=True),
    Column("tracking_url", Text, nullable=True),
    Column("tracking_status", Text, nullable=True, index=True),
    Column("last_tracking_update", DateTime(timezone=True), nullable=True),
    Column("original_eta", DateTime(timezone=True), nullable=True),
    Column("current_eta", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column(
        "updated_at", DateTime(timezone=True), server_default=func.now(), index=True
    ),
    UniqueConstraint("shop_id", "shopify_order_id"),
)

tracking_events_tbl = Table(
    "tracking_events",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "order_id",
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("timestamp", DateTime(timezone=True), nullable=False),
    Column("status", Text, nullable=False),
    Column("description", Text, nullable=False),
    Column("location", Text, nullable=True),
    Column("carrier_status", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("order_id", "timestamp"),
)

# One alert per order and delay type: re-detection of the same condition
# never adds a row.
delay_alerts_tbl = Table(
    "delay_alerts",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column(
        "order_id",
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("delay_type", Text, nullable=False),
    Column("delay_days", Integer, nullable=False),
    Column("delay_reason", Text, nullable=False),
    Column("original_delivery_date", DateTime(timezone=True), nullable=True),
    Column("estimated_delivery_date", DateTime(timezone=True), nullable=True),
    Column("email_sent", Boolean, nullable=False, server_default=false()),
    Column("sms_sent", Boolean, nullable=False, server_default=false()),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now()),
    UniqueConstraint("order_id", "delay_type", name="uq_delay_alerts_order_type"),
)

outbox_tbl = Table(
    "outbox",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("event_type", Text, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)

inbox_tbl = Table(
    "inbox",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, default=uuid.uuid4),
    Column("message_id", Text, nullable=False, unique=True, index=True),
    Column("event_type", Text, nullable=False),
    Column("payload", JSON, nullable=False),
    Column("status", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
)
