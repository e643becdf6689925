import logging
from datetime import datetime
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class OrderStatusEnum(StrEnum):
    UNFULFILLED = "unfulfilled"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class TrackingStatusEnum(StrEnum):
    ACCEPTED = "ACCEPTED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    ARRIVED_AT_FACILITY = "ARRIVED_AT_FACILITY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    EXCEPTION = "EXCEPTION"
    DELAYED = "DELAYED"
    UNKNOWN = "UNKNOWN"
    PRE_TRANSIT = "PRE_TRANSIT"


class DelayTypeEnum(StrEnum):
    WAREHOUSE_DELAY = "WAREHOUSE_DELAY"
    CARRIER_DELAY = "CARRIER_DELAY"
    TRANSIT_DELAY = "TRANSIT_DELAY"


class DelayReasonEnum(StrEnum):
    WAREHOUSE_DELAY = "WAREHOUSE_DELAY"
    STUCK_IN_TRANSIT = "STUCK_IN_TRANSIT"
    ETA_EXCEEDED = "ETA_EXCEEDED"
    EVENT_DELAY = "EVENT_DELAY"
    DELAYED_STATUS = "DELAYED_STATUS"
    EXCEPTION_STATUS = "EXCEPTION_STATUS"
    DATE_DELAY = "DATE_DELAY"


def parse_order_status(value: str | None) -> OrderStatusEnum | None:
    """Unknown order statuses are logged and read as missing."""
    if value is None:
        return None
    try:
        return OrderStatusEnum(value.lower())
    except ValueError:
        logger.warning(f"Unrecognized order status {value!r}, treating as unset")
        return None


def parse_tracking_status(value: str | None) -> TrackingStatusEnum | None:
    """Unknown carrier statuses are logged and read as UNKNOWN."""
    if value is None:
        return None
    try:
        return TrackingStatusEnum(value.upper())
    except ValueError:
        logger.warning(f"Unrecognized tracking status {value!r}, treating as UNKNOWN")
        return TrackingStatusEnum.UNKNOWN


class RecipientSourceEnum(StrEnum):
    CUSTOMER = "customer"
    MERCHANT = "merchant"


class NotificationChannelEnum(StrEnum):
    EMAIL = "email"
    SMS = "sms"


class ShopSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Stored historically as delay_threshold_days.
    warehouse_delay_days: int = Field(
        default=2,
        validation_alias=AliasChoices("warehouse_delay_days", "delay_threshold_days"),
    )
    carrier_delay_days: int = 1
    transit_delay_days: int = 7
    warehouse_delays_enabled: bool = True
    carrier_delays_enabled: bool = True
    transit_delays_enabled: bool = True
    email_enabled: bool = True
    sms_enabled: bool = False
    merchant_email: str | None = None
    merchant_phone: str | None = None
    merchant_name: str | None = None


class Shop(BaseModel):
    id: str
    shop_domain: str
    settings: ShopSettings


class Order(BaseModel):
    id: str
    shop_id: str
    shopify_order_id: str
    order_number: str
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    status: OrderStatusEnum | None = None
    created_at: datetime
    tracking_number: str | None = None
    carrier_code: str | None = None
    tracking_url: str | None = None
    tracking_status: TrackingStatusEnum | None = None
    last_tracking_update: datetime | None = None
    original_eta: datetime | None = None
    current_eta: datetime | None = None


class OrderDelayContext(BaseModel):
    """An order joined with the delay settings of the shop that owns it."""

    order: Order
    settings: ShopSettings
    shop_domain: str


class TrackingEvent(BaseModel):
    timestamp: datetime
    status: str
    description: str
    location: str | None = None


class TrackingSnapshot(BaseModel):
    tracking_number: str
    carrier_code: str
    status: TrackingStatusEnum
    estimated_delivery_date: datetime | None = None
    original_estimated_delivery_date: datetime | None = None
    events: list[TrackingEvent] = []
    tracking_url: str | None = None


class DelayCheckResult(BaseModel):
    is_delayed: bool
    delay_days: int | None = 0
    delay_reason: DelayReasonEnum | None = None
    estimated_delivery: datetime | None = None
    original_delivery: datetime | None = None


class Recipient(BaseModel):
    email: str | None = None
    phone: str | None = None
    name: str | None = None


class DelayDecision(BaseModel):
    delay_type: DelayTypeEnum
    delay_days: int
    delay_reason: DelayReasonEnum
    recipient: Recipient
    source: RecipientSourceEnum
    estimated_delivery: datetime | None = None
    original_delivery: datetime | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None


class DelayAlert(BaseModel):
    id: str
    order_id: str
    delay_type: DelayTypeEnum
    delay_days: int
    delay_reason: DelayReasonEnum
    original_delivery_date: datetime | None = None
    estimated_delivery_date: datetime | None = None
    email_sent: bool = False
    sms_sent: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class AlertFlags(BaseModel):
    email_sent: bool = False
    sms_sent: bool = False


class NotificationRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    order_id: str
    shop_domain: str
    delay_type: DelayTypeEnum
    recipient_source: RecipientSourceEnum
    recipient_email: str | None = None
    recipient_phone: str | None = None
    recipient_name: str | None = None
    channels: list[NotificationChannelEnum] = []
    delay_days: int
    delay_reason: DelayReasonEnum
    estimated_delivery: datetime | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None


class EventTypeEnum(StrEnum):
    DELAY_NOTIFICATION_REQUESTED = "DELAY.NOTIFICATION_REQUESTED"
    NOTIFICATION_SENT = "NOTIFICATION.SENT"


class OutboxEventStatus(StrEnum):
    PENDING = "PENDING"
    SENT = "SENT"


class OutboxEvent(BaseModel):
    id: str
    event_type: EventTypeEnum
    payload: dict
    status: OutboxEventStatus
    created_at: datetime


class InboxEventStatus(StrEnum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"


class InboxEvent(BaseModel):
    id: str
    message_id: str
    event_type: str
    payload: dict
    status: InboxEventStatus
    created_at: datetime


class DelayCheckStats(BaseModel):
    orders_checked: int = 0
    delays_detected: int = 0
    notifications_requested: int = 0
    errors: int = 0


class TrackingRefreshStats(BaseModel):
    orders_processed: int = 0
    events_stored: int = 0
    errors: int = 0
