import uuid
from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Row, Table, and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from delayguard.core.delay_rules import STILL_MOVING_STATUSES, utc_now
from delayguard.core.models import (
    AlertFlags,
    DelayAlert,
    DelayReasonEnum,
    DelayTypeEnum,
    EventTypeEnum,
    InboxEvent,
    InboxEventStatus,
    NotificationChannelEnum,
    Order,
    OrderDelayContext,
    OrderStatusEnum,
    OutboxEvent,
    OutboxEventStatus,
    Shop,
    ShopSettings,
    TrackingEvent,
    TrackingStatusEnum,
    parse_order_status,
    parse_tracking_status,
)
from delayguard.infrastructure.db_schema import (
    delay_alerts_tbl,
    inbox_tbl,
    orders_tbl,
    outbox_tbl,
    shops_tbl,
    tracking_events_tbl,
)


class DoesNotExist(Exception):
    pass


def _insert(session: AsyncSession, table: Table):
    """INSERT supporting ON CONFLICT for the dialect the session is bound to."""
    if session.bind.dialect.name == "sqlite":
        return sqlite_insert(table)
    return insert(table)


def _uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(value)


SETTINGS_COLUMNS = tuple(ShopSettings.model_fields)


class ShopRepository:
    class CreateDTO(BaseModel):
        shop_domain: str
        settings: ShopSettings = ShopSettings()

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> Shop:
        if row is None:
            raise DoesNotExist

        return Shop(
            id=str(row._mapping["id"]),
            shop_domain=row._mapping["shop_domain"],
            settings=ShopSettings(
                **{name: row._mapping[name] for name in SETTINGS_COLUMNS}
            ),
        )

    async def create(self, shop: CreateDTO) -> Shop:
        stmt = (
            _insert(self._session, shops_tbl)
            .values({"shop_domain": shop.shop_domain, **shop.settings.model_dump()})
            .returning(*shops_tbl.c)
        )
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def get_by_id(self, shop_id: str) -> Shop:
        stmt = select(shops_tbl).where(shops_tbl.c.id == _uuid(shop_id))
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def update_settings(self, shop_id: str, settings: ShopSettings) -> None:
        stmt = (
            shops_tbl.update()
            .where(shops_tbl.c.id == _uuid(shop_id))
            .values(**settings.model_dump())
        )
        await self._session.execute(stmt)


class OrderRepository:
    class CreateDTO(BaseModel):
        shop_id: str
        shopify_order_id: str
        order_number: str
        created_at: datetime
        customer_name: str | None = None
        customer_email: str | None = None
        customer_phone: str | None = None
        status: OrderStatusEnum | None = None
        tracking_number: str | None = None
        carrier_code: str | None = None
        tracking_url: str | None = None
        tracking_status: TrackingStatusEnum | None = None
        last_tracking_update: datetime | None = None
        original_eta: datetime | None = None
        current_eta: datetime | None = None

    class UpdateTrackingDTO(BaseModel):
        tracking_status: TrackingStatusEnum
        original_eta: datetime | None = None
        current_eta: datetime | None = None
        last_tracking_update: datetime | None = None
        tracking_url: str | None = None

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> Order:
        if row is None:
            raise DoesNotExist

        m = row._mapping
        return Order(
            id=str(m["id"]),
            shop_id=str(m["shop_id"]),
            shopify_order_id=m["shopify_order_id"],
            order_number=m["order_number"],
            customer_name=m["customer_name"],
            customer_email=m["customer_email"],
            customer_phone=m["customer_phone"],
            status=parse_order_status(m["status"]),
            created_at=m["created_at"],
            tracking_number=m["tracking_number"],
            carrier_code=m["carrier_code"],
            tracking_url=m["tracking_url"],
            tracking_status=parse_tracking_status(m["tracking_status"]),
            last_tracking_update=m["last_tracking_update"],
            original_eta=m["original_eta"],
            current_eta=m["current_eta"],
        )

    async def create(self, order: CreateDTO) -> Order:
        values = order.model_dump()
        values["shop_id"] = _uuid(order.shop_id)
        stmt = _insert(self._session, orders_tbl).values(values).returning(*orders_tbl.c)
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def get_by_id(self, order_id: str) -> Order:
        stmt = select(orders_tbl).where(orders_tbl.c.id == _uuid(order_id))
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def get_delay_context(self, order_id: str) -> OrderDelayContext:
        stmt = (
            select(
                orders_tbl,
                shops_tbl.c.shop_domain,
                *[shops_tbl.c[name] for name in SETTINGS_COLUMNS],
            )
            .select_from(orders_tbl)
            .join(shops_tbl, orders_tbl.c.shop_id == shops_tbl.c.id)
            .where(orders_tbl.c.id == _uuid(order_id))
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()

        if row is None:
            raise DoesNotExist(f"Order {order_id} not found")

        return OrderDelayContext(
            order=self._construct(row),
            settings=ShopSettings(
                **{name: row._mapping[name] for name in SETTINGS_COLUMNS}
            ),
            shop_domain=row._mapping["shop_domain"],
        )

    async def list_delay_check_candidates(self, limit: int = 500) -> list[str]:
        """Open orders some delay check can still fire on.

        Least recently checked first; ``touch`` moves a checked order to the
        back of the queue.
        """
        stmt = (
            select(orders_tbl.c.id)
            .where(
                or_(
                    orders_tbl.c.status.is_(None),
                    orders_tbl.c.status.notin_(
                        [OrderStatusEnum.ARCHIVED, OrderStatusEnum.CANCELLED]
                    ),
                ),
                or_(
                    orders_tbl.c.tracking_status.is_(None),
                    orders_tbl.c.tracking_status != TrackingStatusEnum.DELIVERED,
                ),
                or_(
                    # warehouse
                    orders_tbl.c.status.is_(None),
                    orders_tbl.c.status == OrderStatusEnum.UNFULFILLED,
                    # carrier
                    and_(
                        orders_tbl.c.tracking_number.is_not(None),
                        orders_tbl.c.carrier_code.is_not(None),
                    ),
                    # transit
                    orders_tbl.c.tracking_status.in_(sorted(STILL_MOVING_STATUSES)),
                ),
            )
            .order_by(orders_tbl.c.updated_at, orders_tbl.c.created_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)

        return [str(row.id) for row in result.fetchall()]

    async def list_in_transit(self) -> list[Order]:
        stmt = select(orders_tbl).where(
            and_(
                orders_tbl.c.tracking_status.in_(
                    [TrackingStatusEnum.IN_TRANSIT, TrackingStatusEnum.DELAYED]
                ),
                orders_tbl.c.tracking_number.is_not(None),
                orders_tbl.c.carrier_code.is_not(None),
            )
        )
        result = await self._session.execute(stmt)

        return [self._construct(row) for row in result.fetchall()]

    async def update_tracking(self, order_id: str, tracking: UpdateTrackingDTO) -> None:
        values = tracking.model_dump(exclude_none=True)
        # A snapshot without ETAs clears the stored ones.
        values["original_eta"] = tracking.original_eta
        values["current_eta"] = tracking.current_eta
        stmt = (
            orders_tbl.update()
            .where(orders_tbl.c.id == _uuid(order_id))
            .values(**values, updated_at=utc_now())
        )
        await self._session.execute(stmt)

    async def touch(self, order_id: str) -> None:
        stmt = (
            orders_tbl.update()
            .where(orders_tbl.c.id == _uuid(order_id))
            .values(updated_at=utc_now())
        )
        await self._session.execute(stmt)


class TrackingEventRepository:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def upsert(
        self, order_id: str, event: TrackingEvent, carrier_status: str | None = None
    ) -> None:
        stmt = _insert(self._session, tracking_events_tbl).values(
            {
                "order_id": _uuid(order_id),
                "timestamp": event.timestamp,
                "status": event.status,
                "description": event.description,
                "location": event.location,
                "carrier_status": carrier_status,
            }
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[tracking_events_tbl.c.order_id, tracking_events_tbl.c.timestamp],
            set_={
                "status": stmt.excluded.status,
                "description": stmt.excluded.description,
                "location": stmt.excluded.location,
                "carrier_status": stmt.excluded.carrier_status,
                "updated_at": func.now(),
            },
        )
        await self._session.execute(stmt)

    async def list_for_order(self, order_id: str) -> list[TrackingEvent]:
        stmt = (
            select(tracking_events_tbl)
            .where(tracking_events_tbl.c.order_id == _uuid(order_id))
            .order_by(tracking_events_tbl.c.timestamp)
        )
        result = await self._session.execute(stmt)

        return [
            TrackingEvent(
                timestamp=row.timestamp,
                status=row.status,
                description=row.description,
                location=row.location,
            )
            for row in result.fetchall()
        ]


class AlertRepository:
    class CreateDTO(BaseModel):
        order_id: str
        delay_type: DelayTypeEnum
        delay_days: int
        delay_reason: DelayReasonEnum
        original_delivery_date: datetime | None = None
        estimated_delivery_date: datetime | None = None

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> DelayAlert:
        if row is None:
            raise DoesNotExist

        return DelayAlert(
            id=str(row._mapping["id"]),
            order_id=str(row._mapping["order_id"]),
            delay_type=row._mapping["delay_type"],
            delay_days=row._mapping["delay_days"],
            delay_reason=row._mapping["delay_reason"],
            original_delivery_date=row._mapping["original_delivery_date"],
            estimated_delivery_date=row._mapping["estimated_delivery_date"],
            email_sent=row._mapping["email_sent"],
            sms_sent=row._mapping["sms_sent"],
            created_at=row._mapping["created_at"],
            updated_at=row._mapping["updated_at"],
        )

    async def insert_if_absent(self, alert: CreateDTO) -> DelayAlert | None:
        """Returns the new alert, or None when the order already has one of this type."""
        values = alert.model_dump()
        values["order_id"] = _uuid(alert.order_id)
        stmt = (
            _insert(self._session, delay_alerts_tbl)
            .values(values)
            .on_conflict_do_nothing(
                index_elements=[delay_alerts_tbl.c.order_id, delay_alerts_tbl.c.delay_type]
            )
            .returning(*delay_alerts_tbl.c)
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return self._construct(row) if row is not None else None

    async def get(self, order_id: str, delay_type: DelayTypeEnum) -> DelayAlert:
        stmt = select(delay_alerts_tbl).where(
            delay_alerts_tbl.c.order_id == _uuid(order_id),
            delay_alerts_tbl.c.delay_type == delay_type,
        )
        result = await self._session.execute(stmt)

        return self._construct(result.fetchone())

    async def get_flags(self, order_id: str, delay_type: DelayTypeEnum) -> AlertFlags:
        stmt = select(delay_alerts_tbl.c.email_sent, delay_alerts_tbl.c.sms_sent).where(
            delay_alerts_tbl.c.order_id == _uuid(order_id),
            delay_alerts_tbl.c.delay_type == delay_type,
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()

        if row is None:
            return AlertFlags()
        return AlertFlags(email_sent=row.email_sent, sms_sent=row.sms_sent)

    async def list_for_order(self, order_id: str) -> list[DelayAlert]:
        stmt = (
            select(delay_alerts_tbl)
            .where(delay_alerts_tbl.c.order_id == _uuid(order_id))
            .order_by(delay_alerts_tbl.c.created_at)
        )
        result = await self._session.execute(stmt)

        return [self._construct(row) for row in result.fetchall()]

    async def mark_channel_sent(
        self,
        order_id: str,
        delay_type: DelayTypeEnum,
        channel: NotificationChannelEnum,
    ) -> None:
        flag = {
            NotificationChannelEnum.EMAIL: "email_sent",
            NotificationChannelEnum.SMS: "sms_sent",
        }[channel]
        stmt = (
            delay_alerts_tbl.update()
            .where(
                delay_alerts_tbl.c.order_id == _uuid(order_id),
                delay_alerts_tbl.c.delay_type == delay_type,
            )
            .values({flag: True, "updated_at": func.now()})
        )
        await self._session.execute(stmt)


class OutboxRepository:
    class CreateDTO(BaseModel):
        event_type: EventTypeEnum
        payload: dict

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> OutboxEvent:
        if row is None:
            raise DoesNotExist

        return OutboxEvent(
            id=str(row._mapping["id"]),
            event_type=row._mapping["event_type"],
            payload=row._mapping["payload"],
            status=row._mapping["status"],
            created_at=row._mapping["created_at"],
        )

    async def create(self, event: CreateDTO) -> OutboxEvent:
        stmt = (
            _insert(self._session, outbox_tbl)
            .values(
                {
                    "event_type": event.event_type,
                    "payload": event.payload,
                    "status": OutboxEventStatus.PENDING,
                }
            )
            .returning(*outbox_tbl.c)
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return self._construct(row)

    async def get_pending_events(self, limit: int = 100) -> list[OutboxEvent]:
        stmt = (
            select(outbox_tbl)
            .where(outbox_tbl.c.status == OutboxEventStatus.PENDING)
            .order_by(outbox_tbl.c.created_at)
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        rows = result.fetchall()

        return [self._construct(row) for row in rows]

    async def get_by_id(self, event_id: str) -> OutboxEvent:
        stmt = select(outbox_tbl).where(outbox_tbl.c.id == _uuid(event_id))
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return self._construct(row)

    async def mark_as_sent(self, event_id: str) -> None:
        stmt = (
            outbox_tbl.update()
            .where(outbox_tbl.c.id == _uuid(event_id))
            .values(status=OutboxEventStatus.SENT)
        )
        await self._session.execute(stmt)


class InboxRepository:
    class CreateDTO(BaseModel):
        message_id: str
        event_type: str
        payload: dict

    def __init__(self, session: AsyncSession):
        self._session = session

    @staticmethod
    def _construct(row: Row | None) -> InboxEvent:
        if row is None:
            raise DoesNotExist

        return InboxEvent(
            id=str(row._mapping["id"]),
            message_id=row._mapping["message_id"],
            event_type=row._mapping["event_type"],
            payload=row._mapping["payload"],
            status=row._mapping["status"],
            created_at=row._mapping["created_at"],
        )

    async def exists(self, message_id: str) -> bool:
        """Check if message was already processed"""
        stmt = select(inbox_tbl.c.id).where(inbox_tbl.c.message_id == message_id)
        result = await self._session.execute(stmt)
        return result.fetchone() is not None

    async def create(self, event: CreateDTO) -> InboxEvent:
        stmt = (
            _insert(self._session, inbox_tbl)
            .values(
                {
                    "message_id": event.message_id,
                    "event_type": event.event_type,
                    "payload": event.payload,
                    "status": InboxEventStatus.PENDING,
                }
            )
            .returning(*inbox_tbl.c)
        )
        result = await self._session.execute(stmt)
        row = result.fetchone()

        return self._construct(row)

    async def mark_as_processed(self, event_id: str) -> None:
        stmt = (
            inbox_tbl.update()
            .where(inbox_tbl.c.id == _uuid(event_id))
            .values(status=InboxEventStatus.PROCESSED)
        )
        await self._session.execute(stmt)
