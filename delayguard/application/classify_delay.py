import logging
from datetime import datetime

from delayguard.core.delay_rules import (
    CarrierDelayDetector,
    check_transit_delay,
    check_warehouse_delay,
    utc_now,
)
from delayguard.core.models import (
    DelayDecision,
    DelayTypeEnum,
    Order,
    OrderDelayContext,
    Recipient,
    RecipientSourceEnum,
)
from delayguard.core.ports import TrackingProvider

logger = logging.getLogger(__name__)


def merchant_recipient(context: OrderDelayContext) -> Recipient:
    settings = context.settings
    return Recipient(
        email=settings.merchant_email,
        phone=settings.merchant_phone,
        name=settings.merchant_name,
    )


def customer_recipient(order: Order) -> Recipient:
    return Recipient(
        email=order.customer_email,
        phone=order.customer_phone,
        name=order.customer_name,
    )


class DelayClassifier:
    """Picks at most one delay for an order.

    Warehouse delays are checked first and go to the merchant. Carrier and
    transit delays go to the customer. A branch whose toggle is off is never
    evaluated. Tracking provider errors propagate to the caller.
    """

    def __init__(
        self,
        tracking_provider: TrackingProvider,
        carrier_detector: CarrierDelayDetector | None = None,
    ):
        self._tracking_provider = tracking_provider
        self._carrier_detector = carrier_detector or CarrierDelayDetector()

    async def __call__(
        self, context: OrderDelayContext, now: datetime | None = None
    ) -> DelayDecision | None:
        now = now or utc_now()
        order = context.order
        settings = context.settings

        if settings.warehouse_delays_enabled:
            result = check_warehouse_delay(order, settings.warehouse_delay_days, now)
            if result.is_delayed:
                return DelayDecision(
                    delay_type=DelayTypeEnum.WAREHOUSE_DELAY,
                    delay_days=result.delay_days,
                    delay_reason=result.delay_reason,
                    recipient=merchant_recipient(context),
                    source=RecipientSourceEnum.MERCHANT,
                )

        if settings.carrier_delays_enabled and order.tracking_number and order.carrier_code:
            decision = await self._check_carrier(context, now)
            if decision is not None:
                return decision

        if settings.transit_delays_enabled:
            result = check_transit_delay(order, settings.transit_delay_days, now)
            if result.is_delayed:
                return DelayDecision(
                    delay_type=DelayTypeEnum.TRANSIT_DELAY,
                    delay_days=result.delay_days,
                    delay_reason=result.delay_reason,
                    recipient=customer_recipient(order),
                    source=RecipientSourceEnum.CUSTOMER,
                    estimated_delivery=order.current_eta,
                    original_delivery=order.original_eta,
                    tracking_number=order.tracking_number,
                    tracking_url=order.tracking_url,
                )

        return None

    async def _check_carrier(
        self, context: OrderDelayContext, now: datetime
    ) -> DelayDecision | None:
        order = context.order
        snapshot = await self._tracking_provider.get_tracking_info(
            order.tracking_number, order.carrier_code
        )
        result = self._carrier_detector.check(snapshot, now)
        if not result.is_delayed:
            return None

        # Signals without a day count (status codes, event keywords) count as 0 days.
        delay_days = result.delay_days or 0
        if delay_days < context.settings.carrier_delay_days:
            logger.info(
                f"Carrier delay of {delay_days} days ({result.delay_reason}) for order "
                f"{order.id} is below the shop threshold of "
                f"{context.settings.carrier_delay_days}"
            )
            return None

        return DelayDecision(
            delay_type=DelayTypeEnum.CARRIER_DELAY,
            delay_days=delay_days,
            delay_reason=result.delay_reason,
            recipient=customer_recipient(order),
            source=RecipientSourceEnum.CUSTOMER,
            estimated_delivery=result.estimated_delivery,
            original_delivery=result.original_delivery,
            tracking_number=order.tracking_number,
            tracking_url=snapshot.tracking_url or order.tracking_url,
        )
