"""
Delay rules.

Three independent signals decide whether a shipment is late:

  - warehouse: the order is still unfulfilled past the shop's threshold
  - carrier: the carrier reports a delay, an exception or a passed ETA
  - transit: a moving shipment has had no tracking update for too long

Every evaluator is a pure function of its input and ``now``.
"""

import math
from datetime import datetime, timedelta, timezone

from delayguard.core.models import (
    DelayCheckResult,
    DelayReasonEnum,
    Order,
    OrderStatusEnum,
    TrackingSnapshot,
    TrackingStatusEnum,
)

ONE_DAY = timedelta(days=1)

DELAY_KEYWORDS = ("delay", "delayed", "exception", "weather", "mechanical")
RECENT_EVENTS_WINDOW = 3

ETA_EXCEEDED_STATUSES = frozenset(
    {
        TrackingStatusEnum.IN_TRANSIT,
        TrackingStatusEnum.ACCEPTED,
        TrackingStatusEnum.PICKED_UP,
    }
)

STILL_MOVING_STATUSES = frozenset(
    {
        TrackingStatusEnum.IN_TRANSIT,
        TrackingStatusEnum.PICKED_UP,
        TrackingStatusEnum.ACCEPTED,
        TrackingStatusEnum.ARRIVED_AT_FACILITY,
        TrackingStatusEnum.EXCEPTION,
        TrackingStatusEnum.DELAYED,
    }
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def elapsed_days(since: datetime, now: datetime) -> int:
    """Whole days between ``since`` and ``now``, rounded down."""
    return max((as_utc(now) - as_utc(since)) // ONE_DAY, 0)


def _ceil_days(delta: timedelta) -> int:
    return math.ceil(delta / ONE_DAY)


def _not_delayed() -> DelayCheckResult:
    return DelayCheckResult(is_delayed=False, delay_days=0)


def _awaits_fulfillment(status: OrderStatusEnum | None) -> bool:
    match status:
        case None | OrderStatusEnum.UNFULFILLED:
            return True
        case (
            OrderStatusEnum.PARTIAL
            | OrderStatusEnum.FULFILLED
            | OrderStatusEnum.ARCHIVED
            | OrderStatusEnum.CANCELLED
        ):
            return False
    raise ValueError(f"Unhandled order status: {status!r}")


def check_warehouse_delay(
    order: Order, threshold_days: int, now: datetime | None = None
) -> DelayCheckResult:
    if not _awaits_fulfillment(order.status):
        return _not_delayed()

    delay_days = elapsed_days(order.created_at, now or utc_now())
    if delay_days >= threshold_days:
        return DelayCheckResult(
            is_delayed=True,
            delay_days=delay_days,
            delay_reason=DelayReasonEnum.WAREHOUSE_DELAY,
        )
    return DelayCheckResult(is_delayed=False, delay_days=delay_days)


def check_transit_delay(
    order: Order, threshold_days: int, now: datetime | None = None
) -> DelayCheckResult:
    # Delivered, out for delivery, pre-transit and unknown-status shipments
    # are never stuck.
    if order.tracking_status not in STILL_MOVING_STATUSES:
        return _not_delayed()
    if order.last_tracking_update is None:
        return _not_delayed()

    delay_days = elapsed_days(order.last_tracking_update, now or utc_now())
    if delay_days >= threshold_days:
        return DelayCheckResult(
            is_delayed=True,
            delay_days=delay_days,
            delay_reason=DelayReasonEnum.STUCK_IN_TRANSIT,
        )
    return DelayCheckResult(is_delayed=False, delay_days=delay_days)


def check_for_delays(snapshot: TrackingSnapshot) -> DelayCheckResult:
    """Delay signals the carrier states directly: status codes and a slipped ETA."""
    eta_pair = {
        "estimated_delivery": snapshot.estimated_delivery_date,
        "original_delivery": snapshot.original_estimated_delivery_date,
    }

    if snapshot.status == TrackingStatusEnum.DELAYED:
        return DelayCheckResult(
            is_delayed=True,
            delay_days=None,
            delay_reason=DelayReasonEnum.DELAYED_STATUS,
            **eta_pair,
        )
    if snapshot.status == TrackingStatusEnum.EXCEPTION:
        return DelayCheckResult(
            is_delayed=True,
            delay_days=None,
            delay_reason=DelayReasonEnum.EXCEPTION_STATUS,
            **eta_pair,
        )

    estimated = snapshot.estimated_delivery_date
    original = snapshot.original_estimated_delivery_date
    if estimated and original and as_utc(estimated) > as_utc(original):
        return DelayCheckResult(
            is_delayed=True,
            delay_days=_ceil_days(as_utc(estimated) - as_utc(original)),
            delay_reason=DelayReasonEnum.DATE_DELAY,
            **eta_pair,
        )

    return DelayCheckResult(is_delayed=False, delay_days=0, **eta_pair)


class CarrierDelayDetector:
    """Carrier delay detection on top of the direct carrier signals.

    Day-counted base results shorter than ``delay_threshold`` are suppressed.
    When the base rule finds nothing, recent tracking events are scanned for
    delay keywords and finally the ETA is compared against ``now``.
    """

    def __init__(self, delay_threshold: int = 1):
        self._delay_threshold = delay_threshold

    @property
    def delay_threshold(self) -> int:
        return self._delay_threshold

    @delay_threshold.setter
    def delay_threshold(self, threshold: int) -> None:
        self._delay_threshold = threshold

    def check(
        self, snapshot: TrackingSnapshot, now: datetime | None = None
    ) -> DelayCheckResult:
        result = check_for_delays(snapshot)

        if result.is_delayed and result.delay_days:
            if result.delay_days < self._delay_threshold:
                return DelayCheckResult(
                    is_delayed=False,
                    delay_days=0,
                    estimated_delivery=result.estimated_delivery,
                    original_delivery=result.original_delivery,
                )

        if result.is_delayed:
            return result

        event_delay = self._check_event_based_delays(snapshot)
        if event_delay.is_delayed:
            return event_delay

        eta_delay = self._check_eta_exceeded(snapshot, now or utc_now())
        if eta_delay.is_delayed:
            return eta_delay

        return result

    @staticmethod
    def _check_event_based_delays(snapshot: TrackingSnapshot) -> DelayCheckResult:
        for event in snapshot.events[-RECENT_EVENTS_WINDOW:]:
            description = event.description.lower()
            status = event.status.lower()
            if any(
                keyword in description or keyword in status
                for keyword in DELAY_KEYWORDS
            ):
                return DelayCheckResult(
                    is_delayed=True,
                    delay_days=None,
                    delay_reason=DelayReasonEnum.EVENT_DELAY,
                    estimated_delivery=snapshot.estimated_delivery_date,
                    original_delivery=snapshot.original_estimated_delivery_date,
                )
        return DelayCheckResult(is_delayed=False)

    @staticmethod
    def _check_eta_exceeded(
        snapshot: TrackingSnapshot, now: datetime
    ) -> DelayCheckResult:
        if snapshot.estimated_delivery_date is None:
            return DelayCheckResult(is_delayed=False)

        estimated = as_utc(snapshot.estimated_delivery_date)
        now = as_utc(now)
        if estimated < now and snapshot.status in ETA_EXCEEDED_STATUSES:
            return DelayCheckResult(
                is_delayed=True,
                delay_days=_ceil_days(now - estimated),
                delay_reason=DelayReasonEnum.ETA_EXCEEDED,
                estimated_delivery=snapshot.estimated_delivery_date,
                original_delivery=snapshot.original_estimated_delivery_date,
            )
        return DelayCheckResult(is_delayed=False)
