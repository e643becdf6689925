import logging

from pydantic import BaseModel

from delayguard.core.models import (
    DelayAlert,
    DelayDecision,
    EventTypeEnum,
    NotificationRequest,
    OrderDelayContext,
)
from delayguard.core.notifications import build_notification_request, pending_channels
from delayguard.infrastructure.repositories import AlertRepository, OutboxRepository
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class RecordedAlert(BaseModel):
    alert: DelayAlert | None = None
    notification: NotificationRequest | None = None

    @property
    def created(self) -> bool:
        return self.alert is not None


class RecordDelayAlertUseCase:
    """Persists a delay decision and requests notification for unsent channels.

    The alert insert is a no-op when the order already has an alert of the same
    delay type, and channels whose flag is already set are never requested
    again. Store errors propagate.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        tracking_url_template: str | None = None,
    ):
        self._unit_of_work = unit_of_work
        self._tracking_url_template = tracking_url_template

    async def __call__(
        self, context: OrderDelayContext, decision: DelayDecision
    ) -> RecordedAlert:
        order_id = context.order.id
        decision = self._with_tracking_url(decision)

        async with self._unit_of_work() as uow:
            alert = await uow.alerts.insert_if_absent(
                AlertRepository.CreateDTO(
                    order_id=order_id,
                    delay_type=decision.delay_type,
                    delay_days=decision.delay_days,
                    delay_reason=decision.delay_reason,
                    original_delivery_date=decision.original_delivery,
                    estimated_delivery_date=decision.estimated_delivery,
                )
            )
            if alert is None:
                logger.info(
                    f"Order {order_id} already has a {decision.delay_type} alert"
                )

            settings = context.settings
            if not (settings.email_enabled or settings.sms_enabled):
                await uow.commit()
                return RecordedAlert(alert=alert)

            request = build_notification_request(context, decision)
            flags = await uow.alerts.get_flags(order_id, decision.delay_type)
            channels = pending_channels(request, settings, flags)
            if not channels:
                logger.info(f"No notification channels left to request for order {order_id}")
                await uow.commit()
                return RecordedAlert(alert=alert)

            request = request.model_copy(update={"channels": channels})
            await uow.outbox.create(
                event=OutboxRepository.CreateDTO(
                    event_type=EventTypeEnum.DELAY_NOTIFICATION_REQUESTED,
                    payload=request.model_dump(mode="json", by_alias=True),
                )
            )
            await uow.commit()

        logger.info(
            f"Requested {', '.join(channels)} notification for order {order_id} "
            f"({decision.delay_type}, {request.recipient_source})"
        )
        return RecordedAlert(alert=alert, notification=request)

    def _with_tracking_url(self, decision: DelayDecision) -> DelayDecision:
        if decision.tracking_url or not decision.tracking_number:
            return decision
        if not self._tracking_url_template:
            return decision
        return decision.model_copy(
            update={
                "tracking_url": self._tracking_url_template.format(
                    tracking_number=decision.tracking_number
                )
            }
        )
