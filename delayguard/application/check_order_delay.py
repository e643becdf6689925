import logging
from datetime import datetime

from delayguard.application.classify_delay import DelayClassifier
from delayguard.application.record_delay_alert import (
    RecordDelayAlertUseCase,
    RecordedAlert,
)
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class CheckOrderDelayUseCase:
    def __init__(
        self,
        unit_of_work: UnitOfWork,
        classifier: DelayClassifier,
        record_delay_alert: RecordDelayAlertUseCase,
    ):
        self._unit_of_work = unit_of_work
        self._classifier = classifier
        self._record_delay_alert = record_delay_alert

    async def __call__(
        self, order_id: str, now: datetime | None = None
    ) -> RecordedAlert | None:
        async with self._unit_of_work() as uow:
            context = await uow.orders.get_delay_context(order_id)

        decision = await self._classifier(context, now=now)

        if decision is None:
            logger.debug(f"No delay detected for order {order_id}")
            recorded = None
        else:
            logger.info(
                f"Delay detected for order {order_id}: {decision.delay_type} "
                f"({decision.delay_reason}, {decision.delay_days} days)"
            )
            recorded = await self._record_delay_alert(context, decision)

        async with self._unit_of_work() as uow:
            await uow.orders.touch(order_id)
            await uow.commit()

        return recorded
