import asyncio
import logging
from datetime import datetime

from delayguard.application.check_order_delay import CheckOrderDelayUseCase
from delayguard.core.models import DelayCheckStats
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class RunDelayChecksUseCase:
    """Runs the delay check for every candidate order.

    Orders are independent: a failure is logged and counted, and the rest of
    the batch carries on.
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        check_order_delay: CheckOrderDelayUseCase,
        concurrency: int = 10,
        batch_size: int = 500,
    ):
        self._unit_of_work = unit_of_work
        self._check_order_delay = check_order_delay
        self._concurrency = concurrency
        self._batch_size = batch_size

    async def __call__(self, now: datetime | None = None) -> DelayCheckStats:
        async with self._unit_of_work() as uow:
            order_ids = await uow.orders.list_delay_check_candidates(
                limit=self._batch_size
            )

        stats = DelayCheckStats()
        if not order_ids:
            return stats

        logger.info(f"Checking {len(order_ids)} orders for delays")
        semaphore = asyncio.Semaphore(self._concurrency)

        async def check(order_id: str) -> None:
            async with semaphore:
                try:
                    recorded = await self._check_order_delay(order_id, now=now)
                except Exception as e:
                    stats.errors += 1
                    logger.error(
                        f"Delay check failed for order {order_id}: {e}", exc_info=True
                    )
                    return

            stats.orders_checked += 1
            if recorded is not None:
                stats.delays_detected += 1
                if recorded.notification is not None:
                    stats.notifications_requested += 1

        await asyncio.gather(*(check(order_id) for order_id in order_ids))

        logger.info(
            f"Delay checks completed: {stats.orders_checked} checked, "
            f"{stats.delays_detected} delayed, "
            f"{stats.notifications_requested} notifications requested, "
            f"{stats.errors} errors"
        )
        return stats
