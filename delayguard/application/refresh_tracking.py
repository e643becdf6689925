import logging

from delayguard.core.models import Order, TrackingRefreshStats
from delayguard.core.ports import TrackingProvider
from delayguard.infrastructure.repositories import OrderRepository
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class RefreshTrackingUseCase:
    """Pulls fresh tracking data for every in-transit order.

    Events are upserted on (order, timestamp); ETAs, the tracking status and
    the time of the latest carrier event are written back to the order.
    """

    def __init__(self, unit_of_work: UnitOfWork, tracking_provider: TrackingProvider):
        self._unit_of_work = unit_of_work
        self._tracking_provider = tracking_provider

    async def __call__(self) -> TrackingRefreshStats:
        stats = TrackingRefreshStats()

        async with self._unit_of_work() as uow:
            orders = await uow.orders.list_in_transit()

        logger.info(f"Found {len(orders)} in-transit orders to refresh")

        for order in orders:
            stats.orders_processed += 1
            try:
                stats.events_stored += await self._refresh(order)
            except Exception as e:
                stats.errors += 1
                logger.error(
                    f"Failed to refresh tracking for order {order.id} "
                    f"({order.tracking_number} via {order.carrier_code}): {e}",
                    exc_info=True,
                )

        logger.info(
            f"Tracking refresh completed: {stats.orders_processed} orders, "
            f"{stats.events_stored} events, {stats.errors} errors"
        )
        return stats

    async def _refresh(self, order: Order) -> int:
        snapshot = await self._tracking_provider.get_tracking_info(
            order.tracking_number, order.carrier_code
        )

        async with self._unit_of_work() as uow:
            for event in snapshot.events:
                await uow.tracking_events.upsert(
                    order.id, event, carrier_status=snapshot.carrier_code
                )

            last_update = max(
                (event.timestamp for event in snapshot.events),
                default=order.last_tracking_update,
            )
            await uow.orders.update_tracking(
                order.id,
                OrderRepository.UpdateTrackingDTO(
                    tracking_status=snapshot.status,
                    original_eta=snapshot.original_estimated_delivery_date,
                    current_eta=snapshot.estimated_delivery_date,
                    last_tracking_update=last_update,
                    tracking_url=snapshot.tracking_url,
                ),
            )
            await uow.commit()

        logger.info(f"Refreshed tracking for order {order.id}: {len(snapshot.events)} events")
        return len(snapshot.events)
