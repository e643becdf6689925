import logging

from delayguard.infrastructure.kafka_producer import KafkaProducer
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(
        self,
        unit_of_work: UnitOfWork,
        kafka_producer: KafkaProducer,
        batch_size: int = 100,
    ):
        self._unit_of_work = unit_of_work
        self._kafka_producer = kafka_producer
        self._batch_size = batch_size

    async def __call__(self) -> int:
        """
        Publish pending notification requests and mark them sent.
        Returns the number of events published; failed ones stay pending.
        """
        async with self._unit_of_work() as uow:
            events = await uow.outbox.get_pending_events(limit=self._batch_size)

        if not events:
            return 0

        published = 0
        async with self._kafka_producer as kp:
            for event in events:
                async with self._unit_of_work() as uow:
                    try:
                        await kp.send_message(
                            message={
                                "event_type": event.event_type,
                                "payload": event.payload,
                                "created_at": event.created_at.isoformat(),
                            },
                            key=event.payload.get("orderId"),
                            event_type=event.event_type,
                        )
                    except Exception as e:
                        logger.error(
                            f"Failed to publish outbox event {event.id}: {e}",
                            exc_info=True,
                        )
                        continue

                    await uow.outbox.mark_as_sent(event.id)
                    await uow.commit()
                    published += 1

        return published
