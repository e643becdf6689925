from delayguard.application.mark_channel_sent import MarkChannelSentUseCase
from delayguard.infrastructure.kafka_consumer import KafkaEventConsumer


class NotificationResultWorker:
    def __init__(
        self,
        mark_channel_sent_use_case: MarkChannelSentUseCase,
        bootstrap_servers: str,
        topic: str,
        group_id: str,
    ):
        self._mark_channel_sent = mark_channel_sent_use_case
        self._consumer = KafkaEventConsumer(
            bootstrap_servers=bootstrap_servers,
            topic=topic,
            group_id=group_id,
            process_message_callback=self._process_message,
        )

    async def _process_message(self, message_id: str, event_data: dict):
        await self._mark_channel_sent(
            message_id=message_id, result_data=event_data.get("payload", event_data)
        )

    async def run(self):
        await self._consumer.start()
        try:
            await self._consumer.consume()
        finally:
            await self._consumer.stop()
