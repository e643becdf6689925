import json
from typing import Any

from aiokafka import AIOKafkaProducer


class KafkaProducer:
    """Publishes outbox events; the event type travels as a message header."""

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
    ):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._producer: AIOKafkaProducer | None = None

    async def start(self):
        self._producer = AIOKafkaProducer(
            bootstrap_servers=self._bootstrap_servers,
            value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            key_serializer=lambda k: k.encode("utf-8") if k else None,
            acks="all",
        )
        await self._producer.start()

    async def stop(self):
        if self._producer:
            await self._producer.stop()
            self._producer = None

    async def send_message(
        self,
        message: dict[str, Any],
        key: str | None = None,
        event_type: str | None = None,
    ) -> None:
        if not self._producer:
            raise RuntimeError("Producer is not started. Call start() first.")

        headers = [("event_type", event_type.encode("utf-8"))] if event_type else None
        await self._producer.send_and_wait(
            topic=self._topic,
            value=message,
            key=key,
            headers=headers,
        )

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
