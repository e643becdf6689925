import asyncio
import json
import logging
from typing import Awaitable, Callable

from aiokafka import AIOKafkaConsumer

logger = logging.getLogger(__name__)

MessageCallback = Callable[[str, dict], Awaitable[None]]


class KafkaEventConsumer:
    """Feeds each message of ``topic`` to a callback along with a message id."""

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        group_id: str,
        process_message_callback: MessageCallback,
    ):
        self._bootstrap_servers = bootstrap_servers
        self._topic = topic
        self._group_id = group_id
        self._process_message = process_message_callback
        self._consumer: AIOKafkaConsumer | None = None

    async def start(self):
        self._consumer = AIOKafkaConsumer(
            self._topic,
            bootstrap_servers=self._bootstrap_servers,
            group_id=self._group_id,
            auto_offset_reset="earliest",
            enable_auto_commit=True,
            value_deserializer=lambda m: json.loads(m.decode("utf-8")),
        )
        await self._consumer.start()

    async def stop(self):
        if self._consumer:
            await self._consumer.stop()
            self._consumer = None

    async def consume(self):
        if not self._consumer:
            raise RuntimeError("Consumer not started")

        logger.info(f"Started consuming from topic: {self._topic}")

        try:
            async for message in self._consumer:
                # Stable across redeliveries of the same record
                message_id = f"{message.topic}:{message.partition}:{message.offset}"
                try:
                    await self._process_message(message_id, message.value)
                except Exception as e:
                    logger.error(
                        f"Error processing message {message_id}: {e}", exc_info=True
                    )
                    continue

        except asyncio.CancelledError:
            logger.info("Consumer cancelled")
            raise
