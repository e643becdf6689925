import asyncio
import logging

from delayguard.application.process_outbox_events import ProcessOutboxEventsUseCase

logger = logging.getLogger(__name__)


class OutboxWorker:
    def __init__(self, use_case: ProcessOutboxEventsUseCase, poll_interval: float = 1.0):
        self._use_case = use_case
        self._poll_interval = poll_interval

    async def run(self):
        while True:
            try:
                published = await self._use_case()
            except Exception as e:
                logger.error(f"Outbox pass failed: {e}", exc_info=True)
                published = 0

            # Drain a backlog without waiting
            if not published:
                await asyncio.sleep(self._poll_interval)
