import asyncio
import logging
from pathlib import Path

from delayguard.presentation.container import PresentationContainer

CONFIG_PATH = Path(__file__).resolve().parent.parent / "delayguard" / "config.yaml"

logger = logging.getLogger(__name__)


async def main():
    presentation_container = PresentationContainer()
    presentation_container.config.from_yaml(CONFIG_PATH, required=True)

    logging.basicConfig(
        level=presentation_container.config.logging.level() or "INFO",
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    outbox_worker = presentation_container.outbox_worker()
    delay_check_worker = presentation_container.delay_check_worker()
    notification_result_worker = presentation_container.notification_result_worker()
    tracking_provider = (
        presentation_container.application.infrastructure_container.tracking_provider()
    )

    logger.info("Starting DelayGuard delay service...")
    outbox_task = asyncio.create_task(outbox_worker.run())
    delay_check_task = asyncio.create_task(delay_check_worker.run())
    result_task = asyncio.create_task(notification_result_worker.run())

    try:
        await asyncio.gather(outbox_task, delay_check_task, result_task)
    finally:
        await tracking_provider.aclose()
        logger.info("DelayGuard delay service stopped")


if __name__ == "__main__":
    asyncio.run(main())
