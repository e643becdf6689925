import asyncio
import logging

from delayguard.application.refresh_tracking import RefreshTrackingUseCase
from delayguard.application.run_delay_checks import RunDelayChecksUseCase

logger = logging.getLogger(__name__)


class DelayCheckWorker:
    """Scheduled pass: refresh tracking for in-transit orders, then check delays."""

    def __init__(
        self,
        refresh_tracking_use_case: RefreshTrackingUseCase,
        run_delay_checks_use_case: RunDelayChecksUseCase,
        interval_seconds: float = 3600,
    ):
        self._refresh_tracking = refresh_tracking_use_case
        self._run_delay_checks = run_delay_checks_use_case
        self._interval_seconds = interval_seconds

    async def run_once(self) -> None:
        refresh_stats = await self._refresh_tracking()
        check_stats = await self._run_delay_checks()
        logger.info(
            f"Delay check pass finished: refresh={refresh_stats.model_dump()} "
            f"checks={check_stats.model_dump()}"
        )

    async def run(self):
        while True:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Delay check pass failed: {e}", exc_info=True)

            await asyncio.sleep(self._interval_seconds)
