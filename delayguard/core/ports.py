from typing import Protocol

from delayguard.core.models import TrackingSnapshot


class TrackingProvider(Protocol):
    async def get_tracking_info(
        self, tracking_number: str, carrier_code: str
    ) -> TrackingSnapshot: ...
