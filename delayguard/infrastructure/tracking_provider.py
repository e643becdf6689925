import logging

import httpx

from delayguard.core.exceptions import (
    TrackingAuthError,
    TrackingNotFoundError,
    TrackingProviderError,
    TrackingRateLimitedError,
)
from delayguard.core.models import (
    TrackingEvent,
    TrackingSnapshot,
    TrackingStatusEnum,
    parse_tracking_status,
)

logger = logging.getLogger(__name__)

STATUS_CODES = {
    "AC": TrackingStatusEnum.ACCEPTED,
    "AT": TrackingStatusEnum.IN_TRANSIT,
    "DE": TrackingStatusEnum.DELIVERED,
    "DL": TrackingStatusEnum.DELAYED,
    "EX": TrackingStatusEnum.EXCEPTION,
    "IT": TrackingStatusEnum.IN_TRANSIT,
    "NY": TrackingStatusEnum.PRE_TRANSIT,
    "OD": TrackingStatusEnum.OUT_FOR_DELIVERY,
    "PU": TrackingStatusEnum.PICKED_UP,
    "SE": TrackingStatusEnum.IN_TRANSIT,
    "UN": TrackingStatusEnum.UNKNOWN,
}


def map_status(code: str | None) -> TrackingStatusEnum:
    if not code:
        return TrackingStatusEnum.UNKNOWN
    if code in STATUS_CODES:
        return STATUS_CODES[code]
    return parse_tracking_status(code)


class HttpTrackingProvider:
    """Tracking lookups against a ShipEngine-compatible ``/v1/tracking`` API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ValueError("Tracking API key is required")

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"API-Key": api_key, "Content-Type": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def get_tracking_info(
        self, tracking_number: str, carrier_code: str
    ) -> TrackingSnapshot:
        logger.info(f"Fetching tracking info for {tracking_number} via {carrier_code}")

        try:
            response = await self._client.get(
                "/v1/tracking",
                params={"tracking_number": tracking_number, "carrier_code": carrier_code},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                raise TrackingNotFoundError(
                    f"Tracking number {tracking_number} not found"
                ) from e
            if status_code == 429:
                raise TrackingRateLimitedError(
                    "Rate limit exceeded. Please try again later."
                ) from e
            if status_code == 401:
                raise TrackingAuthError("Invalid API key") from e
            raise TrackingProviderError(
                f"Tracking lookup failed with status {status_code}"
            ) from e
        except httpx.HTTPError as e:
            # Timeouts and connection failures
            raise TrackingProviderError(
                f"Tracking lookup for {tracking_number} failed: {e!r}"
            ) from e

        snapshot = self._construct(response.json(), tracking_number, carrier_code)
        logger.info(f"Tracking info retrieved for {tracking_number}: {snapshot.status}")
        return snapshot

    @staticmethod
    def _construct(data: dict, tracking_number: str, carrier_code: str) -> TrackingSnapshot:
        events = []
        for event in data.get("events") or []:
            location = None
            if event.get("city_locality"):
                location = f"{event['city_locality']}, {event.get('state_province')}"
            events.append(
                TrackingEvent(
                    timestamp=event["occurred_at"],
                    status=map_status(event.get("status_code")),
                    location=location,
                    description=event.get("description") or event.get("status_code") or "",
                )
            )

        return TrackingSnapshot(
            tracking_number=data.get("tracking_number") or tracking_number,
            carrier_code=data.get("carrier_code") or carrier_code,
            status=map_status(data.get("status_code")),
            estimated_delivery_date=data.get("estimated_delivery_date"),
            original_estimated_delivery_date=data.get("original_estimated_delivery_date"),
            events=events,
            tracking_url=data.get("tracking_url"),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
