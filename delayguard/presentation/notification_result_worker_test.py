import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from delayguard.application.mark_channel_sent import MarkChannelSentUseCase
from delayguard.core.models import DelayReasonEnum, DelayTypeEnum, EventTypeEnum
from delayguard.infrastructure.repositories import AlertRepository
from delayguard.infrastructure.unit_of_work import UnitOfWork
from delayguard.presentation.notification_result_worker import NotificationResultWorker


class TestNotificationResultWorker:
    async def test_enveloped_result_marks_channel(
        self, uow: UnitOfWork, order_factory, now: datetime
    ):
        # Given
        order = await order_factory(created_at=now - timedelta(days=3))
        async with uow() as unit:
            await unit.alerts.insert_if_absent(
                AlertRepository.CreateDTO(
                    order_id=order.id,
                    delay_type=DelayTypeEnum.WAREHOUSE_DELAY,
                    delay_days=3,
                    delay_reason=DelayReasonEnum.WAREHOUSE_DELAY,
                )
            )
            await unit.commit()

        worker = NotificationResultWorker(
            mark_channel_sent_use_case=MarkChannelSentUseCase(unit_of_work=uow),
            bootstrap_servers="kafka:9092",
            topic="notification-results",
            group_id="delayguard-service",
        )

        # When
        await worker._process_message(
            "notification-results:0:7",
            {
                "event_type": EventTypeEnum.NOTIFICATION_SENT,
                "payload": {
                    "orderId": order.id,
                    "delayType": "WAREHOUSE_DELAY",
                    "channel": "email",
                    "status": "SENT",
                },
            },
        )

        # Then
        async with uow() as unit:
            flags = await unit.alerts.get_flags(order.id, DelayTypeEnum.WAREHOUSE_DELAY)
        assert flags.email_sent

    async def test_processing_error_is_left_to_the_consumer(self, caplog):
        # Given
        mark_channel_sent = AsyncMock(spec=MarkChannelSentUseCase)
        mark_channel_sent.side_effect = ValueError("unknown delay type")
        worker = NotificationResultWorker(
            mark_channel_sent_use_case=mark_channel_sent,
            bootstrap_servers="kafka:9092",
            topic="notification-results",
            group_id="delayguard-service",
        )

        # When
        with caplog.at_level(logging.ERROR), pytest.raises(ValueError):
            await worker._process_message(
                "notification-results:0:8", {"payload": {"delayType": "BOGUS"}}
            )

        # Then
        mark_channel_sent.assert_awaited_once_with(
            message_id="notification-results:0:8",
            result_data={"delayType": "BOGUS"},
        )
        assert caplog.records == []
