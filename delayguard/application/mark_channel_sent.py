import logging

from delayguard.core.models import DelayTypeEnum, EventTypeEnum, NotificationChannelEnum
from delayguard.infrastructure.repositories import InboxRepository
from delayguard.infrastructure.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class MarkChannelSentUseCase:
    """Records a delivered notification so the channel is never requested again."""

    def __init__(self, unit_of_work: UnitOfWork):
        self._unit_of_work = unit_of_work

    async def __call__(self, message_id: str, result_data: dict) -> None:
        async with self._unit_of_work() as uow:
            if await uow.inbox.exists(message_id):
                return  # Already processed

            inbox_event = await uow.inbox.create(
                InboxRepository.CreateDTO(
                    message_id=message_id,
                    event_type=EventTypeEnum.NOTIFICATION_SENT,
                    payload=result_data,
                )
            )

            if result_data.get("status") == "SENT":
                await uow.alerts.mark_channel_sent(
                    order_id=result_data["orderId"],
                    delay_type=DelayTypeEnum(result_data["delayType"]),
                    channel=NotificationChannelEnum(result_data["channel"]),
                )
            else:
                logger.warning(
                    f"Notification for order {result_data.get('orderId')} was not "
                    f"delivered on {result_data.get('channel')}: {result_data.get('status')}"
                )

            await uow.inbox.mark_as_processed(inbox_event.id)
            await uow.commit()
