from delayguard.core.exceptions import InvalidDecisionError, NoContactInformationError
from delayguard.core.models import (
    AlertFlags,
    DelayDecision,
    DelayTypeEnum,
    NotificationChannelEnum,
    NotificationRequest,
    OrderDelayContext,
    ShopSettings,
)


def build_notification_request(
    context: OrderDelayContext, decision: DelayDecision
) -> NotificationRequest:
    """Channel-agnostic payload for the recipient the decision was routed to.

    Raises NoContactInformationError when the recipient can't be reached on
    any channel.
    """
    if decision is None or decision.delay_type not in set(DelayTypeEnum):
        raise InvalidDecisionError(
            f"Decision for order {context.order.id} has no delay type"
        )

    recipient = decision.recipient
    if not recipient.email and not recipient.phone:
        raise NoContactInformationError(context.order.id)

    return NotificationRequest(
        order_id=context.order.id,
        shop_domain=context.shop_domain,
        delay_type=decision.delay_type,
        recipient_source=decision.source,
        recipient_email=recipient.email,
        recipient_phone=recipient.phone,
        recipient_name=recipient.name,
        delay_days=decision.delay_days,
        delay_reason=decision.delay_reason,
        estimated_delivery=decision.estimated_delivery,
        tracking_number=decision.tracking_number,
        tracking_url=decision.tracking_url,
    )


def pending_channels(
    request: NotificationRequest, settings: ShopSettings, flags: AlertFlags
) -> list[NotificationChannelEnum]:
    channels = []
    if settings.email_enabled and request.recipient_email and not flags.email_sent:
        channels.append(NotificationChannelEnum.EMAIL)
    if settings.sms_enabled and request.recipient_phone and not flags.sms_sent:
        channels.append(NotificationChannelEnum.SMS)
    return channels
