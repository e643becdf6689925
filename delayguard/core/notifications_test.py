import pytest

from delayguard.core.exceptions import InvalidDecisionError, NoContactInformationError
from delayguard.core.models import (
    AlertFlags,
    DelayDecision,
    DelayReasonEnum,
    DelayTypeEnum,
    NotificationChannelEnum,
    OrderStatusEnum,
    Recipient,
    RecipientSourceEnum,
    ShopSettings,
    TrackingStatusEnum,
    parse_order_status,
    parse_tracking_status,
)
from delayguard.core.notifications import build_notification_request, pending_channels


def _decision(**kwargs) -> DelayDecision:
    defaults = {
        "delay_type": DelayTypeEnum.CARRIER_DELAY,
        "delay_days": 2,
        "delay_reason": DelayReasonEnum.DATE_DELAY,
        "recipient": Recipient(
            email="customer@example.com", phone="+1-555-0100", name="John Doe"
        ),
        "source": RecipientSourceEnum.CUSTOMER,
        "tracking_number": "TRACK123",
    }
    defaults.update(kwargs)
    return DelayDecision(**defaults)


class TestBuildNotificationRequest:
    def test_copies_decision_and_recipient(self, context_factory):
        # Given
        context = context_factory()

        # When
        request = build_notification_request(context, _decision())

        # Then
        assert request.order_id == context.order.id
        assert request.shop_domain == "test-shop.myshopify.com"
        assert request.recipient_source == RecipientSourceEnum.CUSTOMER
        assert request.recipient_email == "customer@example.com"
        assert request.delay_days == 2
        assert request.tracking_number == "TRACK123"

    def test_serializes_with_camel_case_keys(self, context_factory):
        request = build_notification_request(context_factory(), _decision())

        payload = request.model_dump(mode="json", by_alias=True)

        assert payload["orderId"] == request.order_id
        assert payload["delayType"] == "CARRIER_DELAY"
        assert payload["recipientSource"] == "customer"

    def test_phone_only_recipient_is_reachable(self, context_factory):
        decision = _decision(recipient=Recipient(phone="+1-555-0100"))

        request = build_notification_request(context_factory(), decision)

        assert request.recipient_email is None
        assert request.recipient_phone == "+1-555-0100"

    def test_recipient_without_contact_raises(self, context_factory):
        context = context_factory()
        decision = _decision(recipient=Recipient(name="Nobody"))

        with pytest.raises(NoContactInformationError) as exc_info:
            build_notification_request(context, decision)

        assert exc_info.value.order_id == context.order.id
        assert exc_info.value.code == "NO_CONTACT_INFORMATION"

    def test_missing_decision_raises(self, context_factory):
        with pytest.raises(InvalidDecisionError):
            build_notification_request(context_factory(), None)


class TestPendingChannels:
    @pytest.fixture
    def request_(self, context_factory):
        return build_notification_request(context_factory(), _decision())

    def test_email_only_by_default(self, request_):
        channels = pending_channels(request_, ShopSettings(), AlertFlags())

        assert channels == [NotificationChannelEnum.EMAIL]

    def test_both_channels_when_sms_enabled(self, request_):
        settings = ShopSettings(sms_enabled=True)

        channels = pending_channels(request_, settings, AlertFlags())

        assert channels == [NotificationChannelEnum.EMAIL, NotificationChannelEnum.SMS]

    def test_already_sent_channels_are_skipped(self, request_):
        settings = ShopSettings(sms_enabled=True)

        channels = pending_channels(request_, settings, AlertFlags(email_sent=True))

        assert channels == [NotificationChannelEnum.SMS]

    def test_channel_without_matching_contact_is_skipped(self, context_factory):
        request = build_notification_request(
            context_factory(), _decision(recipient=Recipient(email="a@b.com"))
        )

        channels = pending_channels(
            request, ShopSettings(sms_enabled=True), AlertFlags()
        )

        assert channels == [NotificationChannelEnum.EMAIL]


class TestVocabularies:
    def test_order_status_is_case_insensitive(self):
        assert parse_order_status("FULFILLED") == OrderStatusEnum.FULFILLED

    def test_unknown_order_status_reads_as_missing(self):
        assert parse_order_status("on_hold") is None

    def test_unknown_tracking_status_reads_as_unknown(self):
        assert parse_tracking_status("LOST_IN_SPACE") == TrackingStatusEnum.UNKNOWN

    def test_legacy_threshold_name_is_accepted(self):
        settings = ShopSettings.model_validate({"delay_threshold_days": 4})

        assert settings.warehouse_delay_days == 4
