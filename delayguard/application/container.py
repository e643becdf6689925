from dependency_injector import containers, providers

from delayguard.application.check_order_delay import CheckOrderDelayUseCase
from delayguard.application.classify_delay import DelayClassifier
from delayguard.application.mark_channel_sent import MarkChannelSentUseCase
from delayguard.application.process_outbox_events import ProcessOutboxEventsUseCase
from delayguard.application.record_delay_alert import RecordDelayAlertUseCase
from delayguard.application.refresh_tracking import RefreshTrackingUseCase
from delayguard.application.run_delay_checks import RunDelayChecksUseCase
from delayguard.core.delay_rules import CarrierDelayDetector
from delayguard.infrastructure.container import InfrastructureContainer


class ApplicationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    infrastructure_container = providers.Container[InfrastructureContainer](
        InfrastructureContainer,
        config=config.infrastructure,
    )

    carrier_detector = providers.Singleton[CarrierDelayDetector](
        CarrierDelayDetector,
        delay_threshold=config.carrier_detection.delay_threshold.as_int(),
    )
    classify_delay = providers.Singleton[DelayClassifier](
        DelayClassifier,
        tracking_provider=infrastructure_container.tracking_provider,
        carrier_detector=carrier_detector,
    )
    record_delay_alert_use_case = providers.Singleton[RecordDelayAlertUseCase](
        RecordDelayAlertUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        tracking_url_template=config.notifications.tracking_url_template,
    )
    check_order_delay_use_case = providers.Singleton[CheckOrderDelayUseCase](
        CheckOrderDelayUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        classifier=classify_delay,
        record_delay_alert=record_delay_alert_use_case,
    )
    run_delay_checks_use_case = providers.Singleton[RunDelayChecksUseCase](
        RunDelayChecksUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        check_order_delay=check_order_delay_use_case,
        concurrency=config.delay_checks.concurrency.as_int(),
        batch_size=config.delay_checks.batch_size.as_int(),
    )
    refresh_tracking_use_case = providers.Singleton[RefreshTrackingUseCase](
        RefreshTrackingUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        tracking_provider=infrastructure_container.tracking_provider,
    )
    process_outbox_events_use_case = providers.Singleton[ProcessOutboxEventsUseCase](
        ProcessOutboxEventsUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        kafka_producer=infrastructure_container.kafka_producer,
        batch_size=config.outbox.batch_size.as_int(),
    )
    mark_channel_sent_use_case = providers.Singleton[MarkChannelSentUseCase](
        MarkChannelSentUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
    )
