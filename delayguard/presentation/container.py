from dependency_injector import containers, providers

from delayguard.application.container import ApplicationContainer
from delayguard.presentation.delay_check_worker import DelayCheckWorker
from delayguard.presentation.notification_result_worker import NotificationResultWorker
from delayguard.presentation.outbox_worker import OutboxWorker


class PresentationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    application = providers.Container[ApplicationContainer](
        ApplicationContainer, config=config
    )

    outbox_worker = providers.Singleton[OutboxWorker](
        OutboxWorker,
        use_case=application.process_outbox_events_use_case,
        poll_interval=config.outbox.poll_interval_seconds.as_float(),
    )
    delay_check_worker = providers.Singleton[DelayCheckWorker](
        DelayCheckWorker,
        refresh_tracking_use_case=application.refresh_tracking_use_case,
        run_delay_checks_use_case=application.run_delay_checks_use_case,
        interval_seconds=config.delay_checks.interval_seconds.as_float(),
    )
    notification_result_worker = providers.Singleton[NotificationResultWorker](
        NotificationResultWorker,
        mark_channel_sent_use_case=application.mark_channel_sent_use_case,
        bootstrap_servers=config.infrastructure.kafka.bootstrap_servers,
        topic=config.infrastructure.kafka.results_topic,
        group_id=config.infrastructure.kafka.group_id,
    )
