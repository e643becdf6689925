from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from delayguard.application.check_order_delay import CheckOrderDelayUseCase
from delayguard.application.classify_delay import DelayClassifier
from delayguard.application.record_delay_alert import RecordDelayAlertUseCase
from delayguard.application.run_delay_checks import RunDelayChecksUseCase
from delayguard.core.exceptions import TrackingProviderError
from delayguard.core.models import DelayTypeEnum, OrderStatusEnum, TrackingStatusEnum
from delayguard.infrastructure.tracking_provider import HttpTrackingProvider
from delayguard.infrastructure.unit_of_work import UnitOfWork


@pytest.fixture
def tracking_provider(snapshot_factory):
    provider = AsyncMock(spec=HttpTrackingProvider)
    provider.get_tracking_info = AsyncMock(return_value=snapshot_factory())
    return provider


@pytest.fixture
def check_order_delay(uow: UnitOfWork, tracking_provider) -> CheckOrderDelayUseCase:
    return CheckOrderDelayUseCase(
        unit_of_work=uow,
        classifier=DelayClassifier(tracking_provider=tracking_provider),
        record_delay_alert=RecordDelayAlertUseCase(unit_of_work=uow),
    )


@pytest.fixture
def run_delay_checks(
    uow: UnitOfWork, check_order_delay: CheckOrderDelayUseCase
) -> RunDelayChecksUseCase:
    # SQLite allows a single writer at a time
    return RunDelayChecksUseCase(
        unit_of_work=uow, check_order_delay=check_order_delay, concurrency=1
    )


class TestRunDelayChecksUseCase:
    async def test_no_candidates(self, run_delay_checks: RunDelayChecksUseCase):
        stats = await run_delay_checks()

        assert stats.orders_checked == 0
        assert stats.errors == 0

    async def test_counts_checked_and_delayed_orders(
        self,
        run_delay_checks: RunDelayChecksUseCase,
        shop_factory,
        order_factory,
        now: datetime,
    ):
        # Given
        shop = await shop_factory(merchant_email="merchant@shop.com")
        await order_factory(shop=shop, created_at=now - timedelta(days=5))
        await order_factory(shop=shop, created_at=now - timedelta(days=4))
        await order_factory(shop=shop, created_at=now - timedelta(hours=3))

        # When
        stats = await run_delay_checks(now=now)

        # Then
        assert stats.orders_checked == 3
        assert stats.delays_detected == 2
        assert stats.notifications_requested == 2
        assert stats.errors == 0

    async def test_closed_and_delivered_orders_are_not_checked(
        self,
        run_delay_checks: RunDelayChecksUseCase,
        order_factory,
        now: datetime,
    ):
        await order_factory(status=OrderStatusEnum.CANCELLED)
        await order_factory(status=OrderStatusEnum.ARCHIVED)
        await order_factory(
            status=OrderStatusEnum.FULFILLED,
            tracking_status=TrackingStatusEnum.DELIVERED,
        )

        stats = await run_delay_checks(now=now)

        assert stats.orders_checked == 0

    async def test_one_failing_order_does_not_stop_the_batch(
        self,
        run_delay_checks: RunDelayChecksUseCase,
        tracking_provider,
        shop_factory,
        order_factory,
        now: datetime,
    ):
        # Given
        tracking_provider.get_tracking_info.side_effect = TrackingProviderError(
            "carrier API down"
        )
        shop = await shop_factory(merchant_email="merchant@shop.com")
        await order_factory(
            shop=shop,
            status=OrderStatusEnum.FULFILLED,
            tracking_number="TRACK123",
            carrier_code="ups",
            created_at=now - timedelta(days=6),
        )
        await order_factory(shop=shop, created_at=now - timedelta(days=3))

        # When
        stats = await run_delay_checks(now=now)

        # Then
        assert stats.errors == 1
        assert stats.orders_checked == 1
        assert stats.delays_detected == 1

    async def test_orders_no_check_can_fire_on_do_not_fill_the_batch(
        self,
        uow: UnitOfWork,
        check_order_delay: CheckOrderDelayUseCase,
        shop_factory,
        order_factory,
        now: datetime,
    ):
        # Given - fulfilled without tracking: nothing left to detect
        shop = await shop_factory(merchant_email="merchant@shop.com")
        for _ in range(2):
            await order_factory(
                shop=shop,
                status=OrderStatusEnum.FULFILLED,
                created_at=now - timedelta(days=60),
            )
        late = await order_factory(shop=shop, created_at=now - timedelta(days=5))
        run_delay_checks = RunDelayChecksUseCase(
            unit_of_work=uow,
            check_order_delay=check_order_delay,
            concurrency=1,
            batch_size=2,
        )

        # When
        stats = await run_delay_checks(now=now)

        # Then
        assert stats.delays_detected == 1
        async with uow() as unit:
            alerts = await unit.alerts.list_for_order(late.id)
        assert [alert.delay_type for alert in alerts] == [DelayTypeEnum.WAREHOUSE_DELAY]

    async def test_batches_rotate_through_all_candidates(
        self,
        uow: UnitOfWork,
        check_order_delay: CheckOrderDelayUseCase,
        order_factory,
        now: datetime,
    ):
        # Given - open orders still within the warehouse threshold
        orders = [
            await order_factory(created_at=now - timedelta(hours=hours))
            for hours in (12, 8, 4)
        ]
        checked = []

        async def check_and_record(order_id: str, now: datetime | None = None):
            checked.append(order_id)
            return await check_order_delay(order_id, now=now)

        run_delay_checks = RunDelayChecksUseCase(
            unit_of_work=uow,
            check_order_delay=check_and_record,
            concurrency=1,
            batch_size=2,
        )

        # When
        await run_delay_checks(now=now)
        await run_delay_checks(now=now)

        # Then
        assert checked[:2] == [orders[0].id, orders[1].id]
        assert checked[2] == orders[2].id
        assert set(checked) == {order.id for order in orders}
