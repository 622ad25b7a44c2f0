"""Unit tests for subscription order generation."""

import datetime as dt
from decimal import Decimal

import pytest

from app.business.enums import OrderStatus, ScheduleType, SubscriptionStatus
from app.services.cutoff import CutoffEvaluator, FixedClock
from app.services.order_generation import (
    DailyOrderGenerationService,
    day_number,
    matches_schedule,
)


MONDAY = dt.date(2026, 10, 19)
TUESDAY = dt.date(2026, 10, 20)
SATURDAY = dt.date(2026, 10, 24)


def generation_at(session_factory, instant: dt.datetime) -> DailyOrderGenerationService:
    return DailyOrderGenerationService(
        session_factory=session_factory,
        evaluator=CutoffEvaluator(clock=FixedClock(instant)),
    )


@pytest.fixture
def generation(session_factory, evaluator):
    return DailyOrderGenerationService(session_factory=session_factory, evaluator=evaluator)


@pytest.mark.unit
class TestScheduleRules:

    def test_day_number_is_sunday_based(self):
        assert day_number(dt.date(2026, 10, 18)) == 0
        assert day_number(MONDAY) == 1
        assert day_number(SATURDAY) == 6

    def test_every_day_uses_default_working_days(self):
        assert matches_schedule("EVERY_DAY", None, MONDAY)
        assert not matches_schedule("EVERY_DAY", [], SATURDAY)

    def test_every_day_honours_custom_working_days(self):
        assert matches_schedule("EVERY_DAY", [6], SATURDAY)
        assert not matches_schedule("EVERY_DAY", [6], MONDAY)

    def test_every_other_day_is_mon_wed_fri(self):
        assert matches_schedule("EVERY_OTHER_DAY", None, MONDAY)
        assert not matches_schedule("EVERY_OTHER_DAY", None, TUESDAY)
        # Wednesday outside the employee's working days
        assert not matches_schedule("EVERY_OTHER_DAY", [1, 2, 4, 5], dt.date(2026, 10, 21))

    def test_custom_never_matches(self):
        assert not matches_schedule("CUSTOM", None, MONDAY)

    def test_unknown_schedule_treated_as_every_day(self):
        assert matches_schedule("WEEKDAYS", None, TUESDAY)


@pytest.mark.unit
class TestDailyOrderGeneration:

    async def test_creates_orders_without_budget_change(self, generation, factory):
        project = await factory.create_project(budget="1000.00")
        aziz = await factory.create_employee(project, full_name="Aziz Karimov")
        zarina = await factory.create_employee(project, full_name="Zarina Aliyeva")
        await factory.create_lunch_subscription(aziz, combo_type="Combo 25")
        await factory.create_lunch_subscription(zarina, combo_type="Combo 35")

        summary = await generation.generate_all()

        assert summary.orders_created == 2
        assert summary.accumulated_cost == Decimal("60.00")
        orders = await factory.orders(project_id=project.id)
        assert {o.employee_id for o in orders} == {aziz.id, zarina.id}
        assert all(o.status == OrderStatus.ACTIVE.value for o in orders)
        assert all(o.order_date == dt.datetime(2026, 10, 19) for o in orders)
        assert await factory.project_budget(project.id) == Decimal("1000.00")
        assert await factory.ledger(project.id) == []

    async def test_rerun_creates_no_duplicates(self, generation, factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)

        first = await generation.generate_all()
        second = await generation.generate_all()

        assert first.orders_created == 1
        assert second.orders_created == 0
        assert second.results[0].subscriptions_skipped == 1
        assert len(await factory.orders(employee_id=employee.id)) == 1

    async def test_existing_manual_order_blocks_generation(self, generation, factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)
        await factory.create_order(project, employee, order_date=MONDAY, status=OrderStatus.CANCELLED)

        summary = await generation.generate_all()

        assert summary.orders_created == 0

    async def test_waits_for_cutoff(self, session_factory, factory):
        project = await factory.create_project(cutoff_time=dt.time(10, 30))
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)

        early = await generation_at(session_factory, dt.datetime(2026, 10, 19, 10, 30)).generate_all()

        assert early.results[0].skipped_reason == "before cutoff"
        assert await factory.orders() == []

    async def test_schedule_and_subscription_filters(self, session_factory, factory):
        project = await factory.create_project()
        custom = await factory.create_employee(project, full_name="Custom Schedule")
        alternate = await factory.create_employee(project, full_name="Every Other Day")
        expired = await factory.create_employee(project, full_name="Expired")
        paused = await factory.create_employee(project, full_name="Paused")
        inactive = await factory.create_employee(project, full_name="Inactive", is_active=False)
        await factory.create_lunch_subscription(custom, schedule_type=ScheduleType.CUSTOM)
        await factory.create_lunch_subscription(alternate, schedule_type=ScheduleType.EVERY_OTHER_DAY)
        await factory.create_lunch_subscription(expired, end_date=dt.date(2026, 10, 15))
        await factory.create_lunch_subscription(paused, status=SubscriptionStatus.PAUSED)
        await factory.create_lunch_subscription(inactive)

        tuesday = generation_at(session_factory, dt.datetime(2026, 10, 20, 12, 0))
        summary = await tuesday.generate_all()

        assert summary.orders_created == 0
        assert summary.results[0].subscriptions_skipped == 2

    async def test_no_subscriptions(self, generation, factory):
        await factory.create_project()

        summary = await generation.generate_all()

        assert summary.results[0].skipped_reason == "no active subscriptions"

    async def test_bad_timezone_isolated(self, generation, factory):
        broken = await factory.create_project(timezone="Nowhere/Land")
        healthy = await factory.create_project()
        employee = await factory.create_employee(healthy)
        await factory.create_lunch_subscription(employee)

        summary = await generation.generate_all()

        assert summary.projects_failed == 1
        assert summary.failures[0].startswith(f"project {broken.id}:")
        assert summary.orders_created == 1

    async def test_soft_deleted_employee_gets_no_order(self, generation, factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project, deleted_at=dt.datetime(2026, 10, 1))
        await factory.create_lunch_subscription(employee)

        summary = await generation.generate_all()

        assert summary.orders_created == 0
        assert summary.results[0].skipped_reason == "no active subscriptions"
        assert await factory.orders() == []
