"""Unit tests for the daily settlement job."""

import datetime as dt
from decimal import Decimal

import pytest

from app.business.enums import OrderStatus, ProjectStatus, TransactionType
from app.services.cutoff import CutoffEvaluator, FixedClock, TimezoneResolver
from app.services.settlement import DailySettlementService, settlement_description


TODAY = dt.date(2026, 10, 19)


def settlement_at(session_factory, instant: dt.datetime) -> DailySettlementService:
    evaluator = CutoffEvaluator(clock=FixedClock(instant), tz_resolver=TimezoneResolver(fallback="UTC"))
    return DailySettlementService(session_factory=session_factory, evaluator=evaluator)


@pytest.fixture
def settlement(session_factory, evaluator):
    return DailySettlementService(session_factory=session_factory, evaluator=evaluator)


@pytest.mark.unit
class TestSettlementDescription:

    @pytest.mark.parametrize("employees,guests,expected", [
        (2, 1, "2 employees, 1 guest"),
        (1, 0, "1 employee"),
        (0, 3, "3 guests"),
    ])
    def test_description(self, employees, guests, expected):
        assert settlement_description(employees, guests) == expected


@pytest.mark.unit
class TestDailySettlement:

    async def test_settles_active_orders_with_one_debit(self, settlement, factory):
        project = await factory.create_project(budget="1000.00")
        aziz = await factory.create_employee(project, full_name="Aziz Karimov")
        zarina = await factory.create_employee(project, full_name="Zarina Aliyeva")
        orders = [
            await factory.create_order(project, aziz, order_date=TODAY),
            await factory.create_order(project, zarina, order_date=TODAY),
            await factory.create_order(project, order_date=TODAY, combo_type="Combo 35", price="35.00"),
        ]

        summary = await settlement.settle_all()

        assert summary.projects_settled == 1
        assert summary.orders_completed == 3
        assert summary.total_amount == Decimal("85.00")
        assert summary.results[0].balance_after == Decimal("915.00")
        assert await factory.project_budget(project.id) == Decimal("915.00")

        stored = await factory.orders(project_id=project.id)
        assert [o.status for o in stored] == [OrderStatus.COMPLETED.value] * len(orders)

        ledger = await factory.ledger(project.id)
        assert len(ledger) == 1
        assert ledger[0].type == TransactionType.LUNCH_DEDUCTION.value
        assert ledger[0].amount == Decimal("-85.00")
        assert ledger[0].order_id is None
        assert ledger[0].description == "Daily settlement 2026-10-19: 2 employees, 1 guest"

    async def test_second_run_is_a_no_op(self, settlement, factory):
        project = await factory.create_project(budget="1000.00")
        await factory.create_order(project, order_date=TODAY)

        await settlement.settle_all()
        second = await settlement.settle_all()

        assert second.projects_settled == 0
        assert second.results[0].skipped_reason == "no active orders"
        assert await factory.project_budget(project.id) == Decimal("975.00")
        assert len(await factory.ledger(project.id)) == 1

    async def test_only_todays_active_orders(self, settlement, factory):
        project = await factory.create_project(budget="1000.00")
        await factory.create_order(project, order_date=TODAY, status=OrderStatus.PAUSED)
        await factory.create_order(project, order_date=TODAY, status=OrderStatus.FROZEN)
        await factory.create_order(project, order_date=TODAY, status=OrderStatus.CANCELLED)
        await factory.create_order(project, order_date=dt.date(2026, 10, 20))
        settled = await factory.create_order(project, order_date=TODAY, combo_type="Combo 35", price="35.00")

        summary = await settlement.settle_all()

        assert summary.orders_completed == 1
        assert await factory.project_budget(project.id) == Decimal("965.00")
        completed = await factory.orders(status=OrderStatus.COMPLETED.value)
        assert [o.id for o in completed] == [settled.id]

    async def test_waits_for_cutoff(self, session_factory, factory):
        project = await factory.create_project(
            budget="1000.00", timezone="Asia/Dushanbe", cutoff_time=dt.time(11, 0)
        )
        await factory.create_order(project, order_date=TODAY)

        early = await settlement_at(session_factory, dt.datetime(2026, 10, 19, 6, 0)).settle_all()
        assert early.results[0].skipped_reason == "before cutoff"
        assert await factory.project_budget(project.id) == Decimal("1000.00")

        late = await settlement_at(session_factory, dt.datetime(2026, 10, 19, 6, 1)).settle_all()
        assert late.projects_settled == 1
        assert await factory.project_budget(project.id) == Decimal("975.00")

    async def test_settlement_overdraws_budget(self, settlement, factory):
        project = await factory.create_project(budget="10.00")
        await factory.create_order(project, order_date=TODAY)

        summary = await settlement.settle_all()

        assert summary.projects_settled == 1
        assert await factory.project_budget(project.id) == Decimal("-15.00")

    async def test_bad_timezone_isolated(self, settlement, factory):
        broken = await factory.create_project(name="Broken", timezone="Mars/Olympus_Mons")
        healthy = await factory.create_project(name="Healthy", budget="100.00")
        await factory.create_order(broken, order_date=TODAY)
        await factory.create_order(healthy, order_date=TODAY)

        summary = await settlement.settle_all()

        assert summary.projects_checked == 2
        assert summary.projects_failed == 1
        assert summary.projects_settled == 1
        assert summary.failures[0].startswith(f"project {broken.id}:")
        assert await factory.project_budget(healthy.id) == Decimal("75.00")
        assert await factory.project_budget(broken.id) == Decimal("1000.00")

    async def test_blank_timezone_uses_fallback(self, settlement, factory):
        project = await factory.create_project(timezone="")
        await factory.create_order(project, order_date=TODAY)

        summary = await settlement.settle_all()

        assert summary.projects_settled == 1

    async def test_inactive_projects_skipped(self, settlement, factory):
        blocked = await factory.create_project(status=ProjectStatus.BLOCKED.value)
        deleted = await factory.create_project(deleted_at=dt.datetime(2026, 10, 1))
        await factory.create_order(blocked, order_date=TODAY)
        await factory.create_order(deleted, order_date=TODAY)

        summary = await settlement.settle_all()

        assert summary.projects_checked == 0
        assert await factory.orders(status=OrderStatus.COMPLETED.value) == []
