"""Unit tests for freezing and unfreezing employee orders."""

import datetime as dt

import pytest

from app.business.enums import OrderStatus
from app.business.errors import BusinessRuleError, ErrorCode, NotFoundError
from app.schemas.orders import BulkActionRequest
from app.services.order_freeze import OrderFreezeService, week_bounds
from app.services.order_management import OrderManagementService
from app.storage.models import AuditLog, LunchSubscription, Order


TUESDAY = dt.date(2026, 10, 20)
WEDNESDAY = dt.date(2026, 10, 21)
THURSDAY = dt.date(2026, 10, 22)


@pytest.fixture
def freezer(evaluator):
    return OrderFreezeService(evaluator=evaluator, max_freezes_per_week=2)


@pytest.mark.unit
class TestWeekBounds:

    def test_monday_to_sunday(self):
        assert week_bounds(THURSDAY) == (dt.date(2026, 10, 19), dt.date(2026, 10, 25))
        assert week_bounds(dt.date(2026, 10, 25)) == (dt.date(2026, 10, 19), dt.date(2026, 10, 25))


@pytest.mark.unit
class TestFreezeOrder:

    async def test_freeze_extends_subscription_with_replacement(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        subscription = await factory.create_lunch_subscription(employee, end_date=dt.date(2026, 10, 31))
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        async with session_factory() as db:
            result = await freezer.freeze_order(db, project.company_id, order.id, reason="Business trip", user_id=3)

        assert result.order.status == OrderStatus.FROZEN
        assert result.order.frozen_reason == "Business trip"
        assert result.replacement_order.date == dt.date(2026, 11, 1)
        assert result.replacement_order.status == OrderStatus.ACTIVE
        assert result.freezes_this_week == 1
        assert result.freezes_remaining == 1
        assert result.subscription_end_date == dt.date(2026, 11, 1)

        stored = await factory.get(Order, order.id)
        assert stored.status == OrderStatus.FROZEN.value
        assert stored.replacement_order_id == result.replacement_order.id
        assert (await factory.get(LunchSubscription, subscription.id)).end_date == dt.date(2026, 11, 1)
        assert await factory.count(AuditLog) == 1

    async def test_weekly_limit(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)
        orders = [
            await factory.create_order(project, employee, order_date=day)
            for day in (TUESDAY, WEDNESDAY, THURSDAY)
        ]

        for order in orders[:2]:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, order.id)

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, orders[2].id)

        assert exc_info.value.code == ErrorCode.FREEZE_LIMIT_EXCEEDED
        assert (await factory.get(Order, orders[2].id)).status == OrderStatus.ACTIVE.value

    async def test_guest_order_cannot_be_frozen(self, freezer, factory, session_factory):
        project = await factory.create_project()
        order = await factory.create_order(project, order_date=TUESDAY)

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.ORDER_GUEST_CANNOT_FREEZE

    async def test_requires_active_subscription(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.SUB_NOT_FOUND

    async def test_paused_order_cannot_be_frozen(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)
        order = await factory.create_order(project, employee, order_date=TUESDAY, status=OrderStatus.PAUSED)

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.ORDER_INVALID_TRANSITION

    async def test_today_after_cutoff_rejected(self, freezer, factory, session_factory):
        project = await factory.create_project(cutoff_time=dt.time(10, 30))
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee)
        order = await factory.create_order(project, employee, order_date=dt.date(2026, 10, 19))

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.freeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.ORDER_CUTOFF_PASSED

    async def test_open_ended_subscription_freezes_without_replacement(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_lunch_subscription(employee, end_date=None)
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        async with session_factory() as db:
            result = await freezer.freeze_order(db, project.company_id, order.id)

        assert result.replacement_order is None
        assert result.subscription_end_date is None
        assert len(await factory.orders(employee_id=employee.id)) == 1


@pytest.mark.unit
class TestUnfreezeOrder:

    async def test_unfreeze_reverts_extension(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        subscription = await factory.create_lunch_subscription(employee, end_date=dt.date(2026, 10, 31))
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        async with session_factory() as db:
            frozen = await freezer.freeze_order(db, project.company_id, order.id)
        async with session_factory() as db:
            result = await freezer.unfreeze_order(db, project.company_id, order.id)

        assert result.order.status == OrderStatus.ACTIVE
        assert result.freezes_this_week == 0
        assert await factory.get(Order, frozen.replacement_order.id) is None
        assert (await factory.get(LunchSubscription, subscription.id)).end_date == dt.date(2026, 10, 31)
        stored = await factory.get(Order, order.id)
        assert stored.frozen_reason is None
        assert stored.replacement_order_id is None

    async def test_unfreeze_requires_frozen_order(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.unfreeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.FREEZE_NOT_FROZEN

    async def test_bulk_resume_leaves_frozen_order_to_unfreeze(self, freezer, evaluator, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        subscription = await factory.create_lunch_subscription(employee, end_date=dt.date(2026, 10, 31))
        order = await factory.create_order(project, employee, order_date=TUESDAY)

        async with session_factory() as db:
            frozen = await freezer.freeze_order(db, project.company_id, order.id)
        async with session_factory() as db:
            result = await OrderManagementService(evaluator=evaluator).bulk_action(
                db, project.company_id, BulkActionRequest(order_ids=[order.id], action="resume")
            )

        assert result.updated_count == 0
        assert result.skip_reasons == ["Aziz Karimov: frozen orders are restored with unfreeze"]
        stored = await factory.get(Order, order.id)
        assert stored.status == OrderStatus.FROZEN.value
        assert stored.replacement_order_id == frozen.replacement_order.id
        assert (await factory.get(LunchSubscription, subscription.id)).end_date == dt.date(2026, 11, 1)

        async with session_factory() as db:
            await freezer.unfreeze_order(db, project.company_id, order.id)

        assert (await factory.get(Order, order.id)).status == OrderStatus.ACTIVE.value
        assert await factory.get(Order, frozen.replacement_order.id) is None
        assert (await factory.get(LunchSubscription, subscription.id)).end_date == dt.date(2026, 10, 31)

    async def test_unfreeze_refuses_settled_replacement(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        replacement = await factory.create_order(
            project, employee, order_date=dt.date(2026, 10, 19), status=OrderStatus.COMPLETED
        )
        order = await factory.create_order(
            project, employee, order_date=TUESDAY, status=OrderStatus.FROZEN,
            replacement_order_id=replacement.id
        )

        with pytest.raises(BusinessRuleError) as exc_info:
            async with session_factory() as db:
                await freezer.unfreeze_order(db, project.company_id, order.id)

        assert exc_info.value.code == ErrorCode.ORDER_INVALID_TRANSITION


@pytest.mark.unit
class TestFreezeInfo:

    async def test_reports_weekly_usage(self, freezer, factory, session_factory):
        project = await factory.create_project()
        employee = await factory.create_employee(project)
        await factory.create_order(project, employee, order_date=TUESDAY, status=OrderStatus.FROZEN)
        await factory.create_order(project, employee, order_date=dt.date(2026, 10, 12), status=OrderStatus.FROZEN)

        async with session_factory() as db:
            info = await freezer.get_employee_freeze_info(db, project.company_id, employee.id)

        assert info.freezes_this_week == 1
        assert info.freezes_remaining == 1
        assert info.max_freezes_per_week == 2
        assert [o.date for o in info.frozen_orders] == [TUESDAY, dt.date(2026, 10, 12)]

    async def test_unknown_employee(self, freezer, session_factory):
        with pytest.raises(NotFoundError) as exc_info:
            async with session_factory() as db:
                await freezer.get_employee_freeze_info(db, 1, 999)

        assert exc_info.value.code == ErrorCode.EMP_NOT_FOUND
