# ==== ORDER FREEZE SERVICE ==== #

"""
Employee order freezing.

Freezing skips one subscription meal without losing it: the order becomes
FROZEN, the employee's lunch subscription is extended by a day and a
replacement order is scheduled on the new last day. Unfreezing reverses all
three. Each employee may freeze a limited number of orders per week.
"""

import datetime as dt
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business import order_state_machine as state_machine
from app.business.enums import OrderKind, OrderStatus, SubscriptionStatus
from app.business.errors import BusinessRuleError, ErrorCode, NotFoundError
from app.observability.logging import get_logger
from app.observability.metrics import orders_created_total
from app.observability.tracing import get_tracer
from app.schemas.orders import EmployeeFreezeInfo, FreezeResult
from app.services.audit import AuditLogWriter
from app.services.cutoff import CutoffEvaluator
from app.services.order_management import order_to_response
from app.settings import settings
from app.storage.models import Employee, LunchSubscription, Order, to_order_date


tracer = get_tracer(__name__)
logger = get_logger(__name__)


def week_bounds(day: dt.date) -> Tuple[dt.date, dt.date]:
    """Monday and Sunday of the week containing ``day``."""
    start = day - dt.timedelta(days=day.weekday())
    return start, start + dt.timedelta(days=6)


class OrderFreezeService:
    """Freeze and unfreeze employee subscription orders."""

    def __init__(
        self,
        evaluator: Optional[CutoffEvaluator] = None,
        audit: Optional[AuditLogWriter] = None,
        max_freezes_per_week: Optional[int] = None
    ):
        self.evaluator = evaluator or CutoffEvaluator()
        self.audit = audit or AuditLogWriter()
        self.max_freezes_per_week = max_freezes_per_week or settings.MAX_FREEZES_PER_WEEK

    # ==== FREEZE ==== #

    async def freeze_order(
        self,
        db: AsyncSession,
        company_id: int,
        order_id: int,
        reason: Optional[str] = None,
        user_id: Optional[int] = None
    ) -> FreezeResult:
        """
        Freeze an ACTIVE employee order and schedule its replacement.

        Args:
            db (AsyncSession): Database session
            company_id (int): Tenant company
            order_id (int): Order to freeze
            reason (Optional[str]): Free-text reason shown to admins
            user_id (Optional[int]): Acting admin, for the audit trail

        Returns:
            FreezeResult: Frozen order, replacement and weekly usage

        Raises:
            NotFoundError: Order absent or owned by another company
            BusinessRuleError: Guest order, wrong status, past date, cutoff
                passed, weekly limit reached or no active subscription
        """
        with tracer.start_as_current_span("freeze_order") as span:
            span.set_attribute("order_id", order_id)

            order = await self._load_order(db, company_id, order_id)
            if order.kind == OrderKind.GUEST:
                raise BusinessRuleError(
                    ErrorCode.ORDER_GUEST_CANNOT_FREEZE,
                    "Guest orders cannot be frozen",
                    {"order_id": order_id},
                )

            current = OrderStatus(order.status)
            state_machine.transition(current, OrderStatus.FROZEN)
            self._check_date_window(order)

            order_day = order.order_date.date()
            used = await self._freezes_in_week(db, order.employee_id, order_day)
            if used >= self.max_freezes_per_week:
                raise BusinessRuleError(
                    ErrorCode.FREEZE_LIMIT_EXCEEDED,
                    f"Freeze limit reached ({self.max_freezes_per_week} per week)",
                    {"employee_id": order.employee_id, "used": used},
                )

            subscription = await self._active_subscription(db, order.employee_id)
            if subscription is None:
                raise BusinessRuleError(
                    ErrorCode.SUB_NOT_FOUND,
                    "Employee has no active lunch subscription",
                    {"employee_id": order.employee_id},
                )

            order.status = OrderStatus.FROZEN.value
            order.frozen_at = self.evaluator.clock.now().replace(tzinfo=None)
            order.frozen_reason = reason
            order.updated_at = order.frozen_at

            # --► EXTEND SUBSCRIPTION AND SCHEDULE REPLACEMENT
            replacement = None
            if subscription.end_date is not None:
                subscription.end_date = subscription.end_date + dt.timedelta(days=1)
                replacement = Order(
                    company_id=order.company_id,
                    project_id=order.project_id,
                    employee_id=order.employee_id,
                    combo_type=order.combo_type,
                    price=order.price,
                    currency_code=order.currency_code,
                    status=OrderStatus.ACTIVE.value,
                    order_date=to_order_date(subscription.end_date),
                    is_guest_order=False,
                    employee=order.employee,
                    project=order.project,
                )
                db.add(replacement)
                await db.flush()
                order.replacement_order_id = replacement.id
                orders_created_total.labels(kind=OrderKind.LUNCH.value, origin="freeze").inc()

            await db.flush()

            self.audit.log(
                db, user_id, "order.freeze", "Order", order.id,
                old_values={"status": current.value},
                new_values={"status": order.status, "replacement_order_id": order.replacement_order_id},
            )
            logger.info(
                "Order frozen",
                order_id=order.id,
                employee_id=order.employee_id,
                replacement_order_id=order.replacement_order_id,
                subscription_end_date=str(subscription.end_date)
            )

            return FreezeResult(
                order=order_to_response(order),
                replacement_order=order_to_response(replacement) if replacement is not None else None,
                freezes_this_week=used + 1,
                freezes_remaining=max(0, self.max_freezes_per_week - used - 1),
                subscription_end_date=subscription.end_date,
            )

    # ==== UNFREEZE ==== #

    async def unfreeze_order(
        self,
        db: AsyncSession,
        company_id: int,
        order_id: int,
        user_id: Optional[int] = None
    ) -> FreezeResult:
        """Return a FROZEN order to ACTIVE and drop its replacement."""
        with tracer.start_as_current_span("unfreeze_order") as span:
            span.set_attribute("order_id", order_id)

            order = await self._load_order(db, company_id, order_id)
            current = OrderStatus(order.status)
            if current != OrderStatus.FROZEN:
                raise BusinessRuleError(
                    ErrorCode.FREEZE_NOT_FROZEN,
                    "Only frozen orders can be unfrozen",
                    {"order_id": order_id, "status": current.value},
                )
            self._check_date_window(order)

            if order.replacement_order_id is not None:
                replacement = await db.get(Order, order.replacement_order_id)
                if replacement is not None:
                    if state_machine.is_terminal(OrderStatus(replacement.status)):
                        raise BusinessRuleError(
                            ErrorCode.ORDER_INVALID_TRANSITION,
                            "The replacement order was already settled or cancelled",
                            {"replacement_order_id": replacement.id},
                        )
                    await db.delete(replacement)

            subscription = await self._active_subscription(db, order.employee_id)
            if subscription is not None and subscription.end_date is not None and order.replacement_order_id is not None:
                subscription.end_date = subscription.end_date - dt.timedelta(days=1)

            order.status = state_machine.transition(current, OrderStatus.ACTIVE, unfreeze=True).value
            order.frozen_at = None
            order.frozen_reason = None
            order.replacement_order_id = None
            order.updated_at = self.evaluator.clock.now().replace(tzinfo=None)
            await db.flush()

            used = await self._freezes_in_week(db, order.employee_id, order.order_date.date())

            self.audit.log(
                db, user_id, "order.unfreeze", "Order", order.id,
                old_values={"status": current.value},
                new_values={"status": order.status},
            )
            logger.info("Order unfrozen", order_id=order.id, employee_id=order.employee_id)

            return FreezeResult(
                order=order_to_response(order),
                replacement_order=None,
                freezes_this_week=used,
                freezes_remaining=max(0, self.max_freezes_per_week - used),
                subscription_end_date=subscription.end_date if subscription is not None else None,
            )

    # ==== INFO ==== #

    async def get_employee_freeze_info(
        self,
        db: AsyncSession,
        company_id: int,
        employee_id: int
    ) -> EmployeeFreezeInfo:
        """Freezes used this week (UTC) and the employee's recent frozen orders."""
        employee = (await db.execute(
            select(Employee).where(Employee.id == employee_id, Employee.company_id == company_id)
        )).scalar_one_or_none()
        if employee is None:
            raise NotFoundError.entity("Employee", employee_id, ErrorCode.EMP_NOT_FOUND)

        today = self.evaluator.clock.now().date()
        used = await self._freezes_in_week(db, employee_id, today)

        result = await db.execute(
            select(Order)
            .where(Order.employee_id == employee_id, Order.status == OrderStatus.FROZEN.value)
            .options(selectinload(Order.employee), selectinload(Order.project))
            .order_by(Order.order_date.desc())
            .limit(10)
        )
        frozen: List[Order] = list(result.scalars().all())

        return EmployeeFreezeInfo(
            employee_id=employee_id,
            freezes_this_week=used,
            freezes_remaining=max(0, self.max_freezes_per_week - used),
            max_freezes_per_week=self.max_freezes_per_week,
            frozen_orders=[order_to_response(o) for o in frozen],
        )

    # ==== HELPERS ==== #

    async def _load_order(self, db: AsyncSession, company_id: int, order_id: int) -> Order:
        order = (await db.execute(
            select(Order)
            .where(Order.id == order_id, Order.company_id == company_id)
            .options(selectinload(Order.employee), selectinload(Order.project))
            .with_for_update(of=Order)
        )).scalar_one_or_none()
        if order is None:
            raise NotFoundError.entity("Order", order_id, ErrorCode.ORDER_NOT_FOUND)
        return order

    def _check_date_window(self, order: Order) -> None:
        project = order.project
        if project is None:
            return
        if self.evaluator.is_past_date(order.order_date, project.timezone):
            raise BusinessRuleError(
                ErrorCode.ORDER_PAST_DATE_NOT_ALLOWED,
                "Orders for past dates cannot be frozen or unfrozen",
                {"order_id": order.id},
            )
        if self.evaluator.is_locked_for_today(order.order_date, project.cutoff_time, project.timezone):
            raise BusinessRuleError.cutoff_passed(project.cutoff_time, order.order_date.date())

    @staticmethod
    async def _freezes_in_week(db: AsyncSession, employee_id: int, day: dt.date) -> int:
        week_start, week_end = week_bounds(day)
        result = await db.execute(
            select(func.count(Order.id)).where(
                Order.employee_id == employee_id,
                Order.status == OrderStatus.FROZEN.value,
                Order.order_date >= to_order_date(week_start),
                Order.order_date < to_order_date(week_end + dt.timedelta(days=1)),
            )
        )
        return int(result.scalar_one())

    @staticmethod
    async def _active_subscription(db: AsyncSession, employee_id: int) -> Optional[LunchSubscription]:
        result = await db.execute(
            select(LunchSubscription)
            .where(
                LunchSubscription.employee_id == employee_id,
                LunchSubscription.is_active.is_(True),
                LunchSubscription.status == SubscriptionStatus.ACTIVE.value,
            )
            .order_by(LunchSubscription.id)
            .limit(1)
        )
        return result.scalar_one_or_none()
