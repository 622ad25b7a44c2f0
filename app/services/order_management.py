# ==== ORDER MANAGEMENT SERVICE ==== #

"""
Interactive order operations for the admin dashboard.

This module lists orders, creates guest orders, assigns meals to employees
and applies bulk actions. Each public call runs on the caller's session as
one unit of work: a raised error means the caller rolls back and nothing is
persisted. Project budgets are not debited here when orders are created;
the daily settlement is the only place that debits delivered orders.
"""

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, case, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business import order_state_machine as state_machine
from app.business.enums import (
    BulkAction,
    OrderKind,
    OrderStatus,
    ServiceType,
    TransactionType,
    display_label,
    parse_order_status,
)
from app.business.errors import (
    AppError,
    BusinessRuleError,
    ConfigurationError,
    ErrorCode,
    NotFoundError,
)
from app.observability.logging import get_logger
from app.observability.metrics import (
    bulk_actions_total,
    order_rejections_total,
    orders_created_total,
)
from app.observability.tracing import get_tracer
from app.schemas.orders import (
    AssignMealsRequest,
    AssignMealsResult,
    BulkActionRequest,
    BulkActionResult,
    CreateGuestOrderRequest,
    CreateGuestOrderResult,
    OrderFilters,
    OrderResponse,
    PagedResult,
)
from app.services import pricing
from app.services.audit import AuditLogWriter
from app.services.budget import BudgetService
from app.services.cutoff import CutoffEvaluator
from app.settings import settings
from app.storage.models import (
    CompensationTransaction,
    Employee,
    LunchSubscription,
    Order,
    Project,
    to_order_date,
    utcnow,
)


tracer = get_tracer(__name__)
logger = get_logger(__name__)


# ==== RESPONSE MAPPING ==== #


def _project_address(project: Optional[Project]) -> str:
    if project is None:
        return ""
    return project.address_full_address or project.address_name or ""


def order_to_response(order: Order) -> OrderResponse:
    """Map an order with ``employee`` and ``project`` loaded."""
    status = OrderStatus(order.status)
    employee = order.employee
    return OrderResponse(
        id=order.id,
        kind=order.kind,
        employee_id=order.employee_id,
        name=order.display_name or ("Guest" if order.is_guest_order else "Employee"),
        employee_phone=employee.phone if employee is not None else None,
        date=order.order_date.date(),
        status=status,
        status_label=display_label(status),
        project_id=order.project_id,
        address=_project_address(order.project),
        service_type=ServiceType.LUNCH,
        combo_type=order.combo_type,
        amount=order.price,
        currency_code=order.currency_code,
        is_guest_order=order.is_guest_order,
        frozen_reason=order.frozen_reason,
    )


def compensation_to_response(record: CompensationTransaction) -> OrderResponse:
    employee = record.employee
    return OrderResponse(
        id=record.id,
        kind=OrderKind.COMPENSATION,
        employee_id=record.employee_id,
        name=employee.full_name if employee is not None else "Employee",
        employee_phone=employee.phone if employee is not None else None,
        date=record.transaction_date.date(),
        status=OrderStatus.COMPLETED,
        status_label=display_label(OrderStatus.COMPLETED),
        project_id=record.project_id,
        address=record.restaurant_name or "",
        service_type=ServiceType.COMPENSATION,
        combo_type=None,
        amount=record.total_amount,
        currency_code=record.project.currency_code if record.project is not None else settings.DEFAULT_CURRENCY,
        restaurant_name=record.restaurant_name,
    )


def _listing_name():
    """SQL twin of ``OrderResponse.name`` for lunch orders."""
    return case(
        (Order.is_guest_order.is_(True), func.coalesce(func.nullif(Order.guest_name, ""), "Guest")),
        else_=func.coalesce(Employee.full_name, "Employee"),
    )


# ==== ORDER MANAGEMENT SERVICE CLASS ==== #


class OrderManagementService:
    """
    Request-facing order operations with budget and cutoff enforcement.

    Per-item problems in bulk calls become skip reasons; batch-level
    preconditions (the cutoff precheck) raise and abort everything.
    """

    def __init__(
        self,
        evaluator: Optional[CutoffEvaluator] = None,
        budget_service: Optional[BudgetService] = None,
        audit: Optional[AuditLogWriter] = None
    ):
        self.evaluator = evaluator or CutoffEvaluator()
        self.budget_service = budget_service or BudgetService()
        self.audit = audit or AuditLogWriter()

    # ==== LISTING ==== #

    async def list_orders(
        self,
        db: AsyncSession,
        company_id: int,
        filters: Optional[OrderFilters] = None,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> PagedResult[OrderResponse]:
        """
        List lunch orders and compensation records as one sorted, paged feed.

        Both sources are merged when the service type filter does not pick a
        single one (a ``guest`` type filter implies lunch only). Ordering is
        date descending, then name ascending, over the merged set.

        Args:
            db (AsyncSession): Database session
            company_id (int): Tenant company
            filters (Optional[OrderFilters]): Listing filters
            page (int): 1-based page number
            page_size (Optional[int]): Page size, capped at ``MAX_PAGE_SIZE``

        Returns:
            PagedResult[OrderResponse]: Page of rows plus total count
        """
        filters = filters or OrderFilters()
        page = max(page, 1)
        page_size = min(max(page_size or settings.DEFAULT_PAGE_SIZE, 1), settings.MAX_PAGE_SIZE)

        service_filter = (filters.service_type or "").upper()
        type_filter = (filters.type or "").lower()
        include_lunch = not service_filter or service_filter == ServiceType.LUNCH.value
        include_compensation = (
            (not service_filter or service_filter == ServiceType.COMPENSATION.value)
            and type_filter != "guest"
        )

        with tracer.start_as_current_span("list_orders") as span:
            span.set_attribute("company_id", company_id)
            span.set_attribute("include_lunch", include_lunch)
            span.set_attribute("include_compensation", include_compensation)

            # --► LUNCH ONLY: paginate in SQL
            if include_lunch and not include_compensation:
                return await self._list_lunch_page(db, company_id, filters, page, page_size)

            rows: List[OrderResponse] = []
            if include_lunch:
                result = await db.execute(
                    self._lunch_query(company_id, filters).options(
                        selectinload(Order.employee), selectinload(Order.project)
                    )
                )
                rows.extend(order_to_response(o) for o in result.scalars().all())

            if include_compensation:
                rows.extend(await self._list_compensation(db, company_id, filters))

            # --► MERGED: same ordering as the SQL path
            rows.sort(key=lambda r: (r.name.lower(), r.kind.value, r.id))
            rows.sort(key=lambda r: r.date, reverse=True)

            offset = (page - 1) * page_size
            return PagedResult[OrderResponse](
                items=rows[offset:offset + page_size],
                total=len(rows),
                page=page,
                page_size=page_size,
            )

    def _lunch_query(self, company_id: int, filters: OrderFilters):
        query = (
            select(Order)
            .outerjoin(Employee, Order.employee_id == Employee.id)
            .where(Order.company_id == company_id)
        )

        if filters.project_id is not None:
            query = query.where(Order.project_id == filters.project_id)
        if filters.address_id is not None:
            query = query.where(Order.project_id == filters.address_id)

        if filters.status:
            status = parse_order_status(filters.status)
            query = query.where(Order.status == status.value) if status else query.where(false())

        if filters.date is not None:
            start, end = CutoffEvaluator.utc_day_bounds(filters.date)
            query = query.where(Order.order_date >= start, Order.order_date < end)

        if filters.type:
            if filters.type.lower() == "guest":
                query = query.where(Order.is_guest_order.is_(True))
            elif filters.type.lower() == "employee":
                query = query.where(Order.is_guest_order.is_(False))

        if filters.combo_type:
            query = query.where(Order.combo_type == filters.combo_type)

        if filters.search:
            needle = f"%{filters.search.lower()}%"
            query = query.where(or_(
                func.lower(Employee.full_name).like(needle),
                func.lower(Order.guest_name).like(needle),
            ))

        return query

    async def _list_lunch_page(
        self,
        db: AsyncSession,
        company_id: int,
        filters: OrderFilters,
        page: int,
        page_size: int
    ) -> PagedResult[OrderResponse]:
        base = self._lunch_query(company_id, filters)

        total = (await db.execute(
            select(func.count()).select_from(base.subquery())
        )).scalar_one()

        result = await db.execute(
            base.options(selectinload(Order.employee), selectinload(Order.project))
            .order_by(
                Order.order_date.desc(),
                func.lower(_listing_name()).asc(),
                Order.is_guest_order.desc(),
                Order.id.asc(),
            )
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        return PagedResult[OrderResponse](
            items=[order_to_response(o) for o in result.scalars().all()],
            total=total,
            page=page,
            page_size=page_size,
        )

    async def _list_compensation(
        self,
        db: AsyncSession,
        company_id: int,
        filters: OrderFilters
    ) -> List[OrderResponse]:
        # Compensation records are always completed and carry no combo
        if filters.combo_type:
            return []
        if filters.status and parse_order_status(filters.status) != OrderStatus.COMPLETED:
            return []

        query = (
            select(CompensationTransaction)
            .join(Project, CompensationTransaction.project_id == Project.id)
            .join(Employee, CompensationTransaction.employee_id == Employee.id)
            .where(Project.company_id == company_id)
            .options(
                selectinload(CompensationTransaction.employee),
                selectinload(CompensationTransaction.project),
            )
        )

        if filters.project_id is not None:
            query = query.where(CompensationTransaction.project_id == filters.project_id)
        if filters.address_id is not None:
            query = query.where(CompensationTransaction.project_id == filters.address_id)
        if filters.date is not None:
            start, end = CutoffEvaluator.utc_day_bounds(filters.date)
            query = query.where(
                CompensationTransaction.transaction_date >= start,
                CompensationTransaction.transaction_date < end,
            )
        if filters.search:
            query = query.where(func.lower(Employee.full_name).like(f"%{filters.search.lower()}%"))

        result = await db.execute(query)
        return [compensation_to_response(r) for r in result.scalars().all()]

    # ==== GUEST ORDERS ==== #

    async def create_guest_order(
        self,
        db: AsyncSession,
        company_id: int,
        request: CreateGuestOrderRequest,
        user_id: Optional[int] = None
    ) -> CreateGuestOrderResult:
        """
        Create ``quantity`` guest orders for one project and date.

        Preconditions are checked in order: project exists for the company,
        budget plus overdraft covers the total, the date is not past, and for
        today the cutoff has not passed. The budget is debited later by the
        daily settlement.

        Args:
            db (AsyncSession): Database session
            company_id (int): Tenant company
            request (CreateGuestOrderRequest): Guest order details
            user_id (Optional[int]): Acting admin, for the audit trail

        Returns:
            CreateGuestOrderResult: Created orders and their total cost

        Raises:
            NotFoundError: Project absent or owned by another company
            BusinessRuleError: Budget insufficient, past date or cutoff passed
            ConfigurationError: Project timezone cannot be resolved
        """
        with tracer.start_as_current_span("create_guest_order") as span:
            span.set_attribute("company_id", company_id)
            span.set_attribute("project_id", request.project_id)
            span.set_attribute("quantity", request.quantity)

            try:
                project = (await db.execute(
                    select(Project)
                    .where(
                        Project.id == request.project_id,
                        Project.company_id == company_id,
                        Project.deleted_at.is_(None),
                    )
                    .with_for_update()
                )).scalar_one_or_none()
                if project is None:
                    raise NotFoundError.entity("Project", request.project_id, ErrorCode.PROJ_NOT_FOUND)

                price = pricing.price(request.combo_type)
                total_cost = price * request.quantity

                if project.available_budget < total_cost:
                    raise BusinessRuleError.budget_insufficient(
                        total_cost, project.available_budget, project.currency_code
                    )

                if self.evaluator.is_past_date(request.date, project.timezone):
                    raise BusinessRuleError(
                        ErrorCode.ORDER_PAST_DATE_NOT_ALLOWED,
                        "Orders cannot be created for a past date",
                        {"date": request.date.isoformat()},
                    )

                if (
                    self.evaluator.is_today(request.date, project.timezone)
                    and self.evaluator.is_cutoff_passed(project.cutoff_time, project.timezone)
                ):
                    raise BusinessRuleError.cutoff_passed(project.cutoff_time, request.date)

            except AppError as e:
                order_rejections_total.labels(operation="create_guest_order", code=e.code.value).inc()
                raise

            order_date = to_order_date(request.date)
            orders = [
                Order(
                    company_id=company_id,
                    project_id=project.id,
                    project=project,
                    employee=None,
                    guest_name=request.order_name,
                    combo_type=request.combo_type,
                    price=price,
                    currency_code=project.currency_code,
                    status=OrderStatus.ACTIVE.value,
                    order_date=order_date,
                    is_guest_order=True,
                )
                for _ in range(request.quantity)
            ]
            db.add_all(orders)
            await db.flush()

            self.audit.log(
                db, user_id, "order.guest_create", "Project", project.id,
                new_values={
                    "order_ids": [o.id for o in orders],
                    "combo_type": request.combo_type,
                    "total_cost": str(total_cost),
                },
            )
            orders_created_total.labels(kind=OrderKind.GUEST.value, origin="guest").inc(len(orders))
            logger.info(
                "Created guest orders pending settlement",
                project_id=project.id,
                count=len(orders),
                total_cost=str(total_cost)
            )

            return CreateGuestOrderResult(
                orders=[order_to_response(o) for o in orders],
                total_cost=total_cost,
                currency_code=project.currency_code,
                message=f"Created {len(orders)} guest orders",
            )

    # ==== MEAL ASSIGNMENT ==== #

    async def assign_meals(
        self,
        db: AsyncSession,
        company_id: int,
        request: AssignMealsRequest,
        user_id: Optional[int] = None
    ) -> AssignMealsResult:
        """
        Create one lunch order per eligible employee for a date.

        Every employee is judged on its own; ineligible ones are skipped with
        a reason and never fail the batch. Created orders debit the employee's
        personal budget by the combo price.
        """
        with tracer.start_as_current_span("assign_meals") as span:
            span.set_attribute("company_id", company_id)
            span.set_attribute("employee_count", len(request.employee_ids))

            employee_ids = list(dict.fromkeys(request.employee_ids))
            result = await db.execute(
                select(Employee)
                .where(Employee.id.in_(employee_ids), Employee.company_id == company_id)
                .options(selectinload(Employee.budget), selectinload(Employee.project))
            )
            employees: Dict[int, Employee] = {e.id: e for e in result.scalars().all()}

            price = pricing.price(request.combo_type)
            order_date = to_order_date(request.date)
            created: List[Order] = []
            skipped: List[str] = []

            for employee_id in employee_ids:
                employee = employees.get(employee_id)
                if employee is None:
                    skipped.append(f"Employee {employee_id} (not found)")
                    continue

                reason = self._assignment_skip_reason(employee, price)
                if reason is None:
                    reason = self._assignment_cutoff_reason(employee, request.date)
                if reason is None and await self._has_order_on(db, employee.id, request.date):
                    reason = "order already exists"
                if reason is not None:
                    skipped.append(f"{employee.full_name} ({reason})")
                    continue

                order = Order(
                    company_id=company_id,
                    project_id=employee.project_id,
                    employee_id=employee.id,
                    combo_type=request.combo_type,
                    price=price,
                    currency_code=employee.project.currency_code,
                    status=OrderStatus.ACTIVE.value,
                    order_date=order_date,
                    is_guest_order=False,
                )
                db.add(order)
                await self.budget_service.adjust_employee_budget(db, employee.id, -price)
                order.employee = employee
                order.project = employee.project
                created.append(order)

            await db.flush()

            if created:
                self.audit.log(
                    db, user_id, "order.assign_meals", "Company", company_id,
                    new_values={"order_ids": [o.id for o in created], "combo_type": request.combo_type},
                )
                orders_created_total.labels(kind=OrderKind.LUNCH.value, origin="assignment").inc(len(created))

            logger.info(
                "Assigned meals",
                company_id=company_id,
                created=len(created),
                skipped=len(skipped)
            )

            return AssignMealsResult(
                created=len(created),
                skipped=len(skipped),
                skip_reasons=skipped,
                orders=[order_to_response(o) for o in created],
            )

    @staticmethod
    def _assignment_skip_reason(employee: Employee, price: Decimal) -> Optional[str]:
        if employee.is_deleted:
            return "deleted"
        if not employee.is_active:
            return "inactive"
        if employee.service_type == ServiceType.COMPENSATION.value:
            return "service type: compensation"
        if employee.project is None:
            return "no project"
        if employee.budget is None or employee.budget.total_budget < price:
            return "insufficient budget"
        return None

    def _assignment_cutoff_reason(self, employee: Employee, order_date: dt.date) -> Optional[str]:
        project = employee.project
        try:
            if self.evaluator.is_past_date(order_date, project.timezone):
                return "date is in the past"
            if self.evaluator.is_locked_for_today(order_date, project.cutoff_time, project.timezone):
                return f"ordering for today closed at {project.cutoff_time.strftime('%H:%M')}"
        except ConfigurationError as e:
            return e.message
        return None

    @staticmethod
    async def _has_order_on(db: AsyncSession, employee_id: int, day: dt.date) -> bool:
        start, end = CutoffEvaluator.utc_day_bounds(day)
        result = await db.execute(
            select(Order.id).where(
                Order.employee_id == employee_id,
                Order.order_date >= start,
                Order.order_date < end,
            ).limit(1)
        )
        return result.first() is not None

    # ==== BULK ACTIONS ==== #

    async def bulk_action(
        self,
        db: AsyncSession,
        company_id: int,
        request: BulkActionRequest,
        user_id: Optional[int] = None
    ) -> BulkActionResult:
        """
        Apply pause, resume, change_combo or cancel to a set of orders.

        For cancel, pause and change_combo every today-dated order must still
        be before its project's cutoff; one late order aborts the whole call
        before anything changes. Afterwards each order is processed on its
        own and disallowed ones are reported as skips.

        Args:
            db (AsyncSession): Database session
            company_id (int): Tenant company
            request (BulkActionRequest): Order ids, action and optional combo
            user_id (Optional[int]): Acting admin, for the audit trail

        Returns:
            BulkActionResult: Updated count, refunded total and skip reasons

        Raises:
            AppError: Unknown action or missing combo for change_combo
            BusinessRuleError: Cutoff passed for a today-dated order, or an
                orphaned order needs a budget correction
        """
        action = BulkAction.parse(request.action)
        if action is None:
            raise AppError(
                ErrorCode.VALIDATION_ERROR,
                f"Unknown bulk action '{request.action}'",
                {"action": request.action},
            )
        if action == BulkAction.CHANGE_COMBO and not (request.combo_type or "").strip():
            raise AppError(
                ErrorCode.VALIDATION_ERROR,
                "combo_type is required for change_combo",
                {"action": action.value},
            )

        with tracer.start_as_current_span("bulk_action") as span:
            span.set_attribute("company_id", company_id)
            span.set_attribute("action", action.value)
            span.set_attribute("order_count", len(request.order_ids))

            result = await db.execute(
                select(Order)
                .where(Order.id.in_(request.order_ids), Order.company_id == company_id)
                .options(
                    selectinload(Order.employee).selectinload(Employee.budget),
                    selectinload(Order.project),
                )
                .order_by(Order.id)
                .with_for_update(of=Order)
            )
            orders = list(result.scalars().all())

            # --► ALL-OR-NOTHING CUTOFF PRECHECK
            if action.requires_cutoff_check:
                for order in orders:
                    project = order.project
                    if project is not None and self.evaluator.is_locked_for_today(
                        order.order_date, project.cutoff_time, project.timezone
                    ):
                        order_rejections_total.labels(
                            operation="bulk_action", code=ErrorCode.ORDER_CUTOFF_PASSED.value
                        ).inc()
                        raise BusinessRuleError.cutoff_passed(project.cutoff_time, order.order_date.date())

            updated = 0
            refunded = Decimal("0")
            skipped: List[str] = []

            found_ids = {o.id for o in orders}
            for missing_id in request.order_ids:
                if missing_id not in found_ids:
                    skipped.append(f"Order {missing_id}: not found")

            for order in orders:
                old_values = {"status": order.status, "combo_type": order.combo_type, "price": str(order.price)}
                order_id = order.id

                if action == BulkAction.PAUSE:
                    ok, refund, reason = self._pause(order)
                elif action == BulkAction.RESUME:
                    ok, refund, reason = self._resume(order)
                elif action == BulkAction.CHANGE_COMBO:
                    ok, refund, reason = await self._change_combo(db, order, request.combo_type.strip())
                else:
                    ok, refund, reason = await self._cancel(db, order)

                if not ok:
                    skipped.append(reason)
                    continue

                updated += 1
                refunded += refund
                self.audit.log(
                    db, user_id, f"order.{action.value}", "Order", order_id,
                    old_values=old_values,
                    new_values={"status": order.status, "combo_type": order.combo_type, "price": str(order.price)},
                )

            await db.flush()

            bulk_actions_total.labels(action=action.value, outcome="updated").inc(updated)
            bulk_actions_total.labels(action=action.value, outcome="skipped").inc(len(skipped))

            currency = orders[0].currency_code if orders else settings.DEFAULT_CURRENCY
            message = self._bulk_message(action, updated, refunded, len(skipped), currency)
            logger.info(
                "Bulk order action applied",
                company_id=company_id,
                action=action.value,
                updated=updated,
                skipped=len(skipped),
                refunded=str(refunded)
            )

            return BulkActionResult(
                updated_count=updated,
                skipped_count=len(skipped),
                refunded_amount=refunded,
                skip_reasons=skipped,
                message=message,
            )

    @staticmethod
    def _name(order: Order) -> str:
        return order.display_name or ("Guest" if order.is_guest_order else f"Order {order.id}")

    def _pause(self, order: Order) -> Tuple[bool, Decimal, Optional[str]]:
        current = OrderStatus(order.status)
        if not state_machine.can_transition(current, OrderStatus.PAUSED):
            return False, Decimal("0"), f"{self._name(order)}: {state_machine.describe_allowed_transitions(current)}"

        order.status = state_machine.transition(current, OrderStatus.PAUSED).value
        order.updated_at = utcnow()
        return True, Decimal("0"), None

    def _resume(self, order: Order) -> Tuple[bool, Decimal, Optional[str]]:
        current = OrderStatus(order.status)
        if current == OrderStatus.FROZEN:
            return False, Decimal("0"), f"{self._name(order)}: frozen orders are restored with unfreeze"
        if not state_machine.can_transition(current, OrderStatus.ACTIVE):
            return False, Decimal("0"), f"{self._name(order)}: cannot be resumed ({state_machine.describe_allowed_transitions(current)})"

        order.status = state_machine.transition(current, OrderStatus.ACTIVE).value
        order.updated_at = utcnow()
        return True, Decimal("0"), None

    def _is_past(self, order: Order) -> bool:
        if order.project is None:
            return order.order_date.date() < utcnow().date()
        return self.evaluator.is_past_date(order.order_date, order.project.timezone)

    async def _change_combo(
        self,
        db: AsyncSession,
        order: Order,
        combo_type: str
    ) -> Tuple[bool, Decimal, Optional[str]]:
        current = OrderStatus(order.status)
        if current == OrderStatus.CANCELLED:
            return False, Decimal("0"), f"{self._name(order)}: cancelled orders cannot be changed"
        if state_machine.can_modify(current) and self._is_past(order):
            return False, Decimal("0"), f"{self._name(order)}: past orders cannot be changed"

        new_price = pricing.price(combo_type)
        delta = new_price - order.price

        # Only completed orders were debited and need a correction
        if current == OrderStatus.COMPLETED and delta != 0:
            await self._apply_correction(
                db, order, delta, f"Combo change: {self._name(order)} ({order.combo_type} -> {combo_type})"
            )

        order.combo_type = combo_type
        order.price = new_price
        order.updated_at = utcnow()
        return True, Decimal("0"), None

    async def _cancel(self, db: AsyncSession, order: Order) -> Tuple[bool, Decimal, Optional[str]]:
        current = OrderStatus(order.status)
        if current == OrderStatus.CANCELLED:
            return False, Decimal("0"), f"{self._name(order)}: already cancelled"
        if state_machine.can_modify(current) and self._is_past(order):
            return False, Decimal("0"), f"{self._name(order)}: past orders cannot be cancelled"

        refunded = Decimal("0")
        needs_refund = state_machine.can_refund(current)
        if needs_refund:
            await self._apply_correction(db, order, -order.price, f"Order cancelled: {self._name(order)}")
            refunded = order.price

        if not order.is_guest_order and not needs_refund and await self._is_orphaned_future_order(db, order):
            await db.delete(order)
            return True, refunded, None

        order.status = state_machine.transition(current, OrderStatus.CANCELLED, refund=needs_refund).value
        order.updated_at = utcnow()
        return True, refunded, None

    async def _is_orphaned_future_order(self, db: AsyncSession, order: Order) -> bool:
        """Future employee order whose employee has no active lunch subscription."""
        if order.employee_id is None:
            return False

        if order.project is not None:
            is_future = self.evaluator.is_future_date(order.order_date, order.project.timezone)
        else:
            is_future = order.order_date.date() > utcnow().date()
        if not is_future:
            return False

        result = await db.execute(
            select(LunchSubscription.id).where(and_(
                LunchSubscription.employee_id == order.employee_id,
                LunchSubscription.is_active.is_(True),
            )).limit(1)
        )
        return result.first() is None

    async def _apply_correction(
        self,
        db: AsyncSession,
        order: Order,
        delta: Decimal,
        description: str
    ) -> None:
        """
        Move ``delta`` between the order's payer and the books.

        Positive deltas charge more, negative ones refund. Compensation
        employees pay from their personal budget; everything else goes
        through the project budget and its ledger.
        """
        employee = order.employee
        if (
            not order.is_guest_order
            and employee is not None
            and employee.service_type == ServiceType.COMPENSATION.value
            and employee.budget is not None
        ):
            await self.budget_service.adjust_employee_budget(db, employee.id, -delta)
            return

        if order.project_id is None:
            raise BusinessRuleError(
                ErrorCode.ORDER_PROJECT_MISSING,
                f"Order {order.id} has no project, its budget cannot be corrected",
                {"order_id": order.id, "delta": str(delta)},
            )

        if delta > 0:
            await self.budget_service.deduct_project_budget(
                db, order.project_id, delta, description,
                order_id=order.id, transaction_type=TransactionType.LUNCH_DEDUCTION,
            )
        else:
            await self.budget_service.refund_project_budget(
                db, order.project_id, -delta, description, order_id=order.id
            )

    @staticmethod
    def _bulk_message(
        action: BulkAction,
        updated: int,
        refunded: Decimal,
        skipped_count: int,
        currency: str
    ) -> str:
        if action == BulkAction.CANCEL and refunded > 0:
            message = f"Cancelled {updated} orders. Refunded {refunded:.2f} {currency}"
        else:
            message = f"Updated {updated} orders"

        if skipped_count > 0:
            message += f" (skipped: {skipped_count})"
        return message
