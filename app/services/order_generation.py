# ==== DAILY ORDER GENERATION SERVICE ==== #

"""
Materializes today's orders from recurring lunch subscriptions.

Runs hourly. Re-running within the same day is a no-op for employees who
already have an order for that date. Generated orders are not debited here;
their cost is reported and the daily settlement debits them once delivered.
"""

import datetime as dt
import time
from decimal import Decimal
from typing import Iterable, List, Optional, Set

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.enums import (
    OrderKind,
    OrderStatus,
    ProjectStatus,
    ScheduleType,
    SubscriptionStatus,
)
from app.business.errors import ErrorCode, NotFoundError
from app.observability.logging import get_logger, log_performance
from app.observability.metrics import (
    generated_orders_total,
    job_duration_seconds,
    job_failures_total,
    job_runs_total,
    orders_created_total,
)
from app.observability.tracing import get_tracer
from app.schemas.jobs import GenerationRunSummary, ProjectGenerationResult
from app.services import pricing
from app.services.cutoff import CutoffEvaluator
from app.storage.db import SessionFactory, get_session
from app.storage.models import Employee, LunchSubscription, Order, Project, to_order_date


tracer = get_tracer(__name__)
logger = get_logger(__name__)

JOB_NAME = "daily_order_generation"

# Day numbers with 0 = Sunday
DEFAULT_WORKING_DAYS = frozenset({1, 2, 3, 4, 5})
EVERY_OTHER_DAY_PATTERN = frozenset({1, 3, 5})


# ==== SCHEDULE RULES ==== #


def day_number(day: dt.date) -> int:
    """Sunday-based day number (Sunday = 0, Saturday = 6)."""
    return (day.weekday() + 1) % 7


def effective_working_days(working_days: Optional[Iterable[int]]) -> Set[int]:
    days = set(working_days or [])
    return days or set(DEFAULT_WORKING_DAYS)


def matches_schedule(
    schedule_type: Optional[str],
    working_days: Optional[Iterable[int]],
    day: dt.date
) -> bool:
    """
    Check whether a subscription should produce an order on ``day``.

    EVERY_DAY follows the employee's working days. EVERY_OTHER_DAY keeps
    Monday, Wednesday and Friday among those working days. CUSTOM never
    matches because its orders are created up front.
    """
    schedule = ScheduleType.normalize(schedule_type)
    if schedule == ScheduleType.CUSTOM:
        return False

    number = day_number(day)
    if number not in effective_working_days(working_days):
        return False

    if schedule == ScheduleType.EVERY_OTHER_DAY:
        return number in EVERY_OTHER_DAY_PATTERN
    return True


# ==== GENERATION SERVICE CLASS ==== #


class DailyOrderGenerationService:
    """Creates one ACTIVE order per due subscription per project-local day."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        evaluator: Optional[CutoffEvaluator] = None
    ):
        self.session_factory = session_factory or get_session
        self.evaluator = evaluator or CutoffEvaluator()

    async def generate_all(self) -> GenerationRunSummary:
        """Run one generation tick over all active projects."""
        job_runs_total.labels(job=JOB_NAME).inc()
        started = time.perf_counter()
        summary = GenerationRunSummary()

        with tracer.start_as_current_span("generate_all") as span:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(Project.id)
                    .where(
                        Project.deleted_at.is_(None),
                        Project.status == ProjectStatus.ACTIVE.value,
                    )
                    .order_by(Project.id)
                )
                project_ids = list(result.scalars().all())

            for project_id in project_ids:
                summary.projects_checked += 1
                try:
                    async with self.session_factory() as db:
                        outcome = await self.generate_for_project(db, project_id)
                except Exception as e:
                    summary.projects_failed += 1
                    summary.failures.append(f"project {project_id}: {e}")
                    job_failures_total.labels(job=JOB_NAME).inc()
                    logger.exception("Order generation failed for project", project_id=project_id)
                    continue

                summary.results.append(outcome)
                summary.orders_created += outcome.orders_created
                summary.accumulated_cost += outcome.accumulated_cost

            span.set_attribute("orders_created", summary.orders_created)

        duration = time.perf_counter() - started
        job_duration_seconds.labels(job=JOB_NAME).observe(duration)
        log_performance(JOB_NAME, duration, orders_created=summary.orders_created)
        return summary

    async def generate_for_project(
        self,
        db: AsyncSession,
        project_id: int
    ) -> ProjectGenerationResult:
        """
        Create today's subscription orders for one project.

        Args:
            db (AsyncSession): Session owning the transaction
            project_id (int): Project to process

        Returns:
            ProjectGenerationResult: Created orders and their accumulated cost
        """
        with tracer.start_as_current_span("generate_for_project") as span:
            span.set_attribute("project_id", project_id)

            project = await db.get(Project, project_id)
            if project is None:
                raise NotFoundError.entity("Project", project_id, ErrorCode.PROJ_NOT_FOUND)

            today = self.evaluator.local_today(project.timezone)
            outcome = ProjectGenerationResult(project_id=project_id, local_date=today)

            if not self.evaluator.is_cutoff_passed(project.cutoff_time, project.timezone):
                outcome.skipped_reason = "before cutoff"
                return outcome

            subscriptions = await self._due_subscriptions(db, project_id, today)
            if not subscriptions:
                outcome.skipped_reason = "no active subscriptions"
                return outcome

            already_ordered = await self._employees_with_orders(
                db, [s.employee_id for s in subscriptions], today
            )

            order_date = to_order_date(today)
            created: List[Order] = []
            for subscription in subscriptions:
                employee = subscription.employee
                if not matches_schedule(subscription.schedule_type, employee.working_days, today):
                    outcome.subscriptions_skipped += 1
                    continue
                if subscription.employee_id in already_ordered:
                    outcome.subscriptions_skipped += 1
                    continue

                price = pricing.price(subscription.combo_type)
                created.append(Order(
                    company_id=project.company_id,
                    project_id=project_id,
                    employee_id=subscription.employee_id,
                    combo_type=subscription.combo_type,
                    price=price,
                    currency_code=project.currency_code,
                    status=OrderStatus.ACTIVE.value,
                    order_date=order_date,
                    is_guest_order=False,
                ))
                already_ordered.add(subscription.employee_id)
                outcome.accumulated_cost += price

            if created:
                db.add_all(created)
                await db.flush()
                generated_orders_total.inc(len(created))
                orders_created_total.labels(kind=OrderKind.LUNCH.value, origin="generation").inc(len(created))

            outcome.orders_created = len(created)
            span.set_attribute("orders_created", len(created))

            logger.info(
                "Subscription orders generated, pending settlement",
                project_id=project_id,
                orders=len(created),
                accumulated_cost=str(outcome.accumulated_cost),
                local_date=today.isoformat()
            )
            return outcome

    @staticmethod
    async def _due_subscriptions(
        db: AsyncSession,
        project_id: int,
        today: dt.date
    ) -> List[LunchSubscription]:
        result = await db.execute(
            select(LunchSubscription)
            .join(Employee, LunchSubscription.employee_id == Employee.id)
            .where(
                LunchSubscription.project_id == project_id,
                LunchSubscription.is_active.is_(True),
                LunchSubscription.status == SubscriptionStatus.ACTIVE.value,
                or_(LunchSubscription.start_date.is_(None), LunchSubscription.start_date <= today),
                or_(LunchSubscription.end_date.is_(None), LunchSubscription.end_date >= today),
                Employee.is_active.is_(True),
                Employee.deleted_at.is_(None),
            )
            .options(selectinload(LunchSubscription.employee))
            .order_by(LunchSubscription.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def _employees_with_orders(
        db: AsyncSession,
        employee_ids: List[int],
        day: dt.date
    ) -> Set[int]:
        start, end = CutoffEvaluator.utc_day_bounds(day)
        result = await db.execute(
            select(Order.employee_id).where(
                Order.employee_id.in_(employee_ids),
                Order.order_date >= start,
                Order.order_date < end,
            )
        )
        return {employee_id for employee_id in result.scalars().all()}
