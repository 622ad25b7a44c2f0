# ==== DAILY SETTLEMENT SERVICE ==== #

"""
End-of-day settlement of delivered orders.

After a project's cutoff, every ACTIVE order dated the project's local today
becomes COMPLETED and the project budget is debited once for the batch. The
status changes, the debit and its ledger row commit together per project;
a failing project is logged and retried on the next run.
"""

import time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business import order_state_machine as state_machine
from app.business.enums import OrderStatus, ProjectStatus, TransactionType
from app.business.errors import ErrorCode, NotFoundError
from app.observability.logging import get_logger, log_performance
from app.observability.metrics import (
    job_duration_seconds,
    job_failures_total,
    job_runs_total,
    settled_orders_total,
)
from app.observability.tracing import get_tracer
from app.schemas.jobs import ProjectSettlementResult, SettlementRunSummary
from app.services.budget import BudgetService
from app.services.cutoff import CutoffEvaluator, TimezoneResolver
from app.settings import settings
from app.storage.db import SessionFactory, get_session
from app.storage.models import Order, Project, utcnow


tracer = get_tracer(__name__)
logger = get_logger(__name__)

JOB_NAME = "daily_settlement"


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def settlement_description(employee_count: int, guest_count: int) -> str:
    """Ledger description such as ``2 employees, 1 guest``."""
    parts: List[str] = []
    if employee_count > 0:
        parts.append(_plural(employee_count, "employee", "employees"))
    if guest_count > 0:
        parts.append(_plural(guest_count, "guest", "guests"))
    return ", ".join(parts)


class DailySettlementService:
    """
    Settles today's active orders for every active project.

    Blank project timezones resolve to ``DEFAULT_TIMEZONE``; invalid ones
    fail that project only.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        evaluator: Optional[CutoffEvaluator] = None,
        budget_service: Optional[BudgetService] = None
    ):
        self.session_factory = session_factory or get_session
        self.evaluator = evaluator or CutoffEvaluator(
            tz_resolver=TimezoneResolver(fallback=settings.DEFAULT_TIMEZONE)
        )
        self.budget_service = budget_service or BudgetService()

    async def settle_all(self) -> SettlementRunSummary:
        """
        Run one settlement tick over all active, non-deleted projects.

        Returns:
            SettlementRunSummary: Per-project outcomes and totals
        """
        job_runs_total.labels(job=JOB_NAME).inc()
        started = time.perf_counter()
        summary = SettlementRunSummary()

        with tracer.start_as_current_span("settle_all") as span:
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
                        outcome = await self.settle_project(db, project_id)
                except Exception as e:
                    summary.projects_failed += 1
                    summary.failures.append(f"project {project_id}: {e}")
                    job_failures_total.labels(job=JOB_NAME).inc()
                    logger.exception("Settlement failed for project", project_id=project_id)
                    continue

                summary.results.append(outcome)
                if outcome.settled:
                    summary.projects_settled += 1
                    summary.orders_completed += outcome.orders_completed
                    summary.total_amount += outcome.total_amount

            span.set_attribute("projects_checked", summary.projects_checked)
            span.set_attribute("projects_settled", summary.projects_settled)

        duration = time.perf_counter() - started
        job_duration_seconds.labels(job=JOB_NAME).observe(duration)
        log_performance(JOB_NAME, duration, projects=summary.projects_checked)
        return summary

    async def settle_project(self, db: AsyncSession, project_id: int) -> ProjectSettlementResult:
        """
        Settle one project inside the caller's transaction.

        Args:
            db (AsyncSession): Session owning the transaction
            project_id (int): Project to settle

        Returns:
            ProjectSettlementResult: What was settled, or why nothing was

        Raises:
            NotFoundError: If the project does not exist
            ConfigurationError: If the project timezone is invalid
        """
        with tracer.start_as_current_span("settle_project") as span:
            span.set_attribute("project_id", project_id)

            project = (await db.execute(
                select(Project).where(Project.id == project_id).with_for_update()
            )).scalar_one_or_none()
            if project is None:
                raise NotFoundError.entity("Project", project_id, ErrorCode.PROJ_NOT_FOUND)

            local_today = self.evaluator.local_today(project.timezone)
            outcome = ProjectSettlementResult(project_id=project_id, local_date=local_today)

            # --► TOO EARLY: orders may still change
            if not self.evaluator.is_cutoff_passed(project.cutoff_time, project.timezone):
                outcome.skipped_reason = "before cutoff"
                return outcome

            start, end = CutoffEvaluator.utc_day_bounds(local_today)
            orders = list((await db.execute(
                select(Order)
                .where(
                    Order.project_id == project_id,
                    Order.status == OrderStatus.ACTIVE.value,
                    Order.order_date >= start,
                    Order.order_date < end,
                )
                .options(selectinload(Order.employee))
                .order_by(Order.id)
                .with_for_update(of=Order)
            )).scalars().all())

            if not orders:
                outcome.skipped_reason = "no active orders"
                return outcome

            # --► COMPLETE ORDERS AND DEBIT ONCE
            now = utcnow()
            total_amount = Decimal("0")
            employee_ids = set()
            guest_count = 0
            for order in orders:
                order.status = state_machine.transition(
                    OrderStatus.ACTIVE, OrderStatus.COMPLETED, settlement=True
                ).value
                order.updated_at = now
                total_amount += order.price
                if order.is_guest_order:
                    guest_count += 1
                elif order.employee_id is not None:
                    employee_ids.add(order.employee_id)

            description = settlement_description(len(employee_ids), guest_count)
            entry = await self.budget_service.deduct_project_budget(
                db,
                project_id,
                total_amount,
                f"Daily settlement {local_today.isoformat()}: {description}",
                order_id=None,
                transaction_type=TransactionType.LUNCH_DEDUCTION,
            )

            outcome.settled = True
            outcome.orders_completed = len(orders)
            outcome.employee_count = len(employee_ids)
            outcome.guest_count = guest_count
            outcome.total_amount = total_amount
            outcome.balance_after = entry.balance_after

            settled_orders_total.labels(kind="GUEST").inc(guest_count)
            settled_orders_total.labels(kind="LUNCH").inc(len(orders) - guest_count)
            span.set_attribute("orders_completed", len(orders))
            span.set_attribute("total_amount", str(total_amount))

            logger.info(
                "Settlement completed",
                project_id=project_id,
                project_name=project.name,
                orders=len(orders),
                amount=str(total_amount),
                currency=project.currency_code
            )
            return outcome
