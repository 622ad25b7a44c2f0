# ==== SUBSCRIPTION AUTO-RENEWAL SERVICE ==== #

"""
Rolls expired company subscriptions into the next period.

Runs daily at UTC midnight. Each expired subscription is completed and, when
the project can afford it, replaced by a subscription of the same length
with freshly scheduled weekday assignments. Each subscription is processed
in its own transaction so one failure never blocks the others.
"""

import datetime as dt
import time
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.business.enums import MealAssignmentStatus, SubscriptionStatus
from app.business.errors import ErrorCode, NotFoundError
from app.observability.logging import get_logger, log_business_event, log_performance
from app.observability.metrics import (
    job_duration_seconds,
    job_failures_total,
    job_runs_total,
    renewed_subscriptions_total,
)
from app.observability.tracing import get_tracer
from app.schemas.jobs import RenewalRunSummary, SubscriptionRenewalResult
from app.services import pricing
from app.services.cutoff import Clock, SystemClock
from app.storage.db import SessionFactory, get_session
from app.storage.models import CompanySubscription, EmployeeMealAssignment


tracer = get_tracer(__name__)
logger = get_logger(__name__)

JOB_NAME = "subscription_renewal"


def weekdays_between(start: dt.date, end: dt.date, limit: int) -> List[dt.date]:
    """Monday to Friday dates in ``[start, end]``, at most ``limit`` of them."""
    dates: List[dt.date] = []
    current = start
    while current <= end and len(dates) < limit:
        if current.weekday() < 5:
            dates.append(current)
        current += dt.timedelta(days=1)
    return dates


class SubscriptionRenewalService:
    """Completes expired company subscriptions and schedules their successors."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        clock: Optional[Clock] = None
    ):
        self.session_factory = session_factory or get_session
        self.clock = clock or SystemClock()

    async def renew_expired(self) -> RenewalRunSummary:
        """
        Process every ACTIVE subscription whose end date is today (UTC) or earlier.

        Returns:
            RenewalRunSummary: Per-subscription outcomes
        """
        job_runs_total.labels(job=JOB_NAME).inc()
        started = time.perf_counter()
        summary = RenewalRunSummary()
        today = self.clock.now().date()

        with tracer.start_as_current_span("renew_expired") as span:
            span.set_attribute("today", today.isoformat())

            async with self.session_factory() as db:
                result = await db.execute(
                    select(CompanySubscription.id)
                    .where(
                        CompanySubscription.status == SubscriptionStatus.ACTIVE.value,
                        CompanySubscription.end_date <= today,
                    )
                    .order_by(CompanySubscription.id)
                )
                subscription_ids = list(result.scalars().all())

            for subscription_id in subscription_ids:
                summary.subscriptions_checked += 1
                try:
                    async with self.session_factory() as db:
                        outcome = await self.renew_subscription(db, subscription_id)
                except Exception as e:
                    summary.subscriptions_failed += 1
                    summary.failures.append(f"subscription {subscription_id}: {e}")
                    job_failures_total.labels(job=JOB_NAME).inc()
                    logger.exception("Auto-renewal failed", subscription_id=subscription_id)
                    continue

                summary.results.append(outcome)
                if outcome.renewed:
                    summary.subscriptions_renewed += 1

            span.set_attribute("subscriptions_renewed", summary.subscriptions_renewed)

        duration = time.perf_counter() - started
        job_duration_seconds.labels(job=JOB_NAME).observe(duration)
        log_performance(JOB_NAME, duration, renewed=summary.subscriptions_renewed)
        return summary

    async def renew_subscription(
        self,
        db: AsyncSession,
        subscription_id: int
    ) -> SubscriptionRenewalResult:
        """
        Complete one expired subscription and create its successor if affordable.

        The old subscription is marked COMPLETED even when renewal is skipped.
        Renewal cost is each employee's prior meal count times the price of
        that employee's combo; it is checked against budget plus overdraft and
        reserved only, never debited here.

        Args:
            db (AsyncSession): Session owning the transaction
            subscription_id (int): Expired subscription

        Returns:
            SubscriptionRenewalResult: New subscription id or the skip reason
        """
        with tracer.start_as_current_span("renew_subscription") as span:
            span.set_attribute("subscription_id", subscription_id)

            subscription = (await db.execute(
                select(CompanySubscription)
                .where(CompanySubscription.id == subscription_id)
                .options(
                    selectinload(CompanySubscription.project),
                    selectinload(CompanySubscription.assignments),
                )
                .with_for_update(of=CompanySubscription)
            )).scalar_one_or_none()
            if subscription is None:
                raise NotFoundError.entity("CompanySubscription", subscription_id, ErrorCode.SUB_NOT_FOUND)

            outcome = SubscriptionRenewalResult(subscription_id=subscription_id)
            subscription.status = SubscriptionStatus.COMPLETED.value

            project = subscription.project
            if project is None:
                outcome.skipped_reason = "no project"
                return outcome

            # --► PRIOR MEALS PER EMPLOYEE
            assignments = sorted(
                (a for a in subscription.assignments
                 if a.status != MealAssignmentStatus.CANCELLED.value),
                key=lambda a: (a.assignment_date, a.id),
            )
            if not assignments:
                outcome.skipped_reason = "no assignments"
                return outcome

            per_employee: Dict[int, Dict[str, object]] = OrderedDict()
            for assignment in assignments:
                entry = per_employee.setdefault(
                    assignment.employee_id,
                    {"combo_type": assignment.combo_type, "days": 0},
                )
                entry["days"] += 1

            for entry in per_employee.values():
                entry["price"] = pricing.price(str(entry["combo_type"]))
            renewal_cost = sum(
                (entry["price"] * int(entry["days"]) for entry in per_employee.values()),
                Decimal("0"),
            )
            outcome.renewal_cost = renewal_cost

            # --► BUDGET RESERVATION CHECK
            available = project.available_budget
            if renewal_cost > available:
                outcome.skipped_reason = (
                    f"insufficient budget: required {renewal_cost:.2f}, available {available:.2f}"
                )
                logger.warning(
                    "Insufficient budget for auto-renewal",
                    subscription_id=subscription_id,
                    project_id=project.id,
                    required=str(renewal_cost),
                    available=str(available)
                )
                return outcome

            # --► NEXT PERIOD
            new_start = subscription.end_date + dt.timedelta(days=1)
            new_end = new_start + dt.timedelta(days=subscription.total_days - 1)
            renewed = CompanySubscription(
                project_id=subscription.project_id,
                start_date=new_start,
                end_date=new_end,
                total_days=subscription.total_days,
                total_amount=renewal_cost,
                status=SubscriptionStatus.ACTIVE.value,
            )
            db.add(renewed)
            await db.flush()

            created = 0
            for employee_id, entry in per_employee.items():
                for day in weekdays_between(new_start, new_end, int(entry["days"])):
                    db.add(EmployeeMealAssignment(
                        subscription_id=renewed.id,
                        employee_id=employee_id,
                        assignment_date=day,
                        combo_type=str(entry["combo_type"]),
                        price=entry["price"],
                        status=MealAssignmentStatus.SCHEDULED.value,
                    ))
                    created += 1
            await db.flush()

            outcome.renewed = True
            outcome.new_subscription_id = renewed.id
            outcome.assignments_created = created
            renewed_subscriptions_total.inc()

            log_business_event(
                "subscription_renewed",
                project.id,
                old_subscription_id=subscription_id,
                new_subscription_id=renewed.id,
                renewal_cost=str(renewal_cost),
                assignments=created,
            )
            return outcome
