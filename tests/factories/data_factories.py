"""Data factories for generating test data."""

import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select

from app.business.enums import (
    OrderStatus,
    ServiceType,
    SubscriptionStatus,
    MealAssignmentStatus,
    ScheduleType,
)
from app.storage.db import SessionFactory
from app.storage.models import (
    CompanySubscription,
    CompanyTransaction,
    CompensationTransaction,
    Employee,
    EmployeeBudget,
    EmployeeMealAssignment,
    LunchSubscription,
    Order,
    Project,
    to_order_date,
)


COMPANY_ID = 1


@dataclass
class DataFactory:
    """
    Creates committed rows, one transaction per call.

    Returned instances are detached but keep their loaded attributes, so
    tests can read ids and values without a session.
    """

    session_factory: SessionFactory
    company_id: int = COMPANY_ID

    async def _save(self, *instances: Any) -> None:
        async with self.session_factory() as db:
            db.add_all(instances)
            await db.flush()

    # ==== PROJECTS AND EMPLOYEES ==== #

    async def create_project(
        self,
        name: str = "Head Office",
        budget: str = "1000.00",
        overdraft_limit: str = "0",
        timezone: str = "UTC",
        cutoff_time: dt.time = dt.time(10, 30),
        company_id: Optional[int] = None,
        **overrides: Any
    ) -> Project:
        project = Project(
            company_id=company_id or self.company_id,
            name=name,
            budget=Decimal(budget),
            overdraft_limit=Decimal(overdraft_limit),
            currency_code="TJS",
            timezone=timezone,
            cutoff_time=cutoff_time,
            address_name=name,
            address_full_address=f"{name}, Rudaki Ave 1",
            **overrides
        )
        await self._save(project)
        return project

    async def create_employee(
        self,
        project: Optional[Project],
        full_name: str = "Aziz Karimov",
        budget: Optional[str] = "500.00",
        service_type: ServiceType = ServiceType.LUNCH,
        working_days: Optional[List[int]] = None,
        **overrides: Any
    ) -> Employee:
        is_active = overrides.pop("is_active", True)
        employee = Employee(
            company_id=project.company_id if project is not None else self.company_id,
            project_id=project.id if project is not None else None,
            full_name=full_name,
            phone="+992900000000",
            service_type=service_type.value,
            is_active=is_active,
            working_days=working_days,
            **overrides
        )
        await self._save(employee)

        if budget is not None:
            await self._save(EmployeeBudget(
                employee_id=employee.id,
                total_budget=Decimal(budget),
                daily_limit=Decimal("100.00"),
            ))
        return employee

    # ==== ORDERS ==== #

    async def create_order(
        self,
        project: Optional[Project],
        employee: Optional[Employee] = None,
        order_date: dt.date = dt.date(2026, 10, 19),
        combo_type: str = "Combo 25",
        price: str = "25.00",
        status: OrderStatus = OrderStatus.ACTIVE,
        guest_name: Optional[str] = None,
        **overrides: Any
    ) -> Order:
        is_guest = employee is None
        order = Order(
            company_id=project.company_id if project is not None else self.company_id,
            project_id=project.id if project is not None else None,
            employee_id=employee.id if employee is not None else None,
            guest_name=(guest_name or "Guest") if is_guest else None,
            combo_type=combo_type,
            price=Decimal(price),
            currency_code="TJS",
            status=status.value,
            order_date=to_order_date(order_date),
            is_guest_order=is_guest,
            **overrides
        )
        await self._save(order)
        return order

    async def create_compensation(
        self,
        project: Project,
        employee: Employee,
        transaction_date: dt.datetime = dt.datetime(2026, 10, 19, 13, 0),
        total_amount: str = "40.00",
        restaurant_name: str = "Rohat Teahouse"
    ) -> CompensationTransaction:
        record = CompensationTransaction(
            project_id=project.id,
            employee_id=employee.id,
            transaction_date=transaction_date,
            total_amount=Decimal(total_amount),
            company_paid_amount=Decimal(total_amount),
            restaurant_name=restaurant_name,
        )
        await self._save(record)
        return record

    # ==== SUBSCRIPTIONS ==== #

    async def create_lunch_subscription(
        self,
        employee: Employee,
        combo_type: str = "Combo 25",
        schedule_type: ScheduleType = ScheduleType.EVERY_DAY,
        start_date: Optional[dt.date] = dt.date(2026, 10, 1),
        end_date: Optional[dt.date] = dt.date(2026, 10, 31),
        is_active: bool = True,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> LunchSubscription:
        subscription = LunchSubscription(
            employee_id=employee.id,
            company_id=employee.company_id,
            project_id=employee.project_id,
            combo_type=combo_type,
            schedule_type=schedule_type.value,
            is_active=is_active,
            status=status.value,
            start_date=start_date,
            end_date=end_date,
        )
        await self._save(subscription)
        return subscription

    async def create_company_subscription(
        self,
        project: Project,
        start_date: dt.date,
        end_date: dt.date,
        total_days: int,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    ) -> CompanySubscription:
        subscription = CompanySubscription(
            project_id=project.id,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            total_amount=Decimal("0"),
            status=status.value,
        )
        await self._save(subscription)
        return subscription

    async def create_assignments(
        self,
        subscription: CompanySubscription,
        employee: Employee,
        dates: List[dt.date],
        combo_type: str = "Combo 25",
        price: str = "25.00"
    ) -> List[EmployeeMealAssignment]:
        assignments = [
            EmployeeMealAssignment(
                subscription_id=subscription.id,
                employee_id=employee.id,
                assignment_date=day,
                combo_type=combo_type,
                price=Decimal(price),
                status=MealAssignmentStatus.DELIVERED.value,
            )
            for day in dates
        ]
        await self._save(*assignments)
        return assignments

    # ==== READ HELPERS ==== #

    async def get(self, model: Any, entity_id: int) -> Any:
        """Fresh copy of a row, read in a new transaction."""
        async with self.session_factory() as db:
            return await db.get(model, entity_id)

    async def project_budget(self, project_id: int) -> Decimal:
        async with self.session_factory() as db:
            result = await db.execute(select(Project.budget).where(Project.id == project_id))
            return Decimal(result.scalar_one())

    async def employee_budget(self, employee_id: int) -> Decimal:
        async with self.session_factory() as db:
            result = await db.execute(
                select(EmployeeBudget.total_budget).where(EmployeeBudget.employee_id == employee_id)
            )
            return Decimal(result.scalar_one())

    async def ledger(self, project_id: int) -> List[CompanyTransaction]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CompanyTransaction)
                .where(CompanyTransaction.project_id == project_id)
                .order_by(CompanyTransaction.id)
            )
            return list(result.scalars().all())

    async def orders(self, **criteria: Any) -> List[Order]:
        async with self.session_factory() as db:
            query = select(Order).order_by(Order.id)
            for column, value in criteria.items():
                query = query.where(getattr(Order, column) == value)
            result = await db.execute(query)
            return list(result.scalars().all())

    async def count(self, model: Any) -> int:
        async with self.session_factory() as db:
            result = await db.execute(select(func.count()).select_from(model))
            return int(result.scalar_one())
