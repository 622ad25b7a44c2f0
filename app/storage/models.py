"""SQLAlchemy models for Lunch Ledger."""

import datetime as dt
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    String, Integer, JSON, ForeignKey, UniqueConstraint,
    Text, DateTime, Date, Time, Numeric, Boolean, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.business.enums import (
    OrderKind,
    OrderStatus,
    ProjectStatus,
    ServiceType,
    ScheduleType,
    SubscriptionStatus,
    MealAssignmentStatus,
    BudgetPeriod,
)
from app.storage.db import Base


Money = Numeric(14, 2)


def utcnow() -> dt.datetime:
    """Naive UTC timestamp, the convention for every DateTime column."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


def to_order_date(value: dt.date) -> dt.datetime:
    """Normalize a calendar date to the stored UTC-midnight order date."""
    if isinstance(value, dt.datetime):
        value = value.date()
    return dt.datetime(value.year, value.month, value.day)


class Project(Base):
    """Budget-holding delivery unit of a company."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    budget: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    overdraft_limit: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), default="TJS", nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="Asia/Dushanbe", nullable=False)
    cutoff_time: Mapped[dt.time] = mapped_column(Time, default=dt.time(10, 30), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=ProjectStatus.ACTIVE.value, nullable=False)

    # Address is fixed once the project is created
    address_name: Mapped[str] = mapped_column(String(128), nullable=True)
    address_full_address: Mapped[str] = mapped_column(Text, nullable=True)

    deleted_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    __table_args__ = (
        Index("ix_projects_company_status", "company_id", "status"),
    )

    employees = relationship("Employee", back_populates="project")

    @property
    def available_budget(self) -> Decimal:
        """Balance plus the allowed negative headroom."""
        return (self.budget or Decimal("0")) + (self.overdraft_limit or Decimal("0"))

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None and self.status == ProjectStatus.ACTIVE.value


class Employee(Base):
    """Benefit recipient; soft-deleted only."""

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=True, index=True
    )
    full_name: Mapped[str] = mapped_column(String(256), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=True)
    service_type: Mapped[str] = mapped_column(String(16), default=ServiceType.LUNCH.value, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # Day numbers with 0 = Sunday; empty means Monday to Friday
    working_days: Mapped[List[int]] = mapped_column(JSON, nullable=True)
    deleted_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    project = relationship("Project", back_populates="employees")
    budget = relationship("EmployeeBudget", back_populates="employee", uselist=False)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class EmployeeBudget(Base):
    """Personal meal budget of an employee."""

    __tablename__ = "employee_budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=False, unique=True
    )
    total_budget: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    daily_limit: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    period: Mapped[str] = mapped_column(String(16), default=BudgetPeriod.MONTHLY.value, nullable=False)

    employee = relationship("Employee", back_populates="budget")


class Order(Base):
    """A single meal delivery for one date."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=True, index=True
    )
    employee_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=True, index=True
    )
    guest_name: Mapped[str] = mapped_column(String(256), nullable=True)
    combo_type: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    currency_code: Mapped[str] = mapped_column(String(3), default="TJS", nullable=False)
    status: Mapped[str] = mapped_column(String(16), default=OrderStatus.ACTIVE.value, nullable=False)
    order_date: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    is_guest_order: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Freeze tracking
    frozen_at: Mapped[dt.datetime] = mapped_column(DateTime, nullable=True)
    frozen_reason: Mapped[str] = mapped_column(Text, nullable=True)
    replacement_order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )

    __table_args__ = (
        Index("ix_orders_project_status_date", "project_id", "status", "order_date"),
        Index("ix_orders_employee_date", "employee_id", "order_date"),
    )

    project = relationship("Project")
    employee = relationship("Employee")

    @property
    def kind(self) -> OrderKind:
        return OrderKind.GUEST if self.is_guest_order else OrderKind.LUNCH

    @property
    def display_name(self) -> str:
        """Guest name for guest orders, employee name otherwise."""
        if self.is_guest_order:
            return self.guest_name or ""
        if self.employee is not None:
            return self.employee.full_name
        return ""


class LunchSubscription(Base):
    """Recurring order template for one employee."""

    __tablename__ = "lunch_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=False, index=True
    )
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=False, index=True
    )
    combo_type: Mapped[str] = mapped_column(String(32), nullable=False)
    schedule_type: Mapped[str] = mapped_column(
        String(32), default=ScheduleType.EVERY_DAY.value, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=SubscriptionStatus.ACTIVE.value, nullable=False
    )
    start_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[dt.date]] = mapped_column(Date, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    employee = relationship("Employee")

    def covers(self, day: dt.date) -> bool:
        """Check whether the optional date window includes ``day``."""
        if self.start_date is not None and day < self.start_date:
            return False
        if self.end_date is not None and day > self.end_date:
            return False
        return True


class CompanySubscription(Base):
    """Block subscription spanning many employees of a project."""

    __tablename__ = "company_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=False, index=True
    )
    start_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    end_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=SubscriptionStatus.ACTIVE.value, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_company_subscriptions_status_end", "status", "end_date"),
    )

    project = relationship("Project")
    assignments = relationship("EmployeeMealAssignment", back_populates="subscription")


class EmployeeMealAssignment(Base):
    """One scheduled meal of a company subscription."""

    __tablename__ = "employee_meal_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscription_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("company_subscriptions.id"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=False, index=True
    )
    assignment_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    combo_type: Mapped[str] = mapped_column(String(32), nullable=False)
    price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), default=MealAssignmentStatus.SCHEDULED.value, nullable=False
    )
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("subscription_id", "employee_id", "assignment_date", name="uq_assignment_day"),
    )

    subscription = relationship("CompanySubscription", back_populates="assignments")


class CompanyTransaction(Base):
    """Append-only ledger entry on a project budget."""

    __tablename__ = "company_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    project_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    # Signed: debits negative, credits positive
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    # Not a foreign key, the order may be hard-deleted later
    order_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    balance_after: Mapped[Optional[Decimal]] = mapped_column(Money, nullable=True)
    description: Mapped[str] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_company_transactions_project_created", "project_id", "created_at"),
    )


class CompensationTransaction(Base):
    """Restaurant compensation paid for an employee; read-only for the order engine."""

    __tablename__ = "compensation_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("projects.id"), nullable=False, index=True
    )
    employee_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("employees.id"), nullable=False, index=True
    )
    transaction_date: Mapped[dt.datetime] = mapped_column(DateTime, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    company_paid_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    restaurant_name: Mapped[str] = mapped_column(String(256), nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    project = relationship("Project")
    employee = relationship("Employee")


class AuditLog(Base):
    """Audit trail of admin mutations."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=True)
    old_values: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=True)
    new_values: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )
