# ==== BUDGET AND LEDGER SERVICE ==== #

"""
Budget primitives for project and employee balances.

Every balance change is a single relational delta executed inside the
caller's transaction, followed by one append-only ledger row carrying the
resulting balance. Nothing here commits; the unit-of-work owner does.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.business.enums import TransactionType
from app.business.errors import BusinessRuleError, ErrorCode, NotFoundError
from app.observability.logging import get_logger, log_business_event
from app.observability.metrics import budget_amount_total, budget_transactions_total
from app.observability.tracing import get_tracer
from app.storage.models import CompanyTransaction, EmployeeBudget, Project


tracer = get_tracer(__name__)
logger = get_logger(__name__)


@dataclass(frozen=True)
class BudgetInfo:
    """Snapshot of a project's balance."""

    balance: Decimal
    overdraft_limit: Decimal
    currency_code: str

    @property
    def available(self) -> Decimal:
        return self.balance + self.overdraft_limit


def _require_positive(amount: Decimal) -> Decimal:
    amount = Decimal(amount)
    if amount <= 0:
        raise ValueError(f"Amount must be positive, got {amount}")
    return amount


# ==== BUDGET SERVICE CLASS ==== #


class BudgetService:
    """
    Project and employee budget mutations with ledger bookkeeping.

    Project debits are unconditional unless ``enforce_limit`` is set; the
    overdraft guard belongs to order creation, while settlement always
    records what was delivered.
    """

    # ==== READS ==== #

    async def get_project_budget_info(
        self,
        db: AsyncSession,
        project_id: int
    ) -> BudgetInfo:
        """
        Read the current balance straight from the database.

        Args:
            db (AsyncSession): Database session
            project_id (int): Project identifier

        Returns:
            BudgetInfo: Balance, overdraft limit and currency

        Raises:
            NotFoundError: If the project does not exist
        """
        result = await db.execute(
            select(Project.budget, Project.overdraft_limit, Project.currency_code)
            .where(Project.id == project_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError.entity("Project", project_id, ErrorCode.PROJ_NOT_FOUND)

        return BudgetInfo(
            balance=Decimal(row.budget),
            overdraft_limit=Decimal(row.overdraft_limit or 0),
            currency_code=row.currency_code,
        )

    async def has_sufficient_budget(
        self,
        db: AsyncSession,
        project_id: int,
        amount: Decimal
    ) -> bool:
        info = await self.get_project_budget_info(db, project_id)
        return info.available >= amount

    # ==== PROJECT MUTATIONS ==== #

    async def deduct_project_budget(
        self,
        db: AsyncSession,
        project_id: int,
        amount: Decimal,
        description: str,
        order_id: Optional[int] = None,
        transaction_type: TransactionType = TransactionType.LUNCH_DEDUCTION,
        enforce_limit: bool = False
    ) -> CompanyTransaction:
        """
        Subtract ``amount`` from a project budget and append a ledger row.

        Args:
            db (AsyncSession): Database session owning the transaction
            project_id (int): Project to debit
            amount (Decimal): Positive amount to subtract
            description (str): Ledger description
            order_id (Optional[int]): Order that caused the debit, None for batches
            transaction_type (TransactionType): Ledger entry type
            enforce_limit (bool): Reject when budget plus overdraft is below amount

        Returns:
            CompanyTransaction: The ledger row (signed negative)

        Raises:
            ValueError: If amount is not positive
            NotFoundError: If the project does not exist
            BusinessRuleError: If ``enforce_limit`` is set and headroom is short
        """
        amount = _require_positive(amount)

        with tracer.start_as_current_span("deduct_project_budget") as span:
            span.set_attribute("project_id", project_id)
            span.set_attribute("amount", str(amount))
            span.set_attribute("transaction_type", transaction_type.value)

            stmt = update(Project).where(Project.id == project_id)
            if enforce_limit:
                stmt = stmt.where(Project.budget + Project.overdraft_limit >= amount)
            stmt = stmt.values(budget=Project.budget - amount).execution_options(
                synchronize_session=False
            )

            result = await db.execute(stmt)
            if result.rowcount == 0:
                info = await self.get_project_budget_info(db, project_id)
                raise BusinessRuleError.budget_insufficient(
                    amount, info.available, info.currency_code
                )

            return await self._append_ledger(
                db, project_id, transaction_type, -amount, description, order_id
            )

    async def refund_project_budget(
        self,
        db: AsyncSession,
        project_id: int,
        amount: Decimal,
        description: str,
        order_id: Optional[int] = None
    ) -> CompanyTransaction:
        """Add ``amount`` back to a project budget with a REFUND ledger row."""
        amount = _require_positive(amount)

        with tracer.start_as_current_span("refund_project_budget") as span:
            span.set_attribute("project_id", project_id)
            span.set_attribute("amount", str(amount))

            result = await db.execute(
                update(Project)
                .where(Project.id == project_id)
                .values(budget=Project.budget + amount)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError.entity("Project", project_id, ErrorCode.PROJ_NOT_FOUND)

            return await self._append_ledger(
                db, project_id, TransactionType.REFUND, amount, description, order_id
            )

    # ==== EMPLOYEE MUTATIONS ==== #

    async def adjust_employee_budget(
        self,
        db: AsyncSession,
        employee_id: int,
        delta: Decimal
    ) -> bool:
        """
        Apply a signed delta to an employee's personal budget.

        Args:
            db (AsyncSession): Database session
            employee_id (int): Employee whose budget changes
            delta (Decimal): Positive to credit, negative to debit

        Returns:
            bool: False when the employee has no budget record
        """
        if delta == 0:
            return True

        result = await db.execute(
            update(EmployeeBudget)
            .where(EmployeeBudget.employee_id == employee_id)
            .values(total_budget=EmployeeBudget.total_budget + delta)
            .execution_options(synchronize_session=False)
        )

        logger.debug(
            "Employee budget adjusted",
            employee_id=employee_id,
            delta=str(delta),
            applied=result.rowcount > 0
        )
        return result.rowcount > 0

    # ==== LEDGER ==== #

    async def _append_ledger(
        self,
        db: AsyncSession,
        project_id: int,
        transaction_type: TransactionType,
        signed_amount: Decimal,
        description: str,
        order_id: Optional[int]
    ) -> CompanyTransaction:
        result = await db.execute(
            select(Project.company_id, Project.budget).where(Project.id == project_id)
        )
        row = result.one()

        entry = CompanyTransaction(
            company_id=row.company_id,
            project_id=project_id,
            type=transaction_type.value,
            amount=signed_amount,
            order_id=order_id,
            balance_after=Decimal(row.budget),
            description=description,
        )
        db.add(entry)
        await db.flush()

        budget_transactions_total.labels(transaction_type=transaction_type.value).inc()
        budget_amount_total.labels(transaction_type=transaction_type.value).inc(
            float(abs(signed_amount))
        )
        log_business_event(
            "budget_transaction",
            project_id,
            transaction_type=transaction_type.value,
            amount=str(signed_amount),
            balance_after=str(row.budget),
            order_id=order_id,
        )
        return entry
