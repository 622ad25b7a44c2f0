# ==== DOMAIN ENUMERATIONS AND DISPLAY LABELS ==== #

"""
Closed enumerations for orders, subscriptions, budgets and the ledger.

Every status is persisted and compared by its canonical value. The localized
labels shown on the admin dashboard live in the display mappings at the end of
this module and are never used for comparisons.
"""

from enum import Enum
from typing import Dict, Optional


# ==== ORDER ENUMERATIONS ==== #


class OrderStatus(str, Enum):
    """
    Lifecycle status of a single meal order.

    Status progression: ACTIVE → PAUSED/FROZEN → COMPLETED/CANCELLED
    """

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    FROZEN = "FROZEN"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class OrderKind(str, Enum):
    """Who an order row is for."""

    GUEST = "GUEST"
    LUNCH = "LUNCH"
    COMPENSATION = "COMPENSATION"


class BulkAction(str, Enum):
    """Actions accepted by the bulk order endpoint."""

    PAUSE = "pause"
    RESUME = "resume"
    CHANGE_COMBO = "change_combo"
    CANCEL = "cancel"

    @classmethod
    def parse(cls, value: str) -> Optional["BulkAction"]:
        """Parse action names case-insensitively (``changeCombo`` included)."""
        if not value:
            return None
        normalized = value.strip().lower().replace("-", "_")
        if normalized == "changecombo":
            normalized = cls.CHANGE_COMBO.value
        try:
            return cls(normalized)
        except ValueError:
            return None

    @property
    def requires_cutoff_check(self) -> bool:
        return self in (BulkAction.PAUSE, BulkAction.CHANGE_COMBO, BulkAction.CANCEL)


# ==== EMPLOYEE AND PROJECT ENUMERATIONS ==== #


class ServiceType(str, Enum):
    """Benefit an employee receives. An employee holds exactly one."""

    LUNCH = "LUNCH"
    COMPENSATION = "COMPENSATION"


class ProjectStatus(str, Enum):
    ACTIVE = "ACTIVE"
    BLOCKED = "BLOCKED"
    ARCHIVED = "ARCHIVED"


class BudgetPeriod(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


# ==== SUBSCRIPTION ENUMERATIONS ==== #


class ScheduleType(str, Enum):
    """
    Recurrence pattern of a lunch subscription.

    CUSTOM subscriptions have all their orders created up front and are
    never touched by the daily generation job.
    """

    EVERY_DAY = "EVERY_DAY"
    EVERY_OTHER_DAY = "EVERY_OTHER_DAY"
    CUSTOM = "CUSTOM"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "ScheduleType":
        """Map legacy (``WEEKDAYS``), blank and unknown values to EVERY_DAY."""
        if not value:
            return cls.EVERY_DAY
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.EVERY_DAY


class SubscriptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class MealAssignmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    ACTIVE = "ACTIVE"
    FROZEN = "FROZEN"
    CANCELLED = "CANCELLED"
    DELIVERED = "DELIVERED"


# ==== LEDGER ENUMERATIONS ==== #


class TransactionType(str, Enum):
    """Kind of an append-only ledger entry on a project budget."""

    DEPOSIT = "DEPOSIT"
    LUNCH_DEDUCTION = "LUNCH_DEDUCTION"
    GUEST_ORDER = "GUEST_ORDER"
    REFUND = "REFUND"
    CLIENT_APP_ORDER = "CLIENT_APP_ORDER"


# ==== PRESENTATION MAPPINGS ==== #


ORDER_STATUS_LABELS: Dict[OrderStatus, str] = {
    OrderStatus.ACTIVE: "Активен",
    OrderStatus.PAUSED: "Приостановлен",
    OrderStatus.FROZEN: "Заморожен",
    OrderStatus.COMPLETED: "Выполнен",
    OrderStatus.CANCELLED: "Отменён",
}

# Labels older dashboard builds still send in filters
_LEGACY_ORDER_STATUS_LABELS: Dict[str, OrderStatus] = {
    "На паузе": OrderStatus.PAUSED,
    "Завершен": OrderStatus.COMPLETED,
    "Доставлен": OrderStatus.COMPLETED,
}

ORDER_KIND_LABELS: Dict[OrderKind, str] = {
    OrderKind.GUEST: "Гость",
    OrderKind.LUNCH: "Сотрудник",
    OrderKind.COMPENSATION: "Сотрудник",
}


def display_label(status: OrderStatus) -> str:
    """Localized dashboard label for an order status."""
    return ORDER_STATUS_LABELS[status]


def parse_order_status(value: Optional[str]) -> Optional[OrderStatus]:
    """
    Resolve a status filter given either as canonical value or as label.

    Args:
        value (Optional[str]): Raw filter value

    Returns:
        Optional[OrderStatus]: Matching status, None when blank or unknown
    """
    if not value or not value.strip():
        return None

    raw = value.strip()
    try:
        return OrderStatus(raw.upper())
    except ValueError:
        pass

    for status, label in ORDER_STATUS_LABELS.items():
        if label == raw:
            return status

    return _LEGACY_ORDER_STATUS_LABELS.get(raw)
