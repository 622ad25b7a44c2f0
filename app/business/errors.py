# ==== APPLICATION ERRORS AND ERROR CODES ==== #

"""
Error taxonomy for the order engine.

Interactive operations raise these errors up to the transport boundary. Bulk
operations report per-item problems as skip reasons instead, and background
jobs catch everything per project or per subscription.
"""

from decimal import Decimal
from datetime import time
from enum import Enum
from typing import Any, Dict, Optional


# ==== ERROR CODES ==== #


class ErrorCode(str, Enum):
    """Machine-readable error codes returned alongside human messages."""

    NOT_FOUND = "NOT_FOUND"
    PROJ_NOT_FOUND = "PROJ_NOT_FOUND"
    EMP_NOT_FOUND = "EMP_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"

    VALIDATION_ERROR = "VALIDATION_ERROR"
    ORDER_CUTOFF_PASSED = "ORDER_CUTOFF_PASSED"
    ORDER_PAST_DATE_NOT_ALLOWED = "ORDER_PAST_DATE_NOT_ALLOWED"
    ORDER_INVALID_TRANSITION = "ORDER_INVALID_TRANSITION"
    ORDER_GUEST_CANNOT_FREEZE = "ORDER_GUEST_CANNOT_FREEZE"
    ORDER_PROJECT_MISSING = "ORDER_PROJECT_MISSING"
    BUDGET_INSUFFICIENT = "BUDGET_INSUFFICIENT"
    FREEZE_LIMIT_EXCEEDED = "FREEZE_LIMIT_EXCEEDED"
    FREEZE_NOT_FROZEN = "FREEZE_NOT_FROZEN"
    SUB_NOT_FOUND = "SUB_NOT_FOUND"

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


# ==== EXCEPTION CLASSES ==== #


class AppError(Exception):
    """Base class for errors surfaced to callers with a code and message."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the transport layer."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(AppError):
    """Entity is absent or belongs to another company."""

    @classmethod
    def entity(cls, entity_type: str, entity_id: Any, code: ErrorCode = ErrorCode.NOT_FOUND) -> "NotFoundError":
        return cls(
            code,
            f"{entity_type} {entity_id} not found",
            {"entity_type": entity_type, "id": entity_id},
        )


class BusinessRuleError(AppError):
    """A business rule rejected the request; the caller must change the input."""

    @classmethod
    def cutoff_passed(cls, cutoff_time: time, order_date: Any = None) -> "BusinessRuleError":
        cutoff = cutoff_time.strftime("%H:%M")
        return cls(
            ErrorCode.ORDER_CUTOFF_PASSED,
            f"Order changes for today closed at {cutoff}. "
            f"Orders for tomorrow and later can still be changed.",
            {"cutoff_time": cutoff, "order_date": str(order_date) if order_date else None},
        )

    @classmethod
    def budget_insufficient(
        cls,
        required: Decimal,
        available: Decimal,
        currency: str = ""
    ) -> "BusinessRuleError":
        suffix = f" {currency}" if currency else ""
        return cls(
            ErrorCode.BUDGET_INSUFFICIENT,
            f"Insufficient budget: required {required:.2f}{suffix}, available {available:.2f}{suffix}",
            {"required": str(required), "available": str(available), "currency": currency},
        )


class ConfigurationError(AppError):
    """Invalid deployment or project configuration, such as an unknown timezone."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCode.CONFIGURATION_ERROR, message, details)
