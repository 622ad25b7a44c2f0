"""Pydantic schemas for order management requests and results."""

import datetime as dt
import math
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.business.enums import OrderKind, OrderStatus, ServiceType


T = TypeVar("T")


# ==== REQUESTS ==== #


class OrderFilters(BaseModel):
    """Filters for the merged order listing. Blank values mean no filter."""

    status: Optional[str] = None
    date: Optional[dt.date] = None
    address_id: Optional[int] = None
    type: Optional[str] = Field(None, description="guest or employee")
    service_type: Optional[str] = None
    combo_type: Optional[str] = None
    search: Optional[str] = None
    project_id: Optional[int] = None

    @field_validator("status", "type", "service_type", "combo_type", "search")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()


class CreateGuestOrderRequest(BaseModel):
    project_id: int
    order_name: str = Field(..., min_length=1, max_length=256)
    combo_type: str
    quantity: int = Field(1, ge=1, le=100)
    date: dt.date


class AssignMealsRequest(BaseModel):
    employee_ids: List[int] = Field(..., min_length=1)
    combo_type: str
    date: dt.date


class BulkActionRequest(BaseModel):
    order_ids: List[int] = Field(..., min_length=1)
    action: str
    combo_type: Optional[str] = None


# ==== RESPONSES ==== #


class OrderResponse(BaseModel):
    """One row of the order listing: a lunch/guest order or a compensation record."""

    model_config = ConfigDict(use_enum_values=False)

    id: int
    kind: OrderKind
    employee_id: Optional[int] = None
    name: str
    employee_phone: Optional[str] = None
    date: dt.date
    status: OrderStatus
    status_label: str
    project_id: Optional[int] = None
    address: Optional[str] = None
    service_type: Optional[ServiceType] = None
    combo_type: Optional[str] = None
    amount: Decimal
    currency_code: str
    is_guest_order: bool = False
    restaurant_name: Optional[str] = None
    frozen_reason: Optional[str] = None


class PagedResult(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total / self.page_size)


class CreateGuestOrderResult(BaseModel):
    orders: List[OrderResponse]
    total_cost: Decimal
    currency_code: str
    message: str


class AssignMealsResult(BaseModel):
    created: int
    skipped: int
    skip_reasons: List[str] = Field(default_factory=list)
    orders: List[OrderResponse] = Field(default_factory=list)


class BulkActionResult(BaseModel):
    updated_count: int
    skipped_count: int = 0
    refunded_amount: Decimal = Decimal("0")
    skip_reasons: List[str] = Field(default_factory=list)
    message: str


class FreezeResult(BaseModel):
    order: OrderResponse
    replacement_order: Optional[OrderResponse] = None
    freezes_this_week: int
    freezes_remaining: int
    subscription_end_date: Optional[dt.date] = None


class EmployeeFreezeInfo(BaseModel):
    employee_id: int
    freezes_this_week: int
    freezes_remaining: int
    max_freezes_per_week: int
    frozen_orders: List[OrderResponse] = Field(default_factory=list)
