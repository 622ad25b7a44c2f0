"""Pydantic schemas for background job results."""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class ProjectSettlementResult(BaseModel):
    project_id: int
    settled: bool = False
    skipped_reason: Optional[str] = None
    local_date: Optional[dt.date] = None
    orders_completed: int = 0
    employee_count: int = 0
    guest_count: int = 0
    total_amount: Decimal = Decimal("0")
    balance_after: Optional[Decimal] = None


class SettlementRunSummary(BaseModel):
    projects_checked: int = 0
    projects_settled: int = 0
    projects_failed: int = 0
    orders_completed: int = 0
    total_amount: Decimal = Decimal("0")
    results: List[ProjectSettlementResult] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)


class ProjectGenerationResult(BaseModel):
    project_id: int
    skipped_reason: Optional[str] = None
    local_date: Optional[dt.date] = None
    orders_created: int = 0
    subscriptions_skipped: int = 0
    # Cost of the created orders; debited later by the settlement
    accumulated_cost: Decimal = Decimal("0")


class GenerationRunSummary(BaseModel):
    projects_checked: int = 0
    projects_failed: int = 0
    orders_created: int = 0
    accumulated_cost: Decimal = Decimal("0")
    results: List[ProjectGenerationResult] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)


class SubscriptionRenewalResult(BaseModel):
    subscription_id: int
    renewed: bool = False
    skipped_reason: Optional[str] = None
    new_subscription_id: Optional[int] = None
    renewal_cost: Decimal = Decimal("0")
    assignments_created: int = 0


class RenewalRunSummary(BaseModel):
    subscriptions_checked: int = 0
    subscriptions_renewed: int = 0
    subscriptions_failed: int = 0
    results: List[SubscriptionRenewalResult] = Field(default_factory=list)
    failures: List[str] = Field(default_factory=list)
