# ==== PREFECT FLOWS PACKAGE ==== #

"""
Prefect flows for the Lunch Ledger background jobs.

- daily_settlement_flow: completes delivered orders and debits project budgets
- daily_order_generation_flow: creates today's orders from lunch subscriptions
- subscription_renewal_flow: renews expired company subscriptions
"""

from .daily_settlement_flow import daily_settlement_flow
from .daily_order_generation_flow import daily_order_generation_flow
from .subscription_renewal_flow import subscription_renewal_flow

__all__ = [
    "daily_settlement_flow",
    "daily_order_generation_flow",
    "subscription_renewal_flow"
]
