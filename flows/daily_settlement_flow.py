# ==== PREFECT DAILY SETTLEMENT FLOW ==== #

"""
Prefect flow for the end-of-day settlement of delivered orders.

Runs every 30 minutes. Projects whose local cutoff has not passed yet are
skipped and picked up by a later run; projects already settled for the day
find no ACTIVE orders and are left untouched.
"""

import asyncio
import argparse
from typing import Any, Dict

from prefect import flow, task, get_run_logger

from app.services.settlement import DailySettlementService
from app.settings import settings


# ==== TASK DEFINITIONS ==== #


@task
async def settle_projects() -> Dict[str, Any]:
    """
    Settle today's active orders for every active project.

    Returns:
        Dict[str, Any]: Serialized settlement summary
    """
    logger = get_run_logger()

    summary = await DailySettlementService().settle_all()

    for failure in summary.failures:
        logger.error(f"Settlement failure: {failure}")

    logger.info(
        f"Settled {summary.projects_settled}/{summary.projects_checked} projects, "
        f"{summary.orders_completed} orders, total {summary.total_amount}"
    )
    return summary.model_dump(mode="json")


# ==== MAIN FLOW ==== #


@flow(
    name="daily-settlement",
    description="Complete today's delivered orders and debit project budgets",
    retries=0
)
async def daily_settlement_flow() -> Dict[str, Any]:
    """
    Daily settlement flow.

    Returns:
        Dict[str, Any]: Settlement summary with per-project results
    """
    logger = get_run_logger()
    logger.info("Starting daily settlement")

    result = await settle_projects()

    logger.info(
        f"Daily settlement finished: {result['projects_failed']} project failures"
    )
    return result


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Daily settlement flow")
    parser.add_argument("--run", action="store_true", help="Run flow once locally")
    parser.add_argument("--serve", action="store_true", help="Serve flow on its schedule")

    args = parser.parse_args()

    if args.serve:
        daily_settlement_flow.serve(
            name="daily-settlement",
            tags=["settlement", "budget"],
            interval=settings.SETTLEMENT_INTERVAL_SECONDS
        )
    elif args.run:
        result = asyncio.run(daily_settlement_flow())
        print(f"Flow completed: {result}")
    else:
        parser.print_help()
