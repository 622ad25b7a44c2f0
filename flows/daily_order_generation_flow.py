# ==== PREFECT DAILY ORDER GENERATION FLOW ==== #

"""
Prefect flow that materializes subscription orders for each project's today.

Runs hourly and is safe to re-run: employees who already have an order for
the day are skipped.
"""

import asyncio
import argparse
from typing import Any, Dict

from prefect import flow, task, get_run_logger

from app.services.order_generation import DailyOrderGenerationService
from app.settings import settings


@task
async def generate_orders() -> Dict[str, Any]:
    logger = get_run_logger()

    summary = await DailyOrderGenerationService().generate_all()

    for failure in summary.failures:
        logger.error(f"Order generation failure: {failure}")

    logger.info(
        f"Generated {summary.orders_created} orders across {summary.projects_checked} projects, "
        f"pending settlement {summary.accumulated_cost}"
    )
    return summary.model_dump(mode="json")


@flow(
    name="daily-order-generation",
    description="Create today's orders from recurring lunch subscriptions",
    retries=0
)
async def daily_order_generation_flow() -> Dict[str, Any]:
    """
    Daily order generation flow.

    Returns:
        Dict[str, Any]: Generation summary with per-project results
    """
    logger = get_run_logger()
    logger.info("Starting daily order generation")
    return await generate_orders()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Daily order generation flow")
    parser.add_argument("--run", action="store_true", help="Run flow once locally")
    parser.add_argument("--serve", action="store_true", help="Serve flow on its schedule")

    args = parser.parse_args()

    if args.serve:
        daily_order_generation_flow.serve(
            name="daily-order-generation",
            tags=["orders", "subscriptions"],
            interval=settings.ORDER_GENERATION_INTERVAL_SECONDS
        )
    elif args.run:
        result = asyncio.run(daily_order_generation_flow())
        print(f"Flow completed: {result}")
    else:
        parser.print_help()
