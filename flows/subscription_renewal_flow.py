# ==== PREFECT SUBSCRIPTION AUTO-RENEWAL FLOW ==== #

"""
Prefect flow that rolls expired company subscriptions into the next period.

Scheduled daily at 00:00 UTC.
"""

import asyncio
import argparse
from typing import Any, Dict

from prefect import flow, task, get_run_logger

from app.services.subscription_renewal import SubscriptionRenewalService
from app.settings import settings


@task
async def renew_subscriptions() -> Dict[str, Any]:
    """
    Complete expired subscriptions and create their successors.

    Returns:
        Dict[str, Any]: Serialized renewal summary
    """
    logger = get_run_logger()

    summary = await SubscriptionRenewalService().renew_expired()

    for failure in summary.failures:
        logger.error(f"Renewal failure: {failure}")
    for outcome in summary.results:
        if outcome.skipped_reason:
            logger.warning(
                f"Subscription {outcome.subscription_id} not renewed: {outcome.skipped_reason}"
            )

    logger.info(
        f"Renewed {summary.subscriptions_renewed}/{summary.subscriptions_checked} subscriptions"
    )
    return summary.model_dump(mode="json")


@flow(
    name="subscription-auto-renewal",
    description="Renew expired company subscriptions when budget allows",
    retries=0
)
async def subscription_renewal_flow() -> Dict[str, Any]:
    logger = get_run_logger()
    logger.info("Starting subscription auto-renewal")
    return await renew_subscriptions()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Subscription auto-renewal flow")
    parser.add_argument("--run", action="store_true", help="Run flow once locally")
    parser.add_argument("--serve", action="store_true", help="Serve flow on its schedule")

    args = parser.parse_args()

    if args.serve:
        subscription_renewal_flow.serve(
            name="subscription-auto-renewal",
            tags=["subscriptions", "renewal"],
            cron=settings.RENEWAL_SCHEDULE_CRON
        )
    elif args.run:
        result = asyncio.run(subscription_renewal_flow())
        print(f"Flow completed: {result}")
    else:
        parser.print_help()
