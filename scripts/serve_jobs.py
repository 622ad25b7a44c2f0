#!/usr/bin/env python3

# ==== LUNCH LEDGER JOB RUNNER ==== #

"""
Serve the Lunch Ledger background jobs from a single long-running process.

Registers the three scheduled flows with the Prefect API and keeps polling
for runs:

1. daily-settlement: every 30 minutes
2. daily-order-generation: hourly
3. subscription-auto-renewal: daily at 00:00 UTC

Observability is initialized once for the process: loguru sinks, the OTLP
exporter when configured and the Prometheus endpoint on METRICS_PORT.

Usage:
    python scripts/serve_jobs.py [--flows FLOW_NAMES] [--create-schema]

Examples:
    # Serve all jobs
    python scripts/serve_jobs.py

    # Serve settlement only
    python scripts/serve_jobs.py --flows daily-settlement
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from prefect import serve

from app.observability.logging import get_logger, init_logging
from app.observability.metrics import start_metrics_server
from app.observability.tracing import init_tracing
from app.settings import settings
from app.storage.db import create_schema, init_database
from flows import (
    daily_order_generation_flow,
    daily_settlement_flow,
    subscription_renewal_flow,
)


logger = get_logger(__name__)


def build_deployments(selected: Optional[List[str]] = None) -> list:
    """
    Build deployments for the selected jobs.

    Args:
        selected (Optional[List[str]]): Deployment names to keep, all when empty

    Returns:
        list: Prefect runner deployments
    """
    deployments = [
        daily_settlement_flow.to_deployment(
            name="daily-settlement",
            tags=["settlement", "budget"],
            description="Complete today's delivered orders after each project's cutoff",
            interval=settings.SETTLEMENT_INTERVAL_SECONDS
        ),
        daily_order_generation_flow.to_deployment(
            name="daily-order-generation",
            tags=["orders", "subscriptions"],
            description="Create today's subscription orders after each project's cutoff",
            interval=settings.ORDER_GENERATION_INTERVAL_SECONDS
        ),
        subscription_renewal_flow.to_deployment(
            name="subscription-auto-renewal",
            tags=["subscriptions", "renewal"],
            description="Renew expired company subscriptions",
            cron=settings.RENEWAL_SCHEDULE_CRON
        ),
    ]

    if selected:
        deployments = [d for d in deployments if d.name in selected]
    return deployments


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve Lunch Ledger background jobs")
    parser.add_argument(
        "--flows",
        type=str,
        help="Comma-separated deployment names (e.g., daily-settlement,daily-order-generation)"
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before serving (local runs only)"
    )
    args = parser.parse_args()

    init_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    init_database()
    init_tracing(settings.SERVICE_NAME)
    start_metrics_server()

    if args.create_schema:
        asyncio.run(create_schema())

    selected = [name.strip() for name in args.flows.split(",")] if args.flows else None
    deployments = build_deployments(selected)
    if not deployments:
        logger.error("No matching deployments", requested=args.flows)
        sys.exit(1)

    logger.info(
        "Serving background jobs",
        deployments=[d.name for d in deployments],
        environment=settings.APP_ENV
    )
    serve(*deployments)


if __name__ == "__main__":
    main()
