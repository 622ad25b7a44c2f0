# ==== PROMETHEUS METRICS ==== #

"""
Prometheus metrics for monitoring the Lunch Ledger order engine.

This module provides order, budget and background job metrics with Prometheus
integration. The jobs run outside any web server, so metrics are exposed
through the prometheus_client standalone HTTP exporter.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server
)


# ==== ORDER METRICS ==== #

orders_created_total = Counter(
    "lunch_orders_created_total",
    "Total orders created by kind and origin",
    ["kind", "origin"]  # origin: guest, assignment, generation, freeze
)

bulk_actions_total = Counter(
    "lunch_bulk_actions_total",
    "Total bulk order actions by action and outcome",
    ["action", "outcome"]  # outcome: updated, skipped
)

order_rejections_total = Counter(
    "lunch_order_rejections_total",
    "Total interactive order requests rejected by error code",
    ["operation", "code"]
)


# ==== BUDGET METRICS ==== #

budget_transactions_total = Counter(
    "lunch_budget_transactions_total",
    "Total ledger entries written by transaction type",
    ["transaction_type"]
)

budget_amount_total = Counter(
    "lunch_budget_amount_total",
    "Total ledger amount moved by transaction type (absolute value)",
    ["transaction_type"]
)


# ==== BACKGROUND JOB METRICS ==== #

job_runs_total = Counter(
    "lunch_job_runs_total",
    "Total background job runs",
    ["job"]
)

job_failures_total = Counter(
    "lunch_job_failures_total",
    "Total per-unit failures inside background jobs",
    ["job"]
)

job_duration_seconds = Histogram(
    "lunch_job_duration_seconds",
    "Background job run duration in seconds",
    ["job"]
)

settled_orders_total = Counter(
    "lunch_settled_orders_total",
    "Total orders completed by the daily settlement",
    ["kind"]
)

generated_orders_total = Counter(
    "lunch_generated_orders_total",
    "Total orders created by the daily generation job"
)

renewed_subscriptions_total = Counter(
    "lunch_renewed_subscriptions_total",
    "Total company subscriptions renewed"
)


# ==== SYSTEM METRICS ==== #

db_sessions_active = Gauge(
    "lunch_db_sessions_active",
    "Number of open unit-of-work database sessions"
)

app_info = Gauge(
    "lunch_app_info",
    "Application information",
    ["version", "environment", "service_name"]
)


def init_metrics() -> None:
    """Initialize metrics collection."""
    from app.settings import settings
    app_info.labels(
        version="0.1.0",
        environment=settings.APP_ENV,
        service_name=settings.SERVICE_NAME
    ).set(1)


def start_metrics_server(port: int | None = None) -> None:
    """
    Expose metrics for Prometheus scraping.

    Args:
        port (int | None): Listen port, defaults to ``METRICS_PORT``
    """
    from app.settings import settings
    init_metrics()
    start_http_server(port or settings.METRICS_PORT)
