"""
Prometheus metrics for the catalog sync.

- Provider API metrics (requests by endpoint and status, rate-limit retries)
- Sync pass metrics (runs by status, per-model outcomes, pass duration)
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# ==================== Provider API Metrics ====================
fal_api_requests = Counter(
    "fal_api_requests_total",
    "Total requests sent to the fal.ai API",
    ["endpoint", "status"],
)

fal_pricing_rate_limit_retries = Counter(
    "fal_pricing_rate_limit_retries_total",
    "Pricing batch retries caused by HTTP 429 responses",
)

# ==================== Sync Metrics ====================
catalog_sync_runs = Counter(
    "catalog_sync_runs_total",
    "Catalog sync passes by final status",
    ["status"],
)

catalog_sync_models = Counter(
    "catalog_sync_models_total",
    "Models processed by the catalog sync by outcome",
    ["outcome"],
)

catalog_sync_duration = Histogram(
    "catalog_sync_duration_seconds",
    "Duration of a full catalog sync pass in seconds",
    buckets=(10, 30, 60, 120, 300, 600, 1200, 1800, 3600),
)


def record_api_request(endpoint: str, status: int | str) -> None:
    fal_api_requests.labels(endpoint=endpoint, status=str(status)).inc()


def record_model_outcome(outcome: str) -> None:
    """outcome is one of: added, updated, failed"""
    catalog_sync_models.labels(outcome=outcome).inc()


def record_sync_run(status: str, duration: float | None = None) -> None:
    catalog_sync_runs.labels(status=status).inc()
    if duration is not None:
        catalog_sync_duration.observe(duration)
