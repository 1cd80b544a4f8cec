"""
Prometheus metrics for the match pipeline.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

ALLOWED LABELS (bounded sets):
- endpoint:     "matches", "tournaments", "players" (max ~5)
- status_code:  "200", "404", "429", "500", "0" (max ~10)
- error_code:   "timeout", "request_error", "http_4xx", "http_5xx" (max ~10)
- result:       "hit", "miss", "bypass"
- outcome:      "ok", "failed"

FORBIDDEN AS LABELS: match ids, tournament ids, player names, URLs.
Use logs for per-match debugging.
"""

import logging

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# PROVIDER METRICS
# =============================================================================

pubg_provider_requests_total = Counter(
    "pubg_provider_requests_total",
    "Total requests to the PUBG API",
    ["endpoint", "status_code"],
)

pubg_provider_errors_total = Counter(
    "pubg_provider_errors_total",
    "Total failed requests to the PUBG API",
    ["endpoint", "error_code"],
)

pubg_provider_latency_ms = Histogram(
    "pubg_provider_latency_ms",
    "Request latency in milliseconds",
    ["endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# =============================================================================
# PIPELINE METRICS
# =============================================================================

pubg_aggregation_cache_total = Counter(
    "pubg_aggregation_cache_total",
    "Aggregation cache lookups",
    ["result"],
)

pubg_matches_normalized_total = Counter(
    "pubg_matches_normalized_total",
    "Match documents normalized into relational tables",
    ["outcome"],
)


def _error_code_for_status(status_code: int) -> str:
    if status_code == 0:
        return "request_error"
    if status_code == 429:
        return "rate_limit"
    if 400 <= status_code < 500:
        return "http_4xx"
    return "http_5xx"


def record_provider_request(endpoint: str, status_code: int, latency_ms: float) -> None:
    """Record a provider request; non-2xx statuses also count as errors."""
    try:
        pubg_provider_requests_total.labels(
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()
        pubg_provider_latency_ms.labels(endpoint=endpoint).observe(latency_ms)
        if not 200 <= status_code < 300:
            pubg_provider_errors_total.labels(
                endpoint=endpoint,
                error_code=_error_code_for_status(status_code),
            ).inc()
    except Exception as e:
        logger.debug(f"Failed to record provider metric: {e}")


def record_provider_error(endpoint: str, error_code: str) -> None:
    try:
        pubg_provider_errors_total.labels(endpoint=endpoint, error_code=error_code).inc()
    except Exception as e:
        logger.debug(f"Failed to record provider error metric: {e}")


def record_cache_lookup(result: str) -> None:
    try:
        pubg_aggregation_cache_total.labels(result=result).inc()
    except Exception as e:
        logger.debug(f"Failed to record cache metric: {e}")


def record_normalization(outcome: str) -> None:
    try:
        pubg_matches_normalized_total.labels(outcome=outcome).inc()
    except Exception as e:
        logger.debug(f"Failed to record normalization metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
