"""
Pipeline Telemetry Module

Prometheus metrics for PUBG API requests, aggregation cache usage and
match normalization outcomes.
"""

from pubgstats.telemetry.metrics import (
    pubg_provider_requests_total,
    pubg_provider_errors_total,
    pubg_provider_latency_ms,
    pubg_aggregation_cache_total,
    pubg_matches_normalized_total,
    record_provider_request,
    record_provider_error,
    record_cache_lookup,
    record_normalization,
    get_metrics_text,
)

__all__ = [
    "pubg_provider_requests_total",
    "pubg_provider_errors_total",
    "pubg_provider_latency_ms",
    "pubg_aggregation_cache_total",
    "pubg_matches_normalized_total",
    "record_provider_request",
    "record_provider_error",
    "record_cache_lookup",
    "record_normalization",
    "get_metrics_text",
]
