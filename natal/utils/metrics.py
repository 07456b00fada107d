# natal/utils/metrics.py
from __future__ import annotations

from typing import Final

from prometheus_client import Counter, Gauge, Histogram

__all__ = ["MET_REQUESTS", "REQ_LATENCY", "MET_CHART_FAILURES", "MET_CHARTS", "GAUGE_APP_UP", "seed"]

# Process-wide collectors on the default registry; create_app() may run many
# times (tests) but these are defined once at import.
MET_REQUESTS: Final = Counter("natal_api_requests_total", "API requests", ["route"])
REQ_LATENCY: Final = Histogram("natal_request_seconds", "API request latency", ["route"])
MET_CHARTS: Final = Counter("natal_charts_total", "Charts assembled", ["route"])
MET_CHART_FAILURES: Final = Counter(
    "natal_chart_failures_total", "Chart failures by pipeline stage and error kind", ["stage", "kind"]
)
GAUGE_APP_UP: Final = Gauge("natal_app_up", "1 if app is running")

SEEDED_ROUTES = (
    "/", "/api/health-check", "/api/chart", "/api/chart/compact",
    "/api/cities", "/api/config/aspects", "/health", "/healthz", "/metrics",
)


def seed() -> None:
    """Touch label sets so dashboards see zeros before the first request."""
    for route in SEEDED_ROUTES:
        MET_REQUESTS.labels(route=route).inc(0)
        REQ_LATENCY.labels(route=route).observe(0.0)
    for route in ("/api/chart", "/api/chart/compact"):
        MET_CHARTS.labels(route=route).inc(0)
    MET_CHART_FAILURES.labels(stage="awaiting_inputs", kind="invalid_input").inc(0)
    GAUGE_APP_UP.set(1.0)
