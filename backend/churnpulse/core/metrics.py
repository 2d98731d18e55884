# Centralized Prometheus metrics. The middleware below records timing
# and counts for every request; the record_* helpers are called from
# the scoring pipeline so dashboards can track model health.

from time import monotonic

from fastapi import Request
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_LATENCY = Histogram(
    "api_request_latency_seconds",
    "Latency of API requests in seconds",
    ["method", "endpoint"],
)
REQUEST_COUNT = Counter(
    "api_request_count_total",
    "Total API requests",
    ["method", "endpoint", "http_status"],
)

# One increment per record that made it through normalize -> score ->
# persist, labelled by ingestion path and which strategy set the score.
RECORDS_SCORED_TOTAL = Counter(
    "churn_records_scored_total",
    "Records scored and persisted",
    ["path", "strategy", "risk_level"],
)
RECORDS_FAILED_TOTAL = Counter(
    "churn_records_failed_total",
    "Records rejected or failed during ingestion",
    ["path"],
)

MODEL_REQUESTS_TOTAL = Counter(
    "churn_model_requests_total",
    "Calls to the external churn model grouped by outcome",
    ["outcome"],  # outcome: success|http_error|network_error|malformed
)
MODEL_LATENCY_SECONDS = Histogram(
    "churn_model_latency_seconds",
    "External churn model latency in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30],
)

PLAYBOOK_TRIGGERS_TOTAL = Counter(
    "playbook_triggers_total",
    "Downstream playbook trigger attempts",
    ["outcome"],
)


def _label(value: object | None, default: str = "unknown") -> str:
    if value is None:
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return str(value)


def record_scored(*, path: str, strategy: str, risk_level: str) -> None:
    RECORDS_SCORED_TOTAL.labels(
        path=_label(path),
        strategy=_label(strategy),
        risk_level=_label(risk_level),
    ).inc()


def record_failed(*, path: str) -> None:
    RECORDS_FAILED_TOTAL.labels(path=_label(path)).inc()


def record_model_request(outcome: str, duration: float | None = None) -> None:
    MODEL_REQUESTS_TOTAL.labels(outcome=_label(outcome)).inc()
    if duration is not None:
        MODEL_LATENCY_SECONDS.observe(duration)


def record_playbook_trigger(*, success: bool) -> None:
    PLAYBOOK_TRIGGERS_TOTAL.labels(outcome="success" if success else "failure").inc()


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = monotonic()
        response = await call_next(request)
        duration = monotonic() - start

        route = request.scope.get("route")
        route_path = getattr(route, "path", None) or request.url.path
        REQUEST_LATENCY.labels(request.method, route_path).observe(duration)
        REQUEST_COUNT.labels(request.method, route_path, response.status_code).inc()
        return response
