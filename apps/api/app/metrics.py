from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

membership_holds_placed_total = Counter(
    "membership_holds_placed_total",
    "Total holds placed by action type",
    ["action_type"],
)

membership_holds_released_total = Counter(
    "membership_holds_released_total",
    "Total holds released manually by action type",
    ["action_type"],
)

membership_hold_rejections_total = Counter(
    "membership_hold_rejections_total",
    "Total rejected hold requests by error code",
    ["code"],
)

membership_sweep_runs_total = Counter(
    "membership_sweep_runs_total",
    "Total resume sweeps by result",
    ["result"],
)

membership_sweep_records_total = Counter(
    "membership_sweep_records_total",
    "Total holds processed by resume sweeps by outcome",
    ["status", "error_code"],
)

membership_sweep_duration_seconds = Histogram(
    "membership_sweep_duration_seconds",
    "Resume sweep duration in seconds",
)

audit_write_failures_total = Counter(
    "audit_write_failures_total",
    "Audit entries that could not be written",
    ["action_type"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        for attr in ("path_format", "path"):
            template = getattr(route, attr, None)
            if isinstance(template, str) and template:
                return _PATH_PARAM_RE.sub("{id}", template)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_hold_placed(action_type: str) -> None:
    membership_holds_placed_total.labels(action_type=action_type).inc()


def observe_hold_released(action_type: str) -> None:
    membership_holds_released_total.labels(action_type=action_type).inc()


def observe_hold_rejected(code: str) -> None:
    membership_hold_rejections_total.labels(code=code).inc()


def observe_sweep(result: str, duration: float) -> None:
    membership_sweep_runs_total.labels(result=result).inc()
    membership_sweep_duration_seconds.observe(duration)


def observe_sweep_record(status: str, error_code: str | None) -> None:
    membership_sweep_records_total.labels(status=status, error_code=error_code or "").inc()


def observe_audit_write_failure(action_type: str) -> None:
    audit_write_failures_total.labels(action_type=action_type).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
