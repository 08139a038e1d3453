"""Prometheus metrics plumbing (opt-in).

When METRICS_ENABLED=false, this module should not register collectors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from budgetgate.core.config import settings

if TYPE_CHECKING:
    from budgetgate.core.slo.models import AlertEvent, EvaluationResult, ReleaseDecision

_registry: CollectorRegistry | None = None
_c_requests: Counter | None = None
_h_latency: Histogram | None = None
_g_budget_remaining: Gauge | None = None
_g_burn_rate: Gauge | None = None
_g_status: Gauge | None = None
_g_complete: Gauge | None = None
_h_evaluation_seconds: Histogram | None = None
_c_alerts: Counter | None = None
_c_decisions: Counter | None = None
_c_eval_errors: Counter | None = None


def _buckets() -> list[float]:
    try:
        return [float(x) for x in (settings.METRICS_BUCKETS or "").split(",") if x]
    except ValueError:
        return [0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5]


def init_metrics() -> None:
    global _registry, _c_requests, _h_latency, _g_budget_remaining, _g_burn_rate, _g_status, _g_complete, _h_evaluation_seconds, _c_alerts, _c_decisions, _c_eval_errors
    if not settings.METRICS_ENABLED:
        return
    if _registry is not None:
        return  # avoid duplicate collectors on reload
    _registry = CollectorRegistry()
    ns = settings.METRICS_NAMESPACE
    buckets = _buckets()
    _c_requests = Counter(
        f"{ns}_requests_total",
        "HTTP requests",
        labelnames=("route", "method", "status"),
        registry=_registry,
    )
    _h_latency = Histogram(
        f"{ns}_request_latency_seconds",
        "HTTP request latency",
        labelnames=("route", "method", "status"),
        buckets=buckets,
        registry=_registry,
    )
    _g_budget_remaining = Gauge(
        f"{ns}_error_budget_remaining_ratio",
        "Unclamped fraction of error budget remaining",
        labelnames=("service", "slo"),
        registry=_registry,
    )
    _g_burn_rate = Gauge(
        f"{ns}_burn_rate",
        "Observed burn rate per rule window",
        labelnames=("service", "rule", "window"),
        registry=_registry,
    )
    _g_status = Gauge(
        f"{ns}_slo_status",
        "SLO status rank: 0=healthy, 1=attention, 2=warning, 3=critical, 4=exhausted",
        labelnames=("service",),
        registry=_registry,
    )
    _g_complete = Gauge(
        f"{ns}_evaluation_complete",
        "1 when the last evaluation covered every burn-rate rule",
        labelnames=("service",),
        registry=_registry,
    )
    _h_evaluation_seconds = Histogram(
        f"{ns}_evaluation_seconds",
        "Duration of one service evaluation tick",
        labelnames=("service",),
        buckets=buckets,
        registry=_registry,
    )
    _c_alerts = Counter(
        f"{ns}_alert_transitions_total",
        "Burn-rate alert transitions",
        labelnames=("service", "severity", "transition"),
        registry=_registry,
    )
    _c_decisions = Counter(
        f"{ns}_release_decisions_total",
        "Release decisions by outcome",
        labelnames=("outcome",),
        registry=_registry,
    )
    _c_eval_errors = Counter(
        f"{ns}_evaluation_errors_total",
        "Evaluations that produced no status",
        labelnames=("service", "kind"),
        registry=_registry,
    )


def observe_request(route: str, method: str, status: int, dur_s: float) -> None:
    if not settings.METRICS_ENABLED or _registry is None:
        return
    # Keep labels low-cardinality: route template paths only
    _c_requests.labels(route=route, method=method, status=str(status)).inc()
    _h_latency.labels(route=route, method=method, status=str(status)).observe(dur_s)


def observe_evaluation(result: EvaluationResult, dur_s: float) -> None:
    if not settings.METRICS_ENABLED or _registry is None:
        return
    service = result.service
    _g_budget_remaining.labels(service=service, slo=result.slo_name).set(result.budget.remaining_ratio)
    _g_status.labels(service=service).set(result.status.rank)
    _g_complete.labels(service=service).set(1 if result.complete else 0)
    _h_evaluation_seconds.labels(service=service).observe(max(dur_s, 0.0))
    for reading in result.readings:
        rule = str(reading.rule_index)
        _g_burn_rate.labels(service=service, rule=rule, window="short").set(reading.short_burn)
        _g_burn_rate.labels(service=service, rule=rule, window="long").set(reading.long_burn)


def count_alert(event: AlertEvent) -> None:
    if not settings.METRICS_ENABLED or _registry is None:
        return
    _c_alerts.labels(
        service=event.service,
        severity=event.rule_severity.value,
        transition=event.transition.value,
    ).inc()


def count_decision(decision: ReleaseDecision) -> None:
    if not settings.METRICS_ENABLED or _registry is None:
        return
    _c_decisions.labels(outcome=decision.outcome.value).inc()


def count_evaluation_error(service: str, kind: str) -> None:
    if not settings.METRICS_ENABLED or _registry is None:
        return
    _c_eval_errors.labels(service=service, kind=kind).inc()


def metrics_exposition() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED or _registry is None:
        return (b"metrics disabled", CONTENT_TYPE_LATEST)
    data = generate_latest(_registry)
    return (data, CONTENT_TYPE_LATEST)
