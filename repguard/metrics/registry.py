from __future__ import annotations
from dataclasses import dataclass
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


@dataclass
class GuardMetrics:
    registry: CollectorRegistry
    threat_events: Counter
    denied_requests: Counter
    sources_blocked: Counter
    blocked_sources: Gauge
    risk_score: Gauge
    request_latency: Histogram


def build_metrics(registry: CollectorRegistry | None = None) -> GuardMetrics:
    """
    App başına ayrı registry: create_app() her çağrıldığında (testlerde de)
    "Duplicated timeseries" hatası olmadan temiz sayaçlar kurulur.
    """
    reg = registry or CollectorRegistry()
    threat_events = Counter(
        "threat_events_total",
        "Threat events appended to the ledger",
        ["type"],
        registry=reg,
    )
    denied_requests = Counter(
        "denied_requests_total",
        "Requests denied by the guard",
        ["reason"],
        registry=reg,
    )
    sources_blocked = Counter(
        "sources_blocked_total",
        "Transitions of a source into the blocked state",
        registry=reg,
    )
    blocked_sources = Gauge(
        "blocked_sources",
        "Sources currently blocked by reputation",
        registry=reg,
    )
    risk_score = Gauge(
        "risk_score",
        "Aggregate risk score over the scoring window (0-100)",
        registry=reg,
    )
    request_latency = Histogram(
        "request_latency_seconds",
        "Request processing time in seconds",
        ["route", "method", "status"],
        registry=reg,
        buckets=LATENCY_BUCKETS,
    )
    # label'lı sayaçlar /metrics'te ilk istekten önce de görünsün
    for reason in ("reputation", "signature", "rate_limit", "oversize"):
        denied_requests.labels(reason=reason).inc(0)
    return GuardMetrics(
        registry=reg,
        threat_events=threat_events,
        denied_requests=denied_requests,
        sources_blocked=sources_blocked,
        blocked_sources=blocked_sources,
        risk_score=risk_score,
        request_latency=request_latency,
    )
