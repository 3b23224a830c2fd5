from __future__ import annotations

import time
from dataclasses import dataclass

from flask import Flask, g, request
from prometheus_client import CollectorRegistry, Counter, GCCollector, Histogram, PlatformCollector, ProcessCollector


@dataclass(frozen=True)
class HttpMetrics:
    """Per-app registry so two app instances in one process never collide."""

    registry: CollectorRegistry
    requests_total: Counter
    request_duration: Histogram


def build_http_metrics() -> HttpMetrics:
    registry = CollectorRegistry(auto_describe=True)
    ProcessCollector(registry=registry)
    PlatformCollector(registry=registry)
    GCCollector(registry=registry)

    requests_total = Counter(
        "http_requests_total",
        "Total HTTP requests",
        ["service", "method", "endpoint", "status"],
        registry=registry,
    )
    request_duration = Histogram(
        "http_request_duration_seconds",
        "HTTP request duration in seconds",
        ["service", "method", "endpoint"],
        registry=registry,
    )
    return HttpMetrics(registry=registry, requests_total=requests_total, request_duration=request_duration)


def instrument_app(app: Flask, metrics: HttpMetrics, *, service: str) -> None:
    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _record(response):
        started = getattr(g, "request_started", None)
        # url_rule keeps label cardinality bounded (no raw ids).
        endpoint = request.url_rule.rule if request.url_rule is not None else "unmatched"
        metrics.requests_total.labels(service, request.method, endpoint, str(response.status_code)).inc()
        if started is not None:
            metrics.request_duration.labels(service, request.method, endpoint).observe(time.perf_counter() - started)
        return response
