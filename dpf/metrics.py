"""
Prometheus metrics for the DPF permission engine.

This module centralizes counters, gauges and histograms for:
- Verdicts by decision and reason
- Probe outcomes (matched / not found / rejected / timeout / unavailable)
- Evaluation latency
- Policy ingestion results and the number of live policy records

Each `Metrics` instance owns its own `CollectorRegistry`, so tests and
embedded engines never collide on metric names. Applications that expose a
process-wide `/metrics` endpoint use `get_metrics()` and serve
`METRICS.registry` with `prometheus_client.generate_latest`.

Typical usage:

    from dpf.metrics import get_metrics

    METRICS = get_metrics()
    with METRICS.time_evaluation():
        verdict = evaluate(...)
    METRICS.observe_verdict(verdict.decision.value, verdict.reason.value)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

_NS = "dpf"

_LATENCY_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class Metrics:
    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.verdicts = Counter(
            "verdicts_total",
            "Permission verdicts by decision and reason",
            labelnames=("decision", "reason"),
            namespace=_NS,
            registry=self.registry,
        )
        self.probes = Counter(
            "probes_total",
            "Proof probes by outcome",
            labelnames=("outcome",),
            namespace=_NS,
            registry=self.registry,
        )
        self.evaluate_seconds = Histogram(
            "evaluate_seconds",
            "Wall time of one permission evaluation",
            namespace=_NS,
            buckets=_LATENCY_BUCKETS,
            registry=self.registry,
        )
        self.ingests = Counter(
            "ingest_total",
            "Policy root observations by result",
            labelnames=("result",),
            namespace=_NS,
            registry=self.registry,
        )
        self.records = Gauge(
            "policy_records",
            "Policy records currently held",
            namespace=_NS,
            registry=self.registry,
        )

    # ---------------- helpers ----------------

    def observe_verdict(self, decision: str, reason: str) -> None:
        self.verdicts.labels(decision=decision, reason=reason).inc()

    def observe_probe(self, outcome: str) -> None:
        self.probes.labels(outcome=outcome).inc()

    def observe_ingest(self, result: str) -> None:
        self.ingests.labels(result=result).inc()

    def set_records(self, n: int) -> None:
        self.records.set(n)

    @contextmanager
    def time_evaluation(self) -> Iterator[None]:
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.evaluate_seconds.observe(time.perf_counter() - t0)

    def render(self) -> bytes:
        """Prometheus text exposition of this registry."""
        return generate_latest(self.registry)


_METRICS: Optional[Metrics] = None


def get_metrics() -> Metrics:
    """Process-wide metrics instance (created on first use)."""
    global _METRICS
    if _METRICS is None:
        _METRICS = Metrics()
    return _METRICS


__all__ = ["Metrics", "get_metrics"]
