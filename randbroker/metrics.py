"""
Prometheus metrics for the broker.

Instruments:
  • requests_total           — admitted requests, labeled by data type
  • fulfillments_total       — fulfillment callbacks emitted, labeled by path
  • expired_total            — commitments dropped unfulfilled during a scan
  • oracle_reports_total     — oracle reports, labeled by outcome
  • beacon_callbacks_total   — beacon callbacks, labeled by outcome
  • delivery_failures_total  — outbound messages the host failed to deliver, by kind
  • oracle_batch_size        — matched commitments per accepted report
  • execute_seconds          — wall time per execute call

Label vocabularies are small and fixed; unknown values fold into "other".

Usage
-----
    from randbroker.metrics import METRICS

    METRICS.record_request("hex")
    METRICS.record_oracle_report("accepted")
    with METRICS.execute_timer():
        broker.execute(...)

Tests and embedded hosts that need isolation construct their own `Metrics`
with a private CollectorRegistry.
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable

from prometheus_client import REGISTRY, Counter, Histogram

# --------- Vocabularies (kept small for bounded cardinality) ---------

_DATA_TYPES = ("hex", "int")

_PATHS = (
    "oracle",   # matched by a signed oracle report
    "beacon",   # delivered directly by the beacon proxy
)

_ORACLE_OUTCOMES = (
    "accepted",
    "unregistered",
    "bad_signature",
    "bad_api_key",
    "parse_error",
)

_BEACON_OUTCOMES = (
    "fulfilled",
    "noop",          # correlation id not pending (duplicate or late)
    "unauthorized",
    "invalid",
)

_MESSAGE_KINDS = (
    "beacon_request",
    "receive_hex_randomness",
    "receive_int_randomness",
    "bank_send",
)

_BATCH_BUCKETS = (0, 1, 2, 5, 10, 20, 50, 100, 256)

_EXECUTE_BUCKETS = (0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0)


class Metrics:
    """
    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "randbroker",
        subsystem: str = "broker",
        registry=REGISTRY,
        batch_buckets: Iterable[float] = _BATCH_BUCKETS,
        execute_buckets: Iterable[float] = _EXECUTE_BUCKETS,
    ) -> None:
        self.registry = registry
        common = dict(namespace=namespace, subsystem=subsystem, registry=registry)
        self.requests_total = Counter(
            "requests_total",
            "Randomness requests admitted, labeled by data type.",
            labelnames=("data_type",),
            **common,
        )
        self.fulfillments_total = Counter(
            "fulfillments_total",
            "Fulfillment callbacks emitted, labeled by source path.",
            labelnames=("path",),
            **common,
        )
        self.expired_total = Counter(
            "expired_total",
            "Commitments dropped unfulfilled because their window closed.",
            **common,
        )
        self.oracle_reports_total = Counter(
            "oracle_reports_total",
            "Oracle reports processed, labeled by outcome.",
            labelnames=("outcome",),
            **common,
        )
        self.beacon_callbacks_total = Counter(
            "beacon_callbacks_total",
            "Beacon callbacks processed, labeled by outcome.",
            labelnames=("outcome",),
            **common,
        )
        self.delivery_failures_total = Counter(
            "delivery_failures_total",
            "Outbound messages whose delivery raised, labeled by message kind.",
            labelnames=("kind",),
            **common,
        )
        self.oracle_batch_size = Histogram(
            "oracle_batch_size",
            "Commitments matched per accepted oracle report.",
            buckets=tuple(batch_buckets),
            **common,
        )
        self.execute_seconds = Histogram(
            "execute_seconds",
            "Wall time per execute call (seconds).",
            buckets=tuple(execute_buckets),
            **common,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_request(self, data_type: str) -> None:
        if data_type not in _DATA_TYPES:
            data_type = "other"
        self.requests_total.labels(data_type=data_type).inc()

    def record_fulfillments(self, path: str, n: int = 1) -> None:
        if path not in _PATHS:
            path = "other"
        if n:
            self.fulfillments_total.labels(path=path).inc(n)

    def record_expired(self, n: int) -> None:
        if n:
            self.expired_total.inc(n)

    def record_oracle_report(self, outcome: str) -> None:
        if outcome not in _ORACLE_OUTCOMES:
            outcome = "other"
        self.oracle_reports_total.labels(outcome=outcome).inc()

    def record_beacon_callback(self, outcome: str) -> None:
        if outcome not in _BEACON_OUTCOMES:
            outcome = "other"
        self.beacon_callbacks_total.labels(outcome=outcome).inc()

    def record_delivery_failure(self, kind: str) -> None:
        if kind not in _MESSAGE_KINDS:
            kind = "other"
        self.delivery_failures_total.labels(kind=kind).inc()

    def observe_batch(self, matched: int) -> None:
        self.oracle_batch_size.observe(float(matched))

    @contextmanager
    def execute_timer(self):
        start = perf_counter()
        try:
            yield
        finally:
            self.execute_seconds.observe(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = ["Metrics", "METRICS"]
