"""Prometheus metrics for ContainMesh.

Exposes timings for container runtime calls and counters for failed node
operations. The /metrics endpoint serves these in Prometheus exposition
format.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Iterator

from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)


runtime_call_duration = Histogram(
    "containmesh_runtime_call_seconds",
    "Duration of container runtime calls",
    ["operation", "status"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60, float("inf")),
)

node_operation_errors = Counter(
    "containmesh_node_operation_errors_total",
    "Total node lifecycle operation errors",
    ["operation"],
)


@contextmanager
def observe_runtime_call(operation: str) -> Iterator[None]:
    """Time a runtime call, labelling it with its outcome."""
    start = time.monotonic()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        runtime_call_duration.labels(operation=operation, status=status).observe(
            time.monotonic() - start
        )


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
