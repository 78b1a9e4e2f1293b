from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Histogram

# Low-cardinality labels only: operation name and outcome, never bucket or key
OPERATIONS = Counter(
    "r2_storage_operations_total",
    "Total storage operations",
    ["operation", "status"],
)

LATENCY = Histogram(
    "r2_storage_operation_duration_seconds",
    "Storage operation latency in seconds",
    ["operation"],
)


@contextmanager
def track_operation(
    operation: str, *, enabled: bool = True
) -> Generator[None, None, None]:
    """Record count and latency for one storage call.

    ``status`` is ``ok`` on success, otherwise the exception class name.
    """
    if not enabled:
        yield
        return

    start = time.perf_counter()
    status = "ok"
    try:
        yield
    except BaseException as exc:
        status = type(exc).__name__
        raise
    finally:
        OPERATIONS.labels(operation, status).inc()
        LATENCY.labels(operation).observe(time.perf_counter() - start)
