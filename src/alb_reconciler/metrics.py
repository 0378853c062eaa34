"""Prometheus metrics for diff and convergence cycles.

Collectors live in the default registry and are served by the ``/metrics``
endpoint of the health server.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

DIFF_CYCLES = Counter(
    "alb_reconciler_diff_cycles_total",
    "Diff cycles run (spec updates processed)",
)

CONVERGENCE_CYCLES = Counter(
    "alb_reconciler_convergence_cycles_total",
    "Convergence dispatches run",
)

CONVERGENCE_FAILURES = Counter(
    "alb_reconciler_convergence_failures_total",
    "Entity convergence failures",
)

MANAGED_INGRESSES = Gauge(
    "alb_reconciler_managed_ingresses",
    "Current size of the tracked-entity set",
)

TAINTED_INGRESSES = Gauge(
    "alb_reconciler_tainted_ingresses",
    "Tracked entities whose desired state could not be fully built",
)


def generate_metrics() -> bytes:
    return generate_latest()


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST
