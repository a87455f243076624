"""
Application Metrics with Prometheus
=============================================================================
CONCEPT: Counters for the two decisions this service makes all day

  1. Access decisions: every protected request ends in allow or deny.
     access_decisions_total{resource="roles", action="write", decision="deny"}
     A spike of denies on one resource usually means a client-side role
     check drifted from the server matrix.

  2. Bulk reconciliation: each bulk call either commits or is rejected,
     and each submitted record ends up created, updated, skipped...
     bulk_reconciliation_total{operation="tasks", outcome="rejected_duplicate"}
     bulk_records_total{operation="employees", result="created"}

Prometheus scrapes GET /metrics (see tracker/api/health.py).
=============================================================================
"""

from prometheus_client import Counter


access_decisions_total = Counter(
    name="access_decisions_total",
    documentation="Permission evaluations, partitioned by resource, action and decision.",
    labelnames=["resource", "action", "decision"],
)


bulk_reconciliation_total = Counter(
    name="bulk_reconciliation_total",
    documentation="Bulk reconciliation calls, partitioned by operation and outcome.",
    labelnames=["operation", "outcome"],
)


bulk_records_total = Counter(
    name="bulk_records_total",
    documentation="Records processed by bulk reconciliation, partitioned by result.",
    labelnames=["operation", "result"],
)


def record_access_decision(resource: str, action: str, allowed: bool) -> None:
    access_decisions_total.labels(
        resource=resource,
        action=action,
        decision="allow" if allowed else "deny",
    ).inc()


def record_bulk_outcome(operation: str, outcome: str, **results: int) -> None:
    """
    Record one bulk call and the per-record results it produced.

    USAGE:
        record_bulk_outcome("tasks", "committed", created=12, skipped=3)
        record_bulk_outcome("employees", "rejected_validation")
    """
    bulk_reconciliation_total.labels(operation=operation, outcome=outcome).inc()
    for result, count in results.items():
        if count > 0:
            bulk_records_total.labels(operation=operation, result=result).inc(count)
