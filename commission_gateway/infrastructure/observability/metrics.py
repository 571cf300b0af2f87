"""Prometheus metrics for monitoring approvals, payout lifecycle, and database health"""

from prometheus_client import Counter, Histogram

# Approval metrics
approval_counter = Counter(
    "commission_approval_total",
    "Transaction approval attempts",
    ["outcome"],  # approved | rejected
)

payout_amount_histogram = Histogram(
    "commission_payout_amount_dollars",
    "Agent net payout at creation",
    buckets=[0, 1_000, 5_000, 10_000, 25_000, 50_000, 100_000],
)

clamped_payout_counter = Counter(
    "commission_payout_clamped_total",
    "Payouts clamped to zero because deductions exceeded the agent's gross",
)

# Lifecycle metrics
payout_transition_counter = Counter(
    "commission_payout_transition_total",
    "Payout status transitions",
    ["status"],  # ready | scheduled | paid | failed
)

# Persistence metrics
persistence_failures_counter = Counter(
    "persistence_failures_total",
    "Database operations that failed or timed out",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_approval(approved: bool, payout_amount_cents: int | None = None, clamped: bool = False) -> None:
    """Record approval outcome and the resulting payout size"""
    approval_counter.labels(outcome="approved" if approved else "rejected").inc()

    if payout_amount_cents is not None:
        payout_amount_histogram.observe(payout_amount_cents / 100)
        payout_transition_counter.labels(status="ready").inc()
    if clamped:
        clamped_payout_counter.inc()


def record_transition(status: str) -> None:
    payout_transition_counter.labels(status=status).inc()
