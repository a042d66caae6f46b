"""Prometheus metrics for lifecycle transitions, obligations, allocation overages and webhooks"""

from prometheus_client import Counter, Histogram

# Lifecycle metrics
transition_counter = Counter(
    "lease_transition_total",
    "Application lifecycle actions by outcome",
    ["action", "outcome"],  # applied | no_op | forbidden | bad_state | guard_not_met | conflict
)

# Obligation metrics
obligations_generated_counter = Counter(
    "lease_obligations_generated_total",
    "Obligations materialized at plan-set time",
    ["group"],  # upfront | deposit | rent | fee
)

allocation_overage_counter = Counter(
    "lease_allocation_overage_cents_total",
    "Payment cents left unassigned after allocation",
    ["bucket"],
)

# Webhook metrics
status_webhook_latency_histogram = Histogram(
    "status_webhook_latency_seconds",
    "Status-change webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

status_webhook_failure_counter = Counter(
    "status_webhook_failures_total",
    "Failed status-change webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_transition(action: str, outcome: str) -> None:
    transition_counter.labels(action=action, outcome=outcome).inc()


def record_obligations(obligations) -> None:
    """Count generated obligations per group"""
    for o in obligations:
        obligations_generated_counter.labels(group=o.group.value).inc()


def record_overages(overages) -> None:
    for overage in overages:
        allocation_overage_counter.labels(bucket=overage.bucket.value).inc(overage.remaining_cents)
