"""Prometheus metrics for monitoring plan creation, sweeps and gateway performance"""

from prometheus_client import Counter, Histogram

# Plan metrics
plan_created_counter = Counter(
    "installment_plan_created_total",
    "Payment plans created",
    ["frequency"],
)

plan_creation_failures_counter = Counter(
    "installment_plan_creation_failures_total",
    "Plan creations rolled back after an installment write failure",
)

plan_modification_counter = Counter(
    "installment_plan_modifications_total",
    "Payment plan schedule modifications",
)

# Sweep metrics
sweep_outcome_counter = Counter(
    "installment_sweep_outcomes_total",
    "Per-installment outcomes of batch sweeps",
    ["sweep", "outcome"],  # auto_pay|late_fee|reminder x succeeded|failed|skipped
)

late_fee_counter = Counter(
    "installment_late_fees_applied_total",
    "Late fees applied to overdue installments",
)

# Payment gateway metrics
charge_latency_histogram = Histogram(
    "payment_gateway_charge_latency_seconds",
    "Payment gateway charge response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

reminder_failure_counter = Counter(
    "reminder_dispatch_failures_total",
    "Failed reminder webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_sweep_outcomes(sweep: str, succeeded: int = 0, failed: int = 0, skipped: int = 0) -> None:
    """Record per-installment sweep outcomes for alerting on failure ratios"""
    if succeeded:
        sweep_outcome_counter.labels(sweep=sweep, outcome="succeeded").inc(succeeded)
    if failed:
        sweep_outcome_counter.labels(sweep=sweep, outcome="failed").inc(failed)
    if skipped:
        sweep_outcome_counter.labels(sweep=sweep, outcome="skipped").inc(skipped)
