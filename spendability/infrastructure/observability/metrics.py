"""Prometheus metrics for spendability reports, matching, detection and bank calls"""

from decimal import Decimal

from prometheus_client import Counter, Histogram

# Report metrics
spendability_counter = Counter(
    "spendability_reports_total",
    "Total spendability reports computed",
    ["outcome"],  # positive | negative
)

stale_pending_counter = Counter(
    "stale_pending_transactions_total",
    "Pending transactions excluded from projections as stale",
)

bill_match_counter = Counter(
    "bill_matches_total",
    "Bills treated as paid because a transaction matched them",
)

settings_warning_counter = Counter(
    "settings_validation_warnings_total",
    "Settings documents that needed defaults to compute a report",
)

# Detection metrics
recurring_candidates_counter = Counter(
    "recurring_candidates_total",
    "Recurring charge candidates proposed",
    ["suggested_type"],  # subscription | recurring_bill
)

# Bill lifecycle
bill_payments_counter = Counter(
    "bill_payments_total",
    "Bills marked as paid",
    ["source"],  # manual | matched | auto
)

# Bank API metrics
bank_fetch_failures_counter = Counter(
    "bank_fetch_failures_total",
    "Failed bank API calls",
)

bank_latency_histogram = Histogram(
    "bank_api_latency_seconds",
    "Bank aggregation API response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_spendability(safe_to_spend_now: Decimal, stale_pending: int, matched_bills: int, settings_valid: bool) -> None:
    """Record report metrics for monitoring how often users end up below zero"""
    outcome = "positive" if safe_to_spend_now > 0 else "negative"
    spendability_counter.labels(outcome=outcome).inc()

    if stale_pending:
        stale_pending_counter.inc(stale_pending)
    if matched_bills:
        bill_match_counter.inc(matched_bills)
    if not settings_valid:
        settings_warning_counter.inc()
