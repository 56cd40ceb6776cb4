"""Prometheus metrics for application and claim reviews, payments and view counters"""

from prometheus_client import Counter, Histogram

# Application lifecycle
applications_submitted_counter = Counter(
    "policy_applications_submitted_total",
    "Insurance applications submitted",
    ["insurance_type"],
)

review_counter = Counter(
    "policy_reviews_total",
    "Completed application reviews",
    ["outcome"],  # Approved | Rejected
)

invalid_transition_counter = Counter(
    "policy_invalid_transitions_total",
    "Reviews rejected because the record was no longer Pending",
    ["entity"],  # application | claim
)

# Claims
claims_submitted_counter = Counter(
    "policy_claims_submitted_total",
    "Claims filed against issued policies",
)

claim_review_counter = Counter(
    "policy_claim_reviews_total",
    "Completed claim reviews",
    ["outcome"],
)

# Payments
payment_counter = Counter(
    "policy_payments_total",
    "Ledger transactions by final status",
    ["status"],  # pending | success | failed
)

processor_latency_histogram = Histogram(
    "payment_processor_latency_seconds",
    "Payment processor response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

processor_failure_counter = Counter(
    "payment_processor_failures_total",
    "Failed or timed-out payment processor calls",
    ["operation"],
)

# View counters
view_increment_counter = Counter(
    "view_counter_increments_total",
    "View counter increments",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_review(status: str) -> None:
    review_counter.labels(outcome=status).inc()


def record_payment(status: str) -> None:
    payment_counter.labels(status=status).inc()
