"""
Prometheus metrics for RoomCheck.
Tracks submissions, gate decisions, forensic failures and oracle calls.

Request-level HTTP metrics come from prometheus_fastapi_instrumentator in
main.py; these cover the inspection pipeline itself.
"""
from prometheus_client import Counter, Histogram

# Submission metrics
submissions_total = Counter(
    'roomcheck_submissions_total', 'Inspection submissions by outcome', ['kind', 'status']
)
inspection_score = Histogram(
    'roomcheck_inspection_score',
    'Final inspection scores',
    buckets=[0, 2, 4, 6, 8, 10]
)

# Stage metrics
gate_denials_total = Counter('roomcheck_gate_denials_total', 'Submissions refused by the time window gate')
forensic_failures_total = Counter(
    'roomcheck_forensic_failures_total', 'Photos failing metadata checks', ['check']
)

# Oracle metrics
oracle_requests_total = Counter(
    'roomcheck_oracle_requests_total', 'Scoring oracle calls', ['outcome']
)
oracle_latency_seconds = Histogram(
    'roomcheck_oracle_latency_seconds',
    'Scoring oracle round-trip time',
    buckets=[0.5, 1, 2, 5, 10, 20, 45]
)
fallback_scores_total = Counter('roomcheck_fallback_scores_total', 'Scores produced by the fallback policy')


def record_submission(kind: str, status: str, score: int) -> None:
    """Record a persisted inspection."""
    submissions_total.labels(kind=kind, status=status).inc()
    inspection_score.observe(score)


def record_forensic_failure(time_valid: bool, location_valid: bool, not_edited: bool) -> None:
    """Count each failed metadata check."""
    if not time_valid:
        forensic_failures_total.labels(check='time').inc()
    if not location_valid:
        forensic_failures_total.labels(check='location').inc()
    if not not_edited:
        forensic_failures_total.labels(check='software').inc()
