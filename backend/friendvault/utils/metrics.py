"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

# Create a custom registry to avoid conflicts
metrics_registry = CollectorRegistry()

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method"],
    registry=metrics_registry,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Rate limiting metrics
rate_limited_total = Counter(
    "rate_limited_total",
    "Total requests rate limited",
    ["group"],
    registry=metrics_registry,
)

# Vault workflow metrics
vaults_created_total = Counter(
    "vaults_created_total",
    "Total vaults created",
    registry=metrics_registry,
)

vault_votes_total = Counter(
    "vault_votes_total",
    "Total withdrawal votes recorded",
    ["decision"],  # APPROVE, REJECT
    registry=metrics_registry,
)

withdrawal_transitions_total = Counter(
    "withdrawal_transitions_total",
    "Withdrawal request status transitions",
    ["status"],  # status entered
    registry=metrics_registry,
)

withdrawal_executions_total = Counter(
    "withdrawal_executions_total",
    "Withdrawal execution attempts by outcome",
    ["outcome"],  # executed, ledger_error, outcome_unknown, reconciliation_required
    registry=metrics_registry,
)

ledger_failures_total = Counter(
    "ledger_failures_total",
    "Ledger calls that failed",
    ["operation"],  # balance, payment, token_transfer
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics.

    Args:
        path: Request path (normalized)
        method: HTTP method
        status_code: Response status code
        duration_seconds: Request duration in seconds
    """
    normalized_path = _normalize_path(path)

    http_requests_total.labels(
        path=normalized_path,
        method=method.upper(),
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        path=normalized_path,
        method=method.upper(),
    ).observe(duration_seconds)


def record_rate_limit_exceeded(group: str) -> None:
    rate_limited_total.labels(group=group).inc()


def record_vault_created() -> None:
    vaults_created_total.inc()


def record_vote(decision: str) -> None:
    vault_votes_total.labels(decision=decision).inc()


def record_withdrawal_transition(status: str) -> None:
    withdrawal_transitions_total.labels(status=status).inc()


def record_execution(outcome: str) -> None:
    withdrawal_executions_total.labels(outcome=outcome).inc()


def record_ledger_failure(operation: str) -> None:
    ledger_failures_total.labels(operation=operation).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace UUIDs and identities with placeholders).

    Examples:
        /api/v1/vaults -> /api/v1/vaults
        /api/v1/withdrawal-requests/123e4567-.../votes -> /api/v1/withdrawal-requests/{id}/votes
        /api/v1/identities/ana@example.com/exists -> /api/v1/identities/{identity}/exists
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'/identities/[^/]+', '/identities/{identity}', path)
    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)
