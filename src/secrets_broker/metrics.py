"""Prometheus metrics for the Secrets Broker Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "secrets_broker_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "secrets_broker_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

phase_transitions_total = Counter(
    "secrets_broker_phase_transitions_total",
    "Total number of phase transitions",
    ["from_phase", "to_phase"],
)

# Drift detection metrics
drift_detected_total = Counter(
    "secrets_broker_drift_detected_total",
    "Total number of managed secret drift detections",
    ["kind"],
)

# Secret store metrics
provider_fetch_total = Counter(
    "secrets_broker_provider_fetch_total",
    "Total number of secret store fetches",
    ["provider", "result"],
)

provider_fetch_duration_seconds = Histogram(
    "secrets_broker_provider_fetch_duration_seconds",
    "Duration of secret store fetches in seconds",
    ["provider"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# API call metrics
api_call_total = Counter(
    "secrets_broker_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "secrets_broker_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

status_writes_total = Counter(
    "secrets_broker_status_writes_total",
    "Status subresource writes by outcome",
    ["result"],
)

error_total = Counter(
    "secrets_broker_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)
