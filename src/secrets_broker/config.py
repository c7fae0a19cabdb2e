"""Runtime settings for the Secrets Broker Operator, read from the environment."""

from __future__ import annotations

import os

# Periodic re-check of InSync/Stale objects against the source store
RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))

# Deadline applied to one reconcile invocation
RECONCILE_TIMEOUT_SECONDS = float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "30"))

# Exponential backoff: base * 2**retry, capped, with proportional jitter
RETRY_BASE_DELAY_SECONDS = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "1.0"))
RETRY_MAX_DELAY_SECONDS = float(os.getenv("RETRY_MAX_DELAY_SECONDS", "300.0"))
RETRY_JITTER = float(os.getenv("RETRY_JITTER", "0.1"))

# Rejected input (auth/malformed/missing fields) is unlikely to heal quickly
REJECTED_COOLDOWN_SECONDS = float(os.getenv("REJECTED_COOLDOWN_SECONDS", "900"))

# Requeue delay for "run again now": after a conflict or a step that needs a follow-up
IMMEDIATE_REQUEUE_SECONDS = float(os.getenv("IMMEDIATE_REQUEUE_SECONDS", "0.5"))

# Client-side ceiling on Kubernetes API calls, shared by all workers
K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10"))

METRICS_PORT = int(os.getenv("METRICS_PORT", "8080"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
