"""Main entry point for the Secrets Broker Operator.

Run with ``kopf run -m secrets_broker.main``.
"""

from __future__ import annotations

from typing import Any

import kopf
from kubernetes import client

from . import config, health
from . import logging as structured_logging
from .handlers import brokered_secret  # noqa: F401
from .reconciler import Reconciler, ReconcilerDeps
from .services.cluster import get_cluster_accessor
from .services.store.kubernetes import KubernetesSecretProvider
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, memo: kopf.Memo, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Keep kopf's bookkeeping out of status; status belongs to the reconciler
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = config.RECONCILE_TIMEOUT_SECONDS
    settings.execution.max_workers = 4

    cluster = get_cluster_accessor()
    provider = KubernetesSecretProvider(client.CoreV1Api())
    memo.reconciler = Reconciler(ReconcilerDeps(cluster=cluster, provider=provider))

    health.start_http_server(config.METRICS_PORT)
