"""Shared fixtures: an in-memory cluster honoring resourceVersion preconditions."""

from __future__ import annotations

import base64
import copy
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from kubernetes import client

from secrets_broker.builders.source import create_source_object_from_body
from secrets_broker.exceptions import AlreadyExists, Conflict
from secrets_broker.models import ManagedSecret, ObjectKey, SourceObject, SourceStatus
from secrets_broker.reconciler import Reconciler, ReconcilerDeps
from secrets_broker.services.store.static import StaticSecretProvider


class FakeCluster:
    """Stands in for ClusterAccessor, tracking every write."""

    def __init__(self) -> None:
        self.sources: dict[ObjectKey, dict[str, Any]] = {}
        self.secrets: dict[ObjectKey, ManagedSecret] = {}
        self.status_writes = 0
        self.secret_creates = 0
        self.secret_updates = 0
        self._rv = 100
        # Callables run right before a status write lands, to simulate races
        self.before_status_write: list[Any] = []

    def _next_rv(self) -> str:
        self._rv += 1
        return str(self._rv)

    def add_source(
        self,
        name: str = "db-creds",
        namespace: str = "default",
        spec: dict[str, Any] | None = None,
        status: dict[str, Any] | None = None,
    ) -> ObjectKey:
        key = ObjectKey(namespace, name)
        body = {
            "apiVersion": "secrets.cloud37.dev/v1alpha1",
            "kind": "BrokeredSecret",
            "metadata": {
                "name": name,
                "namespace": namespace,
                "uid": f"uid-{name}",
                "resourceVersion": self._next_rv(),
            },
            "spec": spec if spec is not None else {
                "storeLocation": "vault-a",
                "sourcePath": "apps/db",
                "secretKind": "Opaque",
                "fieldMappings": {"username": "svc-user", "password": "svc-pass"},
            },
        }
        if status is not None:
            body["status"] = status
        self.sources[key] = body
        return key

    def touch_source(self, key: ObjectKey) -> None:
        """Simulate a concurrent writer bumping the source's resourceVersion."""
        self.sources[key]["metadata"]["resourceVersion"] = self._next_rv()

    def source_status(self, key: ObjectKey) -> SourceStatus:
        return SourceStatus.from_dict(self.sources[key].get("status"))

    def put_secret(
        self,
        key: ObjectKey,
        data: dict[str, bytes],
        controller_uid: str | None = None,
        type_: str = "Opaque",
    ) -> None:
        self.secrets[key] = ManagedSecret(
            key=key,
            type=type_,
            data=dict(data),
            resource_version=self._next_rv(),
            controller_uid=controller_uid,
        )

    # ClusterAccessor interface

    def get_source(self, key: ObjectKey, timeout: float | None = None) -> SourceObject | None:
        body = self.sources.get(key)
        if body is None:
            return None
        return create_source_object_from_body(copy.deepcopy(body))

    def get_secret(self, key: ObjectKey, timeout: float | None = None) -> ManagedSecret | None:
        return self.secrets.get(key)

    def create_secret(self, body: client.V1Secret, timeout: float | None = None) -> ManagedSecret:
        key = ObjectKey(body.metadata.namespace, body.metadata.name)
        if key in self.secrets:
            raise AlreadyExists(f"secret {key} already exists")
        self.secret_creates += 1
        self.secrets[key] = ManagedSecret(
            key=key,
            type=body.type,
            data={k: base64.b64decode(v) for k, v in body.data.items()},
            resource_version=self._next_rv(),
            controller_uid=body.metadata.owner_references[0].uid,
            labels=dict(body.metadata.labels),
        )
        return self.secrets[key]

    def update_secret_data(
        self,
        secret: ManagedSecret,
        source: SourceObject,
        data: dict[str, bytes],
        timeout: float | None = None,
    ) -> ManagedSecret:
        current = self.secrets.get(secret.key)
        if current is None or current.resource_version != secret.resource_version:
            raise Conflict(f"secret {secret.key} changed while updating")
        self.secret_updates += 1
        self.secrets[secret.key] = ManagedSecret(
            key=secret.key,
            type=current.type,
            data=dict(data),
            resource_version=self._next_rv(),
            controller_uid=current.controller_uid or source.uid,
        )
        return self.secrets[secret.key]

    def replace_status(self, source: SourceObject, status: SourceStatus, timeout: float | None = None) -> None:
        for hook in list(self.before_status_write):
            hook()
        body = self.sources.get(source.key)
        if body is None or body["metadata"]["resourceVersion"] != source.resource_version:
            raise Conflict(f"{source.key} changed while writing status")
        self.status_writes += 1
        body["status"] = status.to_dict()
        body["metadata"]["resourceVersion"] = self._next_rv()


class FakeClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def provider() -> StaticSecretProvider:
    return StaticSecretProvider({
        ("vault-a", "apps/db"): {"svc-user": b"alice", "svc-pass": b"s3cr3t"},
    })


@pytest.fixture
def events() -> list[tuple[Any, ...]]:
    return []


@pytest.fixture
def reconciler(cluster: FakeCluster, provider: StaticSecretProvider, events: list) -> Reconciler:
    deps = ReconcilerDeps(
        cluster=cluster,  # type: ignore[arg-type]
        provider=provider,
        clock=FakeClock(),
        events=lambda obj, reason, message, type_="Normal": events.append((reason, message, type_)),
    )
    return Reconciler(deps, timeout=30.0)
