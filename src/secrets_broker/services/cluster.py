"""Kubernetes API access for BrokeredSecrets and their managed Secrets."""

from __future__ import annotations

import copy
import time
from typing import Any, Callable, TypeVar

from kubernetes import client, config
from urllib3.exceptions import HTTPError

from .. import metrics
from ..builders.secret import build_owner_reference, encode_secret_data
from ..builders.source import create_source_object_from_body
from ..constants import API_GROUP, API_VERSION, FIELD_MANAGER, PLURAL_BROKERED_SECRETS
from ..exceptions import AlreadyExists, ClusterUnavailable, Conflict
from ..models import ManagedSecret, ObjectKey, SourceObject, SourceStatus
from ..services.store.kubernetes import decode_secret_data
from ..utils.rate_limit import is_retriable_status, rate_limit_k8s

_T = TypeVar("_T")


def load_kube_config() -> None:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class ClusterAccessor:
    """Reads and writes source objects and Secrets.

    Every write carries the resourceVersion it was computed from, so a
    concurrent change surfaces as ``Conflict`` instead of being overwritten.
    """

    def __init__(
        self,
        custom_api: client.CustomObjectsApi,
        core_api: client.CoreV1Api,
    ):
        self.custom_api = custom_api
        self.core_api = core_api

    def _call(self, operation: str, fn: Callable[..., _T], **kwargs: Any) -> _T:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(**kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except client.exceptions.ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=str(e.status)).inc()
            if is_retriable_status(e.status):
                raise ClusterUnavailable(f"{operation} failed with status {e.status}") from e
            raise
        except HTTPError as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="unreachable").inc()
            raise ClusterUnavailable(f"{operation} failed: {type(e).__name__}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get_source(self, key: ObjectKey, timeout: float | None = None) -> SourceObject | None:
        """Read a BrokeredSecret; None if it no longer exists."""
        try:
            body = self._call(
                "get_source",
                self.custom_api.get_namespaced_custom_object,
                group=API_GROUP,
                version=API_VERSION,
                namespace=key.namespace,
                plural=PLURAL_BROKERED_SECRETS,
                name=key.name,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise
        return create_source_object_from_body(body)

    def get_secret(self, key: ObjectKey, timeout: float | None = None) -> ManagedSecret | None:
        """Read the Secret sharing the source's namespace and name; None if absent."""
        try:
            secret = self._call(
                "get_secret",
                self.core_api.read_namespaced_secret,
                name=key.name,
                namespace=key.namespace,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise
        return managed_secret_from_api(secret)

    def create_secret(self, body: client.V1Secret, timeout: float | None = None) -> ManagedSecret:
        """Create the managed Secret.

        Raises:
            AlreadyExists: If a Secret with that name exists
        """
        try:
            created = self._call(
                "create_secret",
                self.core_api.create_namespaced_secret,
                namespace=body.metadata.namespace,
                body=body,
                field_manager=FIELD_MANAGER,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status == 409:
                raise AlreadyExists(f"secret {body.metadata.namespace}/{body.metadata.name} already exists") from e
            raise
        return managed_secret_from_api(created)

    def update_secret_data(
        self,
        secret: ManagedSecret,
        source: SourceObject,
        data: dict[str, bytes],
        timeout: float | None = None,
    ) -> ManagedSecret:
        """Replace the Secret's data in place, removing keys not in ``data``.

        A controller owner reference to the source is added when the Secret
        has no controller yet.

        Raises:
            Conflict: If the Secret changed since ``secret`` was read
        """
        encoded: dict[str, str | None] = dict(encode_secret_data(data))
        for stale_key in set(secret.data) - set(data):
            encoded[stale_key] = None

        metadata: dict[str, Any] = {"resourceVersion": secret.resource_version}
        if secret.controller_uid is None:
            owner = build_owner_reference(source)
            metadata["ownerReferences"] = [{
                "apiVersion": owner.api_version,
                "kind": owner.kind,
                "name": owner.name,
                "uid": owner.uid,
                "controller": owner.controller,
                "blockOwnerDeletion": owner.block_owner_deletion,
            }]

        try:
            patched = self._call(
                "update_secret",
                self.core_api.patch_namespaced_secret,
                name=secret.key.name,
                namespace=secret.key.namespace,
                body={"metadata": metadata, "data": encoded},
                field_manager=FIELD_MANAGER,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status in (404, 409):
                raise Conflict(f"secret {secret.key} changed while updating") from e
            raise
        return managed_secret_from_api(patched)

    def replace_status(
        self,
        source: SourceObject,
        status: SourceStatus,
        timeout: float | None = None,
    ) -> None:
        """Write the status subresource with the source's resourceVersion.

        Raises:
            Conflict: If the source changed since it was read
        """
        body = copy.deepcopy(source.body)
        body.setdefault("metadata", {})["resourceVersion"] = source.resource_version
        body["status"] = status.to_dict()
        try:
            self._call(
                "replace_status",
                self.custom_api.replace_namespaced_custom_object_status,
                group=API_GROUP,
                version=API_VERSION,
                namespace=source.key.namespace,
                plural=PLURAL_BROKERED_SECRETS,
                name=source.key.name,
                body=body,
                _request_timeout=timeout,
            )
        except client.exceptions.ApiException as e:
            if e.status in (404, 409):
                raise Conflict(f"{source.key} changed while writing status") from e
            raise


def managed_secret_from_api(secret: client.V1Secret) -> ManagedSecret:
    """Snapshot a V1Secret returned by the API."""
    meta = secret.metadata
    controller_uid = next(
        (ref.uid for ref in meta.owner_references or [] if ref.controller),
        None,
    )
    return ManagedSecret(
        key=ObjectKey(meta.namespace, meta.name),
        type=secret.type or "Opaque",
        data=decode_secret_data(secret.data),
        resource_version=meta.resource_version or "",
        controller_uid=controller_uid,
        labels=dict(meta.labels or {}),
    )


def get_cluster_accessor() -> ClusterAccessor:
    """Build a ClusterAccessor from the ambient Kubernetes configuration."""
    load_kube_config()
    return ClusterAccessor(client.CustomObjectsApi(), client.CoreV1Api())
