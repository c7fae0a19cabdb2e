"""Secret store backed by Secrets in the Kubernetes cluster."""

from __future__ import annotations

import base64
import binascii
import time

from kubernetes import client
from urllib3.exceptions import HTTPError

from ... import metrics
from ...utils.rate_limit import is_retriable_status, rate_limit_k8s
from .base import Malformed, NotFound, Unauthorized, Unavailable


class KubernetesSecretProvider:
    """Reads source fields from a Secret.

    The store location is the namespace and the source path is the name
    of the Secret holding the fields.
    """

    name = "kubernetes"

    def __init__(self, api: client.CoreV1Api):
        self.api = api

    def fetch(
        self,
        store_location: str,
        source_path: str,
        timeout: float | None = None,
    ) -> dict[str, bytes]:
        start_time = time.time()
        result = "error"
        try:
            try:
                secret = rate_limit_k8s(self.api.read_namespaced_secret)(
                    name=source_path,
                    namespace=store_location,
                    _request_timeout=timeout,
                )
            except client.exceptions.ApiException as e:
                if e.status in (401, 403):
                    raise Unauthorized(
                        f"access to secret {store_location}/{source_path} denied ({e.status})"
                    ) from e
                if e.status == 404:
                    raise NotFound(f"secret {store_location}/{source_path} not found") from e
                if is_retriable_status(e.status):
                    raise Unavailable(f"cluster API returned {e.status} reading {store_location}/{source_path}") from e
                raise Malformed(f"unexpected response {e.status} reading {store_location}/{source_path}") from e
            except HTTPError as e:
                raise Unavailable(f"cluster API unreachable: {type(e).__name__}") from e

            fields = decode_secret_data(secret.data)
            result = "success"
            return fields
        finally:
            metrics.provider_fetch_total.labels(provider=self.name, result=result).inc()
            metrics.provider_fetch_duration_seconds.labels(provider=self.name).observe(time.time() - start_time)


def decode_secret_data(data: dict[str, str] | None) -> dict[str, bytes]:
    """Decode base64 Secret data as returned by the Kubernetes API.

    Raises:
        Malformed: If a value is not valid base64
    """
    decoded = {}
    for key, value in (data or {}).items():
        if isinstance(value, bytes):
            decoded[key] = value
            continue
        try:
            decoded[key] = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise Malformed(f"field {key!r} is not valid base64") from e
    return decoded
