"""Tests for the Kubernetes API accessor."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import ReadTimeoutError

from secrets_broker.builders.secret import build_managed_secret
from secrets_broker.builders.source import create_source_object_from_body
from secrets_broker.exceptions import AlreadyExists, ClusterUnavailable, Conflict
from secrets_broker.models import ManagedSecret, ObjectKey, SourceStatus
from secrets_broker.services.cluster import ClusterAccessor, get_cluster_accessor, managed_secret_from_api

KEY = ObjectKey("default", "db-creds")

BODY = {
    "apiVersion": "secrets.cloud37.dev/v1alpha1",
    "kind": "BrokeredSecret",
    "metadata": {"name": "db-creds", "namespace": "default", "uid": "uid-1", "resourceVersion": "41"},
    "spec": {
        "storeLocation": "vault-a",
        "sourcePath": "apps/db",
        "secretKind": "Opaque",
        "fieldMappings": {"username": "svc-user"},
    },
}


def api_secret(data, rv="7", owner_uid=None):
    refs = None
    if owner_uid:
        refs = [client.V1OwnerReference(
            api_version="secrets.cloud37.dev/v1alpha1",
            kind="BrokeredSecret",
            name="db-creds",
            uid=owner_uid,
            controller=True,
        )]
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name="db-creds",
            namespace="default",
            resource_version=rv,
            owner_references=refs,
            labels={"app": "x"},
        ),
        type="Opaque",
        data=data,
    )


@pytest.fixture(autouse=True)
def no_rate_limit():
    with patch("secrets_broker.services.cluster.rate_limit_k8s", side_effect=lambda fn: fn):
        yield


@pytest.fixture
def custom_api():
    return MagicMock()


@pytest.fixture
def core_api():
    return MagicMock()


@pytest.fixture
def accessor(custom_api, core_api):
    return ClusterAccessor(custom_api, core_api)


@pytest.fixture
def source():
    return create_source_object_from_body(dict(BODY))


class TestReads:
    """Test reading sources and Secrets."""

    def test_get_source(self, accessor, custom_api):
        """Test a source is read through the custom objects API."""
        custom_api.get_namespaced_custom_object.return_value = BODY

        source = accessor.get_source(KEY, timeout=4.0)

        assert source.key == KEY
        assert source.resource_version == "41"
        kwargs = custom_api.get_namespaced_custom_object.call_args.kwargs
        assert kwargs["plural"] == "brokeredsecrets"
        assert kwargs["group"] == "secrets.cloud37.dev"
        assert kwargs["_request_timeout"] == 4.0

    def test_get_source_not_found(self, accessor, custom_api):
        """Test a deleted source reads as None."""
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404)
        assert accessor.get_source(KEY) is None

    def test_get_source_forbidden(self, accessor, custom_api):
        """Test non-retriable API errors propagate."""
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=403)
        with pytest.raises(ApiException):
            accessor.get_source(KEY)

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_get_source_unavailable(self, accessor, custom_api, status):
        """Test throttling and server errors become ClusterUnavailable."""
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=status)
        with pytest.raises(ClusterUnavailable):
            accessor.get_source(KEY)

    def test_transport_error_unavailable(self, accessor, core_api):
        """Test transport failures become ClusterUnavailable."""
        core_api.read_namespaced_secret.side_effect = ReadTimeoutError(None, "/", "timed out")
        with pytest.raises(ClusterUnavailable):
            accessor.get_secret(KEY)

    def test_get_secret(self, accessor, core_api):
        """Test a Secret is decoded into a snapshot."""
        core_api.read_namespaced_secret.return_value = api_secret({"username": "YWxpY2U="}, owner_uid="uid-1")

        secret = accessor.get_secret(KEY)

        assert secret.data == {"username": b"alice"}
        assert secret.controller_uid == "uid-1"
        assert secret.resource_version == "7"

    def test_get_secret_absent(self, accessor, core_api):
        """Test a missing Secret reads as None."""
        core_api.read_namespaced_secret.side_effect = ApiException(status=404)
        assert accessor.get_secret(KEY) is None


class TestWrites:
    """Test Secret and status writes."""

    def test_create_secret(self, accessor, core_api, source):
        """Test creation passes the field manager and timeout."""
        body = build_managed_secret(source, {"username": b"alice"})
        core_api.create_namespaced_secret.return_value = api_secret(body.data, owner_uid="uid-1")

        created = accessor.create_secret(body, timeout=2.0)

        assert created.data == {"username": b"alice"}
        kwargs = core_api.create_namespaced_secret.call_args.kwargs
        assert kwargs["namespace"] == "default"
        assert kwargs["body"] is body
        assert kwargs["field_manager"] == "secrets-broker"
        assert kwargs["_request_timeout"] == 2.0

    def test_create_secret_exists(self, accessor, core_api, source):
        """Test a 409 on create is reported as AlreadyExists."""
        core_api.create_namespaced_secret.side_effect = ApiException(status=409)
        with pytest.raises(AlreadyExists):
            accessor.create_secret(build_managed_secret(source, {"username": b"alice"}))

    def test_update_secret_data(self, accessor, core_api, source):
        """Test updates carry the resourceVersion and drop stale keys."""
        current = ManagedSecret(
            key=KEY,
            type="Opaque",
            data={"username": b"bob", "extra": b"x"},
            resource_version="7",
            controller_uid="uid-1",
        )
        core_api.patch_namespaced_secret.return_value = api_secret({"username": "YWxpY2U="}, rv="8")

        updated = accessor.update_secret_data(current, source, {"username": b"alice"})

        body = core_api.patch_namespaced_secret.call_args.kwargs["body"]
        assert body["metadata"] == {"resourceVersion": "7"}
        assert body["data"] == {"username": "YWxpY2U=", "extra": None}
        assert updated.resource_version == "8"

    def test_update_adopts_uncontrolled_secret(self, accessor, core_api, source):
        """Test a Secret without a controller gains the owner reference."""
        current = ManagedSecret(key=KEY, type="Opaque", data={}, resource_version="7")
        core_api.patch_namespaced_secret.return_value = api_secret({}, rv="8")

        accessor.update_secret_data(current, source, {"username": b"alice"})

        refs = core_api.patch_namespaced_secret.call_args.kwargs["body"]["metadata"]["ownerReferences"]
        assert refs == [{
            "apiVersion": "secrets.cloud37.dev/v1alpha1",
            "kind": "BrokeredSecret",
            "name": "db-creds",
            "uid": "uid-1",
            "controller": True,
            "blockOwnerDeletion": True,
        }]

    @pytest.mark.parametrize("status", [404, 409])
    def test_update_conflict(self, accessor, core_api, source, status):
        """Test a stale or vanished Secret surfaces as Conflict."""
        core_api.patch_namespaced_secret.side_effect = ApiException(status=status)
        current = ManagedSecret(key=KEY, type="Opaque", data={}, resource_version="7", controller_uid="uid-1")

        with pytest.raises(Conflict):
            accessor.update_secret_data(current, source, {"username": b"alice"})

    def test_replace_status(self, accessor, custom_api, source):
        """Test status writes carry the observed resourceVersion."""
        accessor.replace_status(source, SourceStatus(phase="Pending"), timeout=1.5)

        kwargs = custom_api.replace_namespaced_custom_object_status.call_args.kwargs
        assert kwargs["body"]["metadata"]["resourceVersion"] == "41"
        assert kwargs["body"]["status"] == {"phase": "Pending", "conditions": []}
        assert kwargs["_request_timeout"] == 1.5
        assert "status" not in source.body

    def test_replace_status_conflict(self, accessor, custom_api, source):
        """Test a 409 on status write is reported as Conflict."""
        custom_api.replace_namespaced_custom_object_status.side_effect = ApiException(status=409)
        with pytest.raises(Conflict):
            accessor.replace_status(source, SourceStatus(phase="Pending"))


class TestHelpers:
    """Test module helpers."""

    def test_managed_secret_from_api_defaults(self):
        """Test missing type and data are tolerated."""
        secret = client.V1Secret(metadata=client.V1ObjectMeta(name="n", namespace="ns"))

        snapshot = managed_secret_from_api(secret)

        assert snapshot.key == ObjectKey("ns", "n")
        assert snapshot.type == "Opaque"
        assert snapshot.data == {}
        assert snapshot.controller_uid is None

    @patch("secrets_broker.services.cluster.client")
    @patch("secrets_broker.services.cluster.config")
    def test_get_cluster_accessor_falls_back_to_kubeconfig(self, mock_config, mock_client):
        """Test the local kubeconfig is used outside a cluster."""
        mock_config.ConfigException = Exception
        mock_config.load_incluster_config.side_effect = Exception("not in cluster")

        accessor = get_cluster_accessor()

        mock_config.load_kube_config.assert_called_once()
        assert accessor.custom_api is mock_client.CustomObjectsApi.return_value
