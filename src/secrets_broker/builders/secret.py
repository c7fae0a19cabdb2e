"""Materialization of managed Secret contents from fetched source fields."""

from __future__ import annotations

import base64
from typing import Mapping

from kubernetes import client

from ..constants import (
    API_GROUP_VERSION,
    FIELD_MANAGER,
    KIND_BROKERED_SECRET,
    LABEL_MANAGED_BY,
    LABEL_SOURCE_NAME,
)
from ..exceptions import MissingSourceField
from ..models import SourceObject


def materialize_secret_data(
    field_mappings: Mapping[str, str],
    fetched: Mapping[str, bytes | str],
) -> dict[str, bytes]:
    """Build the desired Secret data from a field mapping and fetched values.

    The result depends only on the inputs: identical mappings and values
    always yield identical, key-sorted data, so equality is a valid drift test.

    Args:
        field_mappings: Destination key to source field name
        fetched: Source field name to value; ``str`` values are UTF-8 encoded

    Returns:
        Destination key to bytes

    Raises:
        MissingSourceField: If any mapped source field is absent. Nothing is
            returned for the fields that were present.
    """
    missing = [source for source in field_mappings.values() if source not in fetched]
    if missing:
        raise MissingSourceField(missing)

    data = {}
    for dest in sorted(field_mappings):
        value = fetched[field_mappings[dest]]
        data[dest] = value.encode("utf-8") if isinstance(value, str) else bytes(value)
    return data


def encode_secret_data(data: Mapping[str, bytes]) -> dict[str, str]:
    """Base64-encode Secret data for the Kubernetes API."""
    return {k: base64.b64encode(v).decode("ascii") for k, v in data.items()}


def build_owner_reference(source: SourceObject) -> client.V1OwnerReference:
    """Controller owner reference tying a Secret's lifecycle to its source."""
    return client.V1OwnerReference(
        api_version=API_GROUP_VERSION,
        kind=KIND_BROKERED_SECRET,
        name=source.key.name,
        uid=source.uid,
        controller=True,
        block_owner_deletion=True,
    )


def build_managed_secret(source: SourceObject, data: Mapping[str, bytes]) -> client.V1Secret:
    """Build the managed Secret body for a source object.

    Args:
        source: Source snapshot; must carry a valid spec
        data: Materialized data

    Returns:
        Secret body ready to be created
    """
    assert source.spec is not None
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=source.key.name,
            namespace=source.key.namespace,
            owner_references=[build_owner_reference(source)],
            labels={
                LABEL_MANAGED_BY: FIELD_MANAGER,
                LABEL_SOURCE_NAME: source.key.name,
            },
        ),
        type=source.spec.secret_kind,
        data=encode_secret_data(data),
    )
