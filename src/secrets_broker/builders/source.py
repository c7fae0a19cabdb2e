"""Builder for BrokeredSecret source snapshots."""

from __future__ import annotations

from typing import Any

from ..exceptions import InvalidSpec
from ..models import ObjectKey, SourceObject, SourceSpec, SourceStatus


def create_source_spec_from_spec(spec: dict[str, Any]) -> SourceSpec:
    """Create a SourceSpec from the CRD spec.

    Args:
        spec: BrokeredSecret CRD spec

    Returns:
        Validated source spec

    Raises:
        InvalidSpec: If a required field is missing or the mapping is unusable
    """
    missing = [f for f in ("storeLocation", "sourcePath", "secretKind", "fieldMappings") if not spec.get(f)]
    if missing:
        raise InvalidSpec(f"required fields missing or empty: {', '.join(missing)}")

    for f in ("storeLocation", "sourcePath", "secretKind"):
        if not isinstance(spec[f], str):
            raise InvalidSpec(f"{f} must be a string")

    mappings = spec["fieldMappings"]
    if not isinstance(mappings, dict):
        raise InvalidSpec("fieldMappings must be a mapping of destination keys to source fields")

    for dest, source in mappings.items():
        if not isinstance(dest, str) or not dest:
            raise InvalidSpec("fieldMappings keys must be non-empty strings")
        if not isinstance(source, str) or not source:
            raise InvalidSpec(f"fieldMappings[{dest!r}] must be a non-empty string")

    return SourceSpec(
        store_location=spec["storeLocation"],
        source_path=spec["sourcePath"],
        secret_kind=spec["secretKind"],
        field_mappings=dict(mappings),
    )


def create_source_object_from_body(body: dict[str, Any]) -> SourceObject:
    """Snapshot a BrokeredSecret body read from the cluster.

    An invalid spec does not raise; it is recorded on the snapshot so that the
    failure can be reported through status.
    """
    meta = body.get("metadata", {})
    spec: SourceSpec | None
    try:
        spec = create_source_spec_from_spec(body.get("spec") or {})
        spec_error = None
    except InvalidSpec as e:
        spec = None
        spec_error = str(e)

    return SourceObject(
        key=ObjectKey(meta.get("namespace", "default"), meta.get("name", "")),
        uid=meta.get("uid", ""),
        resource_version=meta.get("resourceVersion", ""),
        spec=spec,
        status=SourceStatus.from_dict(body.get("status")),
        body=body,
        spec_error=spec_error,
    )
