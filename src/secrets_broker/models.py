"""Models for BrokeredSecret sources and their managed Secrets."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NamedTuple


class ObjectKey(NamedTuple):
    """Namespace and name identifying a source object and its managed Secret."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class SourceSpec:
    """User-authored mapping from a secret store location to Secret keys."""

    store_location: str
    source_path: str
    secret_kind: str
    # destination key -> source field name
    field_mappings: dict[str, str]


@dataclass(frozen=True)
class Condition:
    """A named boolean status fact."""

    type: str
    status: bool
    reason: str
    message: str
    last_transition_time: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "status": "True" if self.status else "False",
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Condition:
        return cls(
            type=data.get("type", ""),
            status=str(data.get("status", "False")) == "True",
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_transition_time=data.get("lastTransitionTime", ""),
        )


@dataclass(frozen=True)
class SourceStatus:
    """Controller-owned observed state of a source object.

    An empty phase means the object has not been observed yet.
    """

    phase: str = ""
    conditions: tuple[Condition, ...] = ()

    def get_condition(self, condition_type: str) -> Condition | None:
        for cond in self.conditions:
            if cond.type == condition_type:
                return cond
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase,
            "conditions": [cond.to_dict() for cond in self.conditions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SourceStatus:
        data = data or {}
        return cls(
            phase=data.get("phase") or "",
            conditions=tuple(Condition.from_dict(c) for c in data.get("conditions") or []),
        )


@dataclass(frozen=True)
class SourceObject:
    """Immutable snapshot of a BrokeredSecret as read from the cluster.

    ``spec`` is None when the stored spec failed validation; ``spec_error``
    then carries the reason.
    """

    key: ObjectKey
    uid: str
    resource_version: str
    spec: SourceSpec | None
    status: SourceStatus
    body: dict[str, Any] = field(repr=False, compare=False, default_factory=dict)
    spec_error: str | None = None


@dataclass(frozen=True)
class ManagedSecret:
    """Immutable snapshot of the Secret owned by a source object."""

    key: ObjectKey
    type: str
    data: dict[str, bytes] = field(repr=False)
    resource_version: str = ""
    controller_uid: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
