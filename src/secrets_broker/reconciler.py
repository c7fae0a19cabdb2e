"""Reconciliation state machine for BrokeredSecrets.

Each phase maps to a pure transition ``(Observation, now) -> Plan``. The
``Reconciler`` gathers the observation, runs the transition for the persisted
phase, and executes the resulting plan against the cluster.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable

from . import config, metrics
from .builders.secret import build_managed_secret, materialize_secret_data
from .constants import (
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_SECRET_ADOPTED,
    EVENT_REASON_SECRET_CREATED,
    EVENT_REASON_SECRET_UPDATED,
    EVENT_REASON_SYNC_FAILED,
    KIND_BROKERED_SECRET,
    PHASE_EMPTY,
    PHASE_ERROR,
    PHASE_IN_SYNC,
    PHASE_PENDING,
    PHASE_STALE,
    REASON_INVALID_SPEC,
    REASON_MISSING_SOURCE_FIELD,
    REASON_PROVIDER_REJECTED,
    REASON_PROVIDER_UNAVAILABLE,
    REASON_SECRET_DRIFTED,
    REASON_SECRET_KIND_MISMATCH,
    REASON_SECRET_OWNED_ELSEWHERE,
    REASON_SOURCE_NOT_FOUND,
)
from .exceptions import (
    AlreadyExists,
    ClusterUnavailable,
    Conflict,
    DeadlineExceeded,
    InvalidSpec,
    MissingSourceField,
    UnknownPhase,
)
from .handlers.base import BaseHandler, EventSink
from .models import ManagedSecret, ObjectKey, SourceObject, SourceStatus
from .services.cluster import ClusterAccessor
from .services.store.base import NotFound, ProviderError, SecretProvider, Unavailable
from .status import StatusManager
from .tracing import add_span_attribute, trace_span
from .utils.backoff import backoff_delay
from .utils.conditions import set_not_synchronized_condition, set_synchronized_condition
from .utils.context import with_correlation_id
from .utils.deadline import Deadline
from .utils.errors import sanitize_exception
from .utils.events import emit_event

SYNCED_MESSAGE = "The managed Secret is up to date with the source"


class Requeue(enum.Enum):
    """When the dispatcher should invoke the reconciler again."""

    NONE = "none"
    IMMEDIATE = "immediate"
    BACKOFF = "backoff"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconcile invocation.

    ``failed`` marks a requeue caused by an error, as opposed to a planned
    follow-up step; only failures advance the backoff.
    """

    requeue: bool = False
    requeue_after: float | None = None
    failed: bool = False

    @classmethod
    def done(cls) -> ReconcileResult:
        return cls()

    @classmethod
    def after(cls, delay: float, failed: bool = False) -> ReconcileResult:
        return cls(requeue=True, requeue_after=delay, failed=failed)


@dataclass(frozen=True)
class Observation:
    """What the reconciler saw of the world for one source object.

    ``desired`` is the materialized data when the source was fetched
    successfully; otherwise ``error`` holds why it could not be.
    """

    source: SourceObject
    secret: ManagedSecret | None = None
    desired: dict[str, bytes] | None = None
    error: Exception | None = None


@dataclass(frozen=True)
class Plan:
    """Side effects a transition asks the executor to perform."""

    status: SourceStatus
    create_secret: bool = False
    update_secret: bool = False
    requeue: Requeue = Requeue.NONE
    # (reason, message, type)
    event: tuple[str, str, str] | None = None


def _with_phase(status: SourceStatus, phase: str, conditions: Any = None) -> SourceStatus:
    return SourceStatus(phase=phase, conditions=status.conditions if conditions is None else conditions)


def classify_failure(error: Exception) -> tuple[str, Requeue]:
    """Condition reason and retry policy for an error observed while fetching."""
    if isinstance(error, InvalidSpec):
        return REASON_INVALID_SPEC, Requeue.NONE
    if isinstance(error, MissingSourceField):
        return REASON_MISSING_SOURCE_FIELD, Requeue.COOLDOWN
    if isinstance(error, Unavailable):
        return REASON_PROVIDER_UNAVAILABLE, Requeue.BACKOFF
    if isinstance(error, NotFound):
        return REASON_SOURCE_NOT_FOUND, Requeue.COOLDOWN
    if isinstance(error, ProviderError):
        return REASON_PROVIDER_REJECTED, Requeue.COOLDOWN
    raise TypeError(f"unexpected observation error {type(error).__name__}")


def _error_plan(obs: Observation, now: datetime, reason: str, message: str, requeue: Requeue) -> Plan:
    conditions = set_not_synchronized_condition(obs.source.status.conditions, reason, message, now)
    return Plan(
        status=_with_phase(obs.source.status, PHASE_ERROR, conditions),
        requeue=requeue,
        event=(EVENT_REASON_SYNC_FAILED, f"{reason}: {message}", "Warning"),
    )


def _failed(obs: Observation, now: datetime) -> Plan:
    assert obs.error is not None
    reason, requeue = classify_failure(obs.error)
    return _error_plan(obs, now, reason, sanitize_exception(obs.error), requeue)


def _synced_status(obs: Observation, now: datetime) -> SourceStatus:
    conditions = set_synchronized_condition(obs.source.status.conditions, SYNCED_MESSAGE, now)
    return _with_phase(obs.source.status, PHASE_IN_SYNC, conditions)


def _secret_missing(obs: Observation, now: datetime) -> Plan:
    conditions = set_not_synchronized_condition(
        obs.source.status.conditions,
        REASON_SECRET_DRIFTED,
        "The managed Secret no longer exists",
        now,
    )
    return Plan(status=_with_phase(obs.source.status, PHASE_PENDING, conditions), requeue=Requeue.IMMEDIATE)


def refuse_foreign_secret(obs: Observation, now: datetime) -> Plan | None:
    """Error plan for an existing Secret this object may not write, else None.

    A Secret controlled by another owner is left alone. Kubernetes does not
    allow a Secret's type to change, so one of the wrong type is reported
    until it is removed by hand.
    """
    assert obs.secret is not None
    secret = obs.secret
    if secret.controller_uid is not None and secret.controller_uid != obs.source.uid:
        return _error_plan(
            obs, now, REASON_SECRET_OWNED_ELSEWHERE, f"Secret {secret.key} is controlled by another owner", Requeue.COOLDOWN
        )
    spec = obs.source.spec
    if spec is not None and secret.type != spec.secret_kind:
        return _error_plan(
            obs,
            now,
            REASON_SECRET_KIND_MISMATCH,
            f"Secret {secret.key} has type {secret.type!r}, expected {spec.secret_kind!r}",
            Requeue.COOLDOWN,
        )
    return None


def verify_existing(obs: Observation, now: datetime) -> Plan:
    """Compare an existing Secret with the materialized data.

    A matching Secret without a controller is adopted: the data is written
    back unchanged together with the owner reference.
    """
    assert obs.secret is not None
    refused = refuse_foreign_secret(obs, now)
    if refused is not None:
        return refused

    if obs.secret.data == obs.desired:
        if obs.secret.controller_uid is None:
            return Plan(
                status=_synced_status(obs, now),
                update_secret=True,
                event=(EVENT_REASON_SECRET_ADOPTED, f"Managed Secret {obs.secret.key} adopted", "Normal"),
            )
        return Plan(status=_synced_status(obs, now))

    conditions = set_not_synchronized_condition(
        obs.source.status.conditions,
        REASON_SECRET_DRIFTED,
        "The managed Secret differs from the source",
        now,
    )
    return Plan(
        status=_with_phase(obs.source.status, PHASE_STALE, conditions),
        requeue=Requeue.IMMEDIATE,
        event=(EVENT_REASON_DRIFT_DETECTED, f"Managed Secret {obs.secret.key} differs from source", "Warning"),
    )


def transition_empty(obs: Observation, now: datetime) -> Plan:
    """First sight of an object: mark it Pending, nothing else."""
    return Plan(status=_with_phase(obs.source.status, PHASE_PENDING), requeue=Requeue.IMMEDIATE)


def transition_pending(obs: Observation, now: datetime) -> Plan:
    """Create the managed Secret, or verify the one that already exists.

    Also used for Error, which retries as if Pending.
    """
    if obs.error is not None:
        return _failed(obs, now)
    if obs.secret is None:
        return Plan(
            status=_synced_status(obs, now),
            create_secret=True,
            event=(EVENT_REASON_SECRET_CREATED, f"Managed Secret {obs.source.key} created", "Normal"),
        )
    return verify_existing(obs, now)


def transition_in_sync(obs: Observation, now: datetime) -> Plan:
    """Periodic re-check of a synchronized object for drift."""
    if obs.error is not None:
        return _failed(obs, now)
    if obs.secret is None:
        return _secret_missing(obs, now)
    return verify_existing(obs, now)


def transition_stale(obs: Observation, now: datetime) -> Plan:
    """Rewrite a drifted Secret with the current source values."""
    if obs.error is not None:
        return _failed(obs, now)
    if obs.secret is None:
        return _secret_missing(obs, now)
    if obs.secret.data == obs.desired:
        return verify_existing(obs, now)
    refused = refuse_foreign_secret(obs, now)
    if refused is not None:
        return refused
    return Plan(
        status=_synced_status(obs, now),
        update_secret=True,
        event=(EVENT_REASON_SECRET_UPDATED, f"Managed Secret {obs.secret.key} updated from source", "Normal"),
    )


TRANSITIONS: dict[str, Callable[[Observation, datetime], Plan]] = {
    PHASE_EMPTY: transition_empty,
    PHASE_PENDING: transition_pending,
    PHASE_IN_SYNC: transition_in_sync,
    PHASE_STALE: transition_stale,
    PHASE_ERROR: transition_pending,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcilerDeps:
    """Collaborators handed to the Reconciler."""

    cluster: ClusterAccessor
    provider: SecretProvider
    clock: Callable[[], datetime] = _utcnow
    events: EventSink = emit_event


class Reconciler(BaseHandler):
    """Drives one BrokeredSecret and its managed Secret toward convergence.

    The dispatcher guarantees a single in-flight invocation per key, so no
    locking happens here. All state is re-read from the cluster on every
    invocation.
    """

    def __init__(self, deps: ReconcilerDeps, timeout: float | None = None):
        super().__init__(KIND_BROKERED_SECRET, events=deps.events)
        self.deps = deps
        self.status_manager = StatusManager(deps.cluster)
        self.timeout = config.RECONCILE_TIMEOUT_SECONDS if timeout is None else timeout

    def reconcile(self, key: ObjectKey, retry: int = 0) -> ReconcileResult:
        """Run one reconcile invocation for ``key``.

        Args:
            key: Namespace and name of the source object
            retry: Number of consecutive failed attempts for this key

        Returns:
            Whether and when to requeue

        Raises:
            UnknownPhase: If the persisted phase is not recognized. Nothing is
                written in that case.
        """
        meta = {"namespace": key.namespace, "name": key.name}
        deadline = Deadline(self.timeout)

        with with_correlation_id(), trace_span(
            "reconcile_brokered_secret", kind=self.kind, attributes={"brokeredsecret.key": str(key)}
        ):
            try:
                source = self.deps.cluster.get_source(key, timeout=deadline.check("reading source"))
                if source is None:
                    self.log_info(meta, "Source object not found, dropping", reason="NotFound")
                    return ReconcileResult.done()

                meta = source.body.get("metadata", meta)
                phase = source.status.phase
                transition = TRANSITIONS.get(phase)
                if transition is None:
                    self.log_error(meta, f"Phase {phase!r} not handled by this controller", reason="UnknownPhase")
                    raise UnknownPhase(phase)

                add_span_attribute("brokeredsecret.phase", phase)
                obs = self.observe(source, deadline)
                plan = transition(obs, self.deps.clock())
                return self.execute(obs, plan, retry, deadline)
            except Conflict as e:
                self.log_info(meta, f"Concurrent modification, requeueing: {e}", reason="Conflict")
                return ReconcileResult.after(config.IMMEDIATE_REQUEUE_SECONDS)
            except (ClusterUnavailable, DeadlineExceeded) as e:
                delay = backoff_delay(retry)
                self.log_warning(meta, f"Transient failure, retrying in {delay:.1f}s: {e}", reason=type(e).__name__)
                return ReconcileResult.after(delay, failed=True)

    def observe(self, source: SourceObject, deadline: Deadline) -> Observation:
        """Read the managed Secret and materialize the desired data.

        Fetch and materialization failures are captured on the observation so
        the transition can record them; cluster failures propagate.
        """
        if source.status.phase == PHASE_EMPTY:
            return Observation(source=source)
        if source.spec is None:
            return Observation(source=source, error=InvalidSpec(source.spec_error or "invalid spec"))

        secret = self.deps.cluster.get_secret(source.key, timeout=deadline.check("reading managed secret"))

        spec = source.spec
        with trace_span("fetch_source", kind=self.kind, attributes={"provider": self.deps.provider.name}):
            try:
                fetched = self.deps.provider.fetch(
                    spec.store_location,
                    spec.source_path,
                    timeout=deadline.check("fetching source"),
                )
                desired = materialize_secret_data(spec.field_mappings, fetched)
            except (ProviderError, MissingSourceField) as e:
                return Observation(source=source, secret=secret, error=e)

        deadline.check("applying changes")
        return Observation(source=source, secret=secret, desired=desired)

    def execute(self, obs: Observation, plan: Plan, retry: int, deadline: Deadline) -> ReconcileResult:
        """Apply a plan: Secret first, then status."""
        source = obs.source
        meta = source.body.get("metadata", {})
        secret = obs.secret
        secret_written = False

        if plan.create_secret:
            assert obs.desired is not None
            try:
                with trace_span("create_secret", kind=self.kind):
                    self.deps.cluster.create_secret(
                        build_managed_secret(source, obs.desired),
                        timeout=deadline.check("creating managed secret"),
                    )
                secret_written = True
                self.log_info(meta, "Managed Secret created", event="create", reason="SecretCreated")
            except AlreadyExists:
                # Created by a previous attempt or by hand: verify instead of failing
                secret = self.deps.cluster.get_secret(source.key, timeout=deadline.check("verifying managed secret"))
                if secret is None:
                    raise Conflict(f"secret {source.key} vanished after create conflict")
                plan = verify_existing(replace(obs, secret=secret), self.deps.clock())

        if plan.update_secret:
            assert secret is not None and obs.desired is not None
            with trace_span("update_secret", kind=self.kind):
                self.deps.cluster.update_secret_data(
                    secret,
                    source,
                    obs.desired,
                    timeout=deadline.check("updating managed secret"),
                )
            secret_written = True
            reason = plan.event[0] if plan.event else EVENT_REASON_SECRET_UPDATED
            self.log_info(meta, f"Managed Secret written ({reason})", event="update", reason=reason)

        status_written = self.status_manager.apply(
            source, plan.status, timeout=deadline.check("writing status")
        )

        if status_written:
            from_phase = source.status.phase
            if from_phase != plan.status.phase:
                metrics.phase_transitions_total.labels(from_phase=from_phase or "Empty", to_phase=plan.status.phase).inc()
                self.log_info(
                    meta,
                    f"Phase {from_phase or 'Empty'} -> {plan.status.phase}",
                    event="transition",
                    reason="PhaseChanged",
                )
            if plan.status.phase == PHASE_STALE:
                metrics.drift_detected_total.labels(kind=self.kind).inc()

        if plan.event is not None and (status_written or secret_written):
            reason, message, type_ = plan.event
            self.events(source.body, reason, message, type_)

        return self._requeue(plan.requeue, retry)

    def _requeue(self, requeue: Requeue, retry: int) -> ReconcileResult:
        if requeue is Requeue.IMMEDIATE:
            return ReconcileResult.after(config.IMMEDIATE_REQUEUE_SECONDS)
        if requeue is Requeue.BACKOFF:
            return ReconcileResult.after(backoff_delay(retry), failed=True)
        if requeue is Requeue.COOLDOWN:
            return ReconcileResult.after(config.REJECTED_COOLDOWN_SECONDS, failed=True)
        return ReconcileResult.done()
