"""Bucket policy reconciler.

Orchestrates a policy submission end to end::

    START -> PREVIOUS_LOADED -> DIFFED -> PROPAGATED -> VALIDATED
          -> PERSISTED -> NOTIFIED -> DONE

with ``REJECTED`` (malformed submission, nothing touched) and ``ABORTED``
(record store categorically unreachable, or local store write failure) as
terminal error states.

The previous policy is read from the record store first and from the
authoritative local metadata store when the record is absent or cannot be
loaded.  Objects newly covered by a public-read grant are granted before
objects that lost coverage are revoked.

No locking is performed: concurrent submissions for one bucket race and
the last write wins.  Callers needing stronger guarantees must serialize
submissions per bucket.

Example
-------
>>> reconciler = Reconciler(
...     record_store=InMemoryRecordStore(),
...     metadata_store=InMemoryMetadataStore(),
...     permission_store=InMemoryPermissionStore(),
...     owner_id="did:owner",
... )
>>> result = reconciler.put_policy(RequestContext.background(), "photos", body)
>>> result.outcome
<ReconcileOutcome.SYNCED: 'synced'>
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from bucket_policy_sync.config import SyncConfig
from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import (
    ExternalStoreUnreachableError,
    InvalidPolicyVersionError,
    LocalPersistenceError,
    MalformedPolicyError,
    MetadataStoreError,
    PolicyNotFoundError,
    RecordStoreError,
)
from bucket_policy_sync.permissions.propagator import PermissionPropagator, PropagationReport
from bucket_policy_sync.persistence.saga import (
    DEFAULT_POLICY_CONFIG_KEY,
    DEFAULT_RECORD_TAG,
    PersistenceResult,
    PolicyPersistence,
    RecordStatus,
)
from bucket_policy_sync.policies.differ import PolicyDelta, PolicyDiffer
from bucket_policy_sync.policies.document import PolicyDocument
from bucket_policy_sync.policies.extractor import ObjectNameExtractor
from bucket_policy_sync.policies.parser import PolicyParser, serialize
from bucket_policy_sync.replication.hook import (
    LoggingReplicationHook,
    ReplicationEvent,
    ReplicationHook,
)
from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    MetadataStore,
    PermissionStore,
    RecordLookup,
    RecordStore,
    TransportError,
)

logger = logging.getLogger(__name__)


class ReconcileState(str, Enum):
    """States of a single policy submission."""

    START = "start"
    PREVIOUS_LOADED = "previous_loaded"
    DIFFED = "diffed"
    PROPAGATED = "propagated"
    VALIDATED = "validated"
    PERSISTED = "persisted"
    NOTIFIED = "notified"
    DONE = "done"
    REJECTED = "rejected"
    ABORTED = "aborted"


class ReconcileOutcome(str, Enum):
    """Outcome reported to the caller."""

    SYNCED = "synced"
    SYNCED_WITH_PARTIAL_PROPAGATION = "synced_with_partial_propagation"
    REJECTED = "rejected"
    ABORTED = "aborted"


@dataclass
class ReconcileResult:
    """Result of :meth:`Reconciler.put_policy`.

    Attributes
    ----------
    bucket:
        Target bucket.
    outcome:
        Overall outcome.
    reason:
        Human-readable explanation for ``REJECTED`` and ``ABORTED``.
    error_code:
        Machine-readable code for ``REJECTED`` and ``ABORTED``.
    canonical:
        Canonical serialized policy, set on success.
    delta:
        Objects added to and removed from public read.
    propagation:
        Per-object propagation report.
    persistence:
        Record store and local store outcome.
    transitions:
        States visited, in order.
    """

    bucket: str
    outcome: ReconcileOutcome
    reason: str | None = None
    error_code: str | None = None
    canonical: bytes | None = None
    delta: PolicyDelta = field(default_factory=PolicyDelta)
    propagation: PropagationReport = field(default_factory=PropagationReport)
    persistence: PersistenceResult | None = None
    transitions: list[ReconcileState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.outcome in (
            ReconcileOutcome.SYNCED,
            ReconcileOutcome.SYNCED_WITH_PARTIAL_PROPAGATION,
        )

    @property
    def state(self) -> ReconcileState:
        return self.transitions[-1] if self.transitions else ReconcileState.START

    @property
    def updated_at(self) -> datetime | None:
        return self.persistence.updated_at if self.persistence else None

    @property
    def record_status(self) -> RecordStatus | None:
        return self.persistence.record_status if self.persistence else None


class Reconciler:
    """Reconciles submitted bucket policies with the backing stores.

    Parameters
    ----------
    record_store:
        External versioned record store.
    metadata_store:
        Authoritative local metadata store.
    permission_store:
        External per-object permission store.
    owner_id:
        Owner identifier used to derive record and permission keys.
    replication_hook:
        Receiver of replication events; logs only when omitted.
    parser:
        Policy parser; a default :class:`PolicyParser` when omitted.
    record_tag:
        Fixed tag of the policy record key.
    config_key:
        Name of the policy entry in the local metadata store.
    retention_days:
        Retention stamped on newly created records.
    """

    def __init__(
        self,
        record_store: RecordStore,
        metadata_store: MetadataStore,
        permission_store: PermissionStore,
        owner_id: str,
        replication_hook: ReplicationHook | None = None,
        parser: PolicyParser | None = None,
        record_tag: str = DEFAULT_RECORD_TAG,
        config_key: str = DEFAULT_POLICY_CONFIG_KEY,
        retention_days: int = 365,
    ) -> None:
        self._records = record_store
        self._parser = parser or PolicyParser()
        self._extractor = ObjectNameExtractor()
        self._differ = PolicyDiffer()
        self._propagator = PermissionPropagator(permission_store, owner_id)
        self._persistence = PolicyPersistence(
            record_store=record_store,
            metadata_store=metadata_store,
            replication_hook=replication_hook or LoggingReplicationHook(),
            owner_id=owner_id,
            record_tag=record_tag,
            config_key=config_key,
            retention_days=retention_days,
        )

    @classmethod
    def from_config(
        cls,
        config: SyncConfig,
        record_store: RecordStore,
        metadata_store: MetadataStore,
        permission_store: PermissionStore,
        replication_hook: ReplicationHook | None = None,
    ) -> Reconciler:
        """Build a reconciler from a validated :class:`SyncConfig`."""
        return cls(
            record_store=record_store,
            metadata_store=metadata_store,
            permission_store=permission_store,
            owner_id=config.owner_id,
            replication_hook=replication_hook,
            parser=PolicyParser(max_size=config.max_policy_size),
            record_tag=config.record_tag,
            config_key=config.policy_config_key,
            retention_days=config.record_retention_days,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def put_policy(self, ctx: RequestContext, bucket: str, data: bytes) -> ReconcileResult:
        """Reconcile and store a newly submitted policy for ``bucket``.

        Malformed submissions yield ``REJECTED`` and hard failures yield
        ``ABORTED``; neither raises.

        Raises
        ------
        OperationCancelledError
            When ``ctx`` is cancelled; propagated unchanged.
        """
        result = ReconcileResult(bucket=bucket, outcome=ReconcileOutcome.SYNCED)
        result.transitions.append(ReconcileState.START)
        logger.info("[%s] Received policy for bucket '%s' (%d bytes)", ctx.request_id, bucket, len(data))

        try:
            document = self._parser.parse(data, bucket)
            if not document.version:
                raise InvalidPolicyVersionError(bucket)
        except MalformedPolicyError as exc:
            logger.info("[%s] Rejected policy for bucket '%s': %s", ctx.request_id, bucket, exc)
            result.outcome = ReconcileOutcome.REJECTED
            result.reason = exc.detail
            result.error_code = exc.code
            result.transitions.append(ReconcileState.REJECTED)
            return result

        try:
            previous, lookup = self._load_previous(ctx, bucket)
            result.transitions.append(ReconcileState.PREVIOUS_LOADED)

            result.delta = self._differ.diff(
                self._extractor.extract(previous, bucket),
                self._extractor.extract(document, bucket),
            )
            result.transitions.append(ReconcileState.DIFFED)

            grants = self._propagator.grant(ctx, result.delta.added, bucket)
            revokes = self._propagator.revoke(ctx, result.delta.removed, bucket)
            result.propagation = grants.merge(revokes)
            result.transitions.append(ReconcileState.PROPAGATED)

            canonical = serialize(document)
            result.transitions.append(ReconcileState.VALIDATED)

            result.persistence = self._persistence.persist(ctx, bucket, canonical, lookup)
            result.transitions.append(ReconcileState.PERSISTED)
        except (ExternalStoreUnreachableError, LocalPersistenceError) as exc:
            logger.error("[%s] Aborted policy update for bucket '%s': %s", ctx.request_id, bucket, exc)
            result.outcome = ReconcileOutcome.ABORTED
            result.reason = str(exc)
            result.error_code = type(exc).__name__
            result.transitions.append(ReconcileState.ABORTED)
            return result

        # persist() raises rather than return without a local write timestamp.
        self._persistence.notify(
            ReplicationEvent(bucket=bucket, policy=data, updated_at=result.persistence.updated_at)  # type: ignore[arg-type]
        )
        result.transitions.append(ReconcileState.NOTIFIED)

        result.canonical = canonical
        if result.propagation.has_failures:
            result.outcome = ReconcileOutcome.SYNCED_WITH_PARTIAL_PROPAGATION
        result.transitions.append(ReconcileState.DONE)
        logger.info(
            "[%s] Policy for bucket '%s' synced: +%d/-%d object(s), %d failure(s), record %s",
            ctx.request_id,
            bucket,
            len(result.delta.added),
            len(result.delta.removed),
            len(result.propagation.failures),
            result.persistence.record_status.value,
        )
        return result

    def get_policy(self, ctx: RequestContext, bucket: str) -> bytes:
        """Return the canonical policy stored for ``bucket``.

        Always served from the local metadata store.

        Raises
        ------
        PolicyNotFoundError
            If no policy is stored for ``bucket``.
        """
        stored = self._persistence.read(ctx, bucket)
        if stored is None:
            raise PolicyNotFoundError(bucket)
        return stored

    def delete_policy(self, ctx: RequestContext, bucket: str) -> datetime:
        """Remove ``bucket``'s policy from the local store and notify replication.

        Object permissions and the record store copy are left untouched.

        Raises
        ------
        LocalPersistenceError
            If the local metadata store rejects the deletion.
        """
        updated_at = self._persistence.remove(ctx, bucket)
        logger.info("[%s] Policy for bucket '%s' deleted", ctx.request_id, bucket)
        return updated_at

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _load_previous(
        self, ctx: RequestContext, bucket: str
    ) -> tuple[PolicyDocument | None, RecordLookup]:
        key = self._persistence.record_key(bucket)
        ctx.check()
        lookup = self._records.lookup(ctx, key)

        if isinstance(lookup, TransportError):
            if lookup.unreachable:
                raise ExternalStoreUnreachableError("record lookup", lookup.detail)
            logger.info("Unable to look up policy record '%s': %s", key, lookup.detail)
        elif isinstance(lookup, Absent):
            logger.info("No policy record '%s'; reading the local store", key)
        elif isinstance(lookup, Found):
            try:
                ctx.check()
                payload = self._records.load(ctx, lookup.ref)
                return self._parser.parse_stored(payload, bucket), lookup
            except RecordStoreError as exc:
                if exc.unreachable:
                    raise ExternalStoreUnreachableError("record load", str(exc)) from exc
                logger.info("Unable to load policy record '%s': %s", key, exc)
            except MalformedPolicyError as exc:
                logger.info("Stored policy record '%s' is unreadable: %s", key, exc)

        try:
            stored = self._persistence.read(ctx, bucket)
        except MetadataStoreError as exc:
            logger.error("Unable to read previous policy for bucket '%s': %s", bucket, exc)
            return None, lookup
        if stored is None:
            return None, lookup
        try:
            return self._parser.parse_stored(stored, bucket), lookup
        except MalformedPolicyError as exc:
            logger.error("Stored policy for bucket '%s' is unreadable: %s", bucket, exc)
            return None, lookup
