"""Two-step persistence of the canonical bucket policy.

The policy is written to two stores, modelled as a saga whose steps carry
their own failure policy:

1. ``record-store`` (:attr:`StepPolicy.CONTINUE`) — create or update the
   secondary copy in the external record store.  Failures are logged and
   the saga continues, except categorical unreachability which aborts the
   whole request.
2. ``local-store`` (:attr:`StepPolicy.ABORT`) — write the authoritative
   copy to the local metadata store.  Any failure aborts with
   :class:`~bucket_policy_sync.errors.LocalPersistenceError`.

Neither step is rolled back.  Once both steps have run the caller notifies
the replication hook through :meth:`PolicyPersistence.notify`; delivery
failures are logged only.

All reads go through the local metadata store, so a successful write is
immediately visible regardless of the record store's state.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import (
    BucketPolicyError,
    ExternalStoreUnreachableError,
    LocalPersistenceError,
    MetadataStoreError,
    RecordStoreError,
)
from bucket_policy_sync.replication.hook import ReplicationEvent, ReplicationHook
from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    MetadataStore,
    RecordLookup,
    RecordStore,
    TransportError,
    UpdateStatus,
    record_key,
)

logger = logging.getLogger(__name__)

DEFAULT_RECORD_TAG: str = "bucket_policy"
DEFAULT_POLICY_CONFIG_KEY: str = "policy.json"


class StepPolicy(str, Enum):
    """What the saga does when a step fails."""

    CONTINUE = "continue"
    ABORT = "abort"


class RecordStatus(str, Enum):
    """What happened to the record store copy."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PersistenceResult:
    """Outcome of :meth:`PolicyPersistence.persist`."""

    record_status: RecordStatus = RecordStatus.SKIPPED
    record_ref: str | None = None
    record_error: str | None = None
    updated_at: datetime | None = None
    step_failures: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SagaStep:
    """One step of the persistence saga.

    Attributes
    ----------
    name:
        Step label used in logs and :attr:`PersistenceResult.step_failures`.
    on_failure:
        Whether a failure aborts the saga or is recorded and skipped.
    run:
        The step body.
    failure_types:
        Exceptions handled according to ``on_failure``; anything else
        propagates unchanged.
    escalate:
        Builds the error raised when an ``ABORT`` step fails.
    """

    name: str
    on_failure: StepPolicy
    run: Callable[[], None]
    failure_types: tuple[type[Exception], ...]
    escalate: Callable[[Exception], BucketPolicyError] | None = None


def run_saga(steps: list[SagaStep]) -> dict[str, str]:
    """Run ``steps`` in order and return ``{step name: error}`` for tolerated failures."""
    failures: dict[str, str] = {}
    for step in steps:
        try:
            step.run()
        except step.failure_types as exc:
            if step.on_failure == StepPolicy.ABORT:
                logger.error("Persistence step '%s' failed, aborting: %s", step.name, exc)
                if step.escalate is None:
                    raise
                raise step.escalate(exc) from exc
            logger.warning("Persistence step '%s' failed, continuing: %s", step.name, exc)
            failures[step.name] = str(exc)
    return failures


class PolicyPersistence:
    """Writes canonical policies to the record store and the local store.

    Parameters
    ----------
    record_store:
        External versioned record store.
    metadata_store:
        Authoritative local metadata store.
    replication_hook:
        Receiver of replication events.
    owner_id:
        Owner identifier used to build the record key.
    record_tag:
        Fixed tag used to build the record key.
    config_key:
        Name of the policy entry in the local metadata store.
    retention_days:
        Retention stamped on newly created records.
    """

    def __init__(
        self,
        record_store: RecordStore,
        metadata_store: MetadataStore,
        replication_hook: ReplicationHook,
        owner_id: str,
        record_tag: str = DEFAULT_RECORD_TAG,
        config_key: str = DEFAULT_POLICY_CONFIG_KEY,
        retention_days: int = 365,
    ) -> None:
        self._records = record_store
        self._metadata = metadata_store
        self._hook = replication_hook
        self._owner_id = owner_id
        self._record_tag = record_tag
        self._config_key = config_key
        self._retention_days = retention_days

    def record_key(self, bucket: str) -> str:
        """Key of ``bucket``'s policy in the record store."""
        return record_key(self._owner_id, self._record_tag, bucket)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def persist(
        self,
        ctx: RequestContext,
        bucket: str,
        canonical: bytes,
        lookup: RecordLookup | None = None,
    ) -> PersistenceResult:
        """Persist ``canonical`` to both stores.

        Parameters
        ----------
        ctx:
            Request context.
        bucket:
            Target bucket.
        canonical:
            Canonical serialized policy written to both stores.
        lookup:
            Record lookup already performed for this request; looked up
            again when omitted.

        Raises
        ------
        ExternalStoreUnreachableError
            If the record store is categorically unreachable.
        LocalPersistenceError
            If the local metadata store write fails or reports no timestamp.
        """
        result = PersistenceResult()

        def write_record() -> None:
            self._write_record(ctx, bucket, canonical, lookup, result)

        def write_local() -> None:
            ctx.check()
            result.updated_at = self._metadata.write(ctx, bucket, self._config_key, canonical)

        result.step_failures = run_saga(
            [
                SagaStep(
                    name="record-store",
                    on_failure=StepPolicy.CONTINUE,
                    run=write_record,
                    failure_types=(RecordStoreError,),
                ),
                SagaStep(
                    name="local-store",
                    on_failure=StepPolicy.ABORT,
                    run=write_local,
                    failure_types=(MetadataStoreError,),
                    escalate=lambda exc: LocalPersistenceError(bucket, str(exc)),
                ),
            ]
        )
        if result.updated_at is None:
            raise LocalPersistenceError(bucket, "metadata store returned no write timestamp")
        if "record-store" in result.step_failures:
            result.record_status = RecordStatus.FAILED
            result.record_error = result.step_failures["record-store"]

        return result

    def remove(self, ctx: RequestContext, bucket: str) -> datetime:
        """Delete the local policy entry and notify replication.

        The record store copy is left untouched.

        Raises
        ------
        LocalPersistenceError
            If the local metadata store rejects the deletion.
        """
        ctx.check()
        try:
            updated_at = self._metadata.delete(ctx, bucket, self._config_key)
        except MetadataStoreError as exc:
            raise LocalPersistenceError(bucket, str(exc)) from exc
        self.notify(ReplicationEvent(bucket=bucket, policy=None, updated_at=updated_at))
        return updated_at

    def notify(self, event: ReplicationEvent) -> None:
        """Deliver ``event`` to the replication hook, logging any failure."""
        try:
            self._hook.notify(event)
        except Exception:
            logger.exception("Failed to deliver replication event for bucket '%s'", event.bucket)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    def read(self, ctx: RequestContext, bucket: str) -> bytes | None:
        """Return the stored canonical policy from the local metadata store."""
        ctx.check()
        return self._metadata.read(ctx, bucket, self._config_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write_record(
        self,
        ctx: RequestContext,
        bucket: str,
        canonical: bytes,
        lookup: RecordLookup | None,
        result: PersistenceResult,
    ) -> None:
        key = self.record_key(bucket)
        if lookup is None:
            ctx.check()
            lookup = self._records.lookup(ctx, key)

        try:
            if isinstance(lookup, TransportError):
                if lookup.unreachable:
                    raise ExternalStoreUnreachableError("record lookup", lookup.detail)
                logger.warning(
                    "Record '%s' state unknown (%s); skipping record store write", key, lookup.detail
                )
                result.record_status = RecordStatus.SKIPPED
                result.record_error = lookup.detail
                return

            ctx.check()
            if isinstance(lookup, Found):
                status = self._records.update(ctx, lookup.ref, canonical)
                result.record_ref = lookup.ref
                if status == UpdateStatus.NO_DIFFERENCES:
                    logger.info("No differences found, record '%s' not updated", key)
                    result.record_status = RecordStatus.UNCHANGED
                else:
                    logger.info("Bucket policy record '%s' updated", key)
                    result.record_status = RecordStatus.UPDATED
            elif isinstance(lookup, Absent):
                tags = {
                    "key": key,
                    "tag": self._record_tag,
                    "bucket": bucket,
                    "retention_days": str(self._retention_days),
                }
                result.record_ref = self._records.create(ctx, canonical, tags)
                logger.info("Bucket policy record '%s' created (%s)", key, result.record_ref)
                result.record_status = RecordStatus.CREATED
        except RecordStoreError as exc:
            if exc.unreachable:
                raise ExternalStoreUnreachableError("record write", str(exc)) from exc
            raise
