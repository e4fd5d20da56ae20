"""Propagates object-level public-read changes to the permission store.

Every object is backed by two permission records: the primary content
(``file_<name>``) and its metadata sidecar (``<name>_info``).  Each is
resolved independently and then granted public read (for added objects)
or stripped of all principals (for removed objects).

Propagation is best-effort and idempotent:

- Failures are soft.  A resolution or mutation failure is logged, the
  remaining records of that object are skipped, and the batch carries on.
- Nothing is rolled back; re-running the same grant or revoke is a no-op
  at the permission store.
- The wildcard object name ``"*"`` is never decomposed.  A revoke batch
  containing it is skipped as a whole, so no public access is removed;
  in a grant batch only the wildcard entry is skipped.

Cancellation of the request context is never treated as a soft failure.

Example
-------
>>> propagator = PermissionPropagator(store, owner_id="did:owner")
>>> report = propagator.grant(ctx, ["cat.png"], "photos")
>>> report.granted
['id-1', 'id-2']
"""
from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import PermissionResolutionError, PermissionStoreError
from bucket_policy_sync.stores.base import PermissionStore

logger = logging.getLogger(__name__)

WILDCARD_OBJECT: str = "*"


class PermissionChange(str, Enum):
    """Direction of a propagation batch."""

    GRANT = "grant"
    REVOKE = "revoke"


def derived_suffixes(object_name: str) -> tuple[str, str]:
    """Return the primary-content and metadata-sidecar suffixes for an object."""
    return (f"file_{object_name}", f"{object_name}_info")


@dataclass
class PropagationFailure:
    """An object whose propagation stopped early."""

    object_name: str
    suffix: str
    reason: str


@dataclass
class PropagationReport:
    """Outcome of one or more propagation batches.

    Attributes
    ----------
    granted:
        Identifiers made publicly readable.
    revoked:
        Identifiers whose principal list was cleared.
    skipped:
        Object names that were deliberately not propagated: wildcard grants,
        and every name of a revoke batch that contains the wildcard.
    failures:
        Objects whose propagation failed part-way.
    """

    granted: list[str] = field(default_factory=list)
    revoked: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[PropagationFailure] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def merge(self, other: PropagationReport) -> PropagationReport:
        """Return a new report combining ``self`` and ``other``."""
        return PropagationReport(
            granted=[*self.granted, *other.granted],
            revoked=[*self.revoked, *other.revoked],
            skipped=[*self.skipped, *other.skipped],
            failures=[*self.failures, *other.failures],
        )


class PermissionPropagator:
    """Turns added/removed object names into permission store mutations.

    Parameters
    ----------
    store:
        The external permission store.
    owner_id:
        Owner identifier used to derive permission record keys.
    """

    def __init__(self, store: PermissionStore, owner_id: str) -> None:
        self._store = store
        self._owner_id = owner_id

    def grant(self, ctx: RequestContext, object_names: Sequence[str], bucket: str) -> PropagationReport:
        """Make every object in ``object_names`` publicly readable."""
        return self.propagate(ctx, object_names, bucket, PermissionChange.GRANT)

    def revoke(self, ctx: RequestContext, object_names: Sequence[str], bucket: str) -> PropagationReport:
        """Remove public read access from every object in ``object_names``."""
        return self.propagate(ctx, object_names, bucket, PermissionChange.REVOKE)

    def propagate(
        self,
        ctx: RequestContext,
        object_names: Sequence[str],
        bucket: str,
        change: PermissionChange,
    ) -> PropagationReport:
        """Apply ``change`` to each object name, continuing past soft failures.

        Raises
        ------
        OperationCancelledError
            When ``ctx`` is cancelled; objects not yet processed are left as is.
        """
        report = PropagationReport()

        if change == PermissionChange.REVOKE and WILDCARD_OBJECT in object_names:
            logger.info("Bucket '%s': not removing public read access from all objects", bucket)
            report.skipped.extend(object_names)
            return report

        for object_name in object_names:
            if object_name == WILDCARD_OBJECT:
                logger.info("Bucket '%s': bulk wildcard grants are not supported", bucket)
                report.skipped.append(object_name)
                continue

            if change == PermissionChange.GRANT:
                logger.info("Bucket '%s': object '%s' made publicly readable", bucket, object_name)
            else:
                logger.info("Bucket '%s': object '%s' removed from public read", bucket, object_name)

            self._propagate_object(ctx, object_name, bucket, change, report)

        return report

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _propagate_object(
        self,
        ctx: RequestContext,
        object_name: str,
        bucket: str,
        change: PermissionChange,
        report: PropagationReport,
    ) -> None:
        for suffix in derived_suffixes(object_name):
            try:
                identifier = self._resolve(ctx, object_name, suffix, bucket)
            except PermissionResolutionError as exc:
                logger.warning("%s", exc)
                report.failures.append(PropagationFailure(object_name, suffix, exc.detail))
                return

            try:
                ctx.check()
                if change == PermissionChange.GRANT:
                    self._store.grant_public_read(ctx, identifier)
                    report.granted.append(identifier)
                else:
                    self._store.clear_principals(ctx, identifier)
                    report.revoked.append(identifier)
            except PermissionStoreError as exc:
                logger.warning(
                    "Failed to %s public read on '%s' (%s): %s",
                    change.value,
                    suffix,
                    identifier,
                    exc,
                )
                report.failures.append(PropagationFailure(object_name, suffix, str(exc)))
                return

    def _resolve(self, ctx: RequestContext, object_name: str, suffix: str, bucket: str) -> str:
        ctx.check()
        try:
            identifier = self._store.resolve(ctx, self._owner_id, suffix, bucket)
        except PermissionStoreError as exc:
            raise PermissionResolutionError(object_name, suffix, str(exc)) from exc
        if identifier is None:
            raise PermissionResolutionError(object_name, suffix, "record not found")
        return identifier
