"""Collaborator interfaces for the stores the reconciler talks to.

Three backing systems are involved:

- :class:`RecordStore` — external versioned store holding a secondary
  copy of the policy, keyed by owner + tag + bucket.
- :class:`MetadataStore` — local, authoritative bucket metadata store.
- :class:`PermissionStore` — external system granting and revoking
  per-object public read access.

Every call receives the :class:`~bucket_policy_sync.context.RequestContext`
of the request so implementations can honour cancellation and deadlines.

Record existence is reported as a tagged :data:`RecordLookup` result rather
than inferred from error messages.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol, Union, runtime_checkable

from bucket_policy_sync.context import RequestContext


def record_key(owner_id: str, tag: str, bucket: str) -> str:
    """Return the ``"<owner>-<tag>-<bucket>"`` key used by external stores."""
    return f"{owner_id}-{tag}-{bucket}"


# ---------------------------------------------------------------------------
# Tagged lookup result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Found:
    """The record exists; ``ref`` addresses its payload."""

    ref: str


@dataclass(frozen=True)
class Absent:
    """The store answered and holds no record for the key."""


@dataclass(frozen=True)
class TransportError:
    """The store could not answer.

    Attributes
    ----------
    detail:
        Description of the failure.
    unreachable:
        ``True`` for categorical failures (no route to host and the like).
    """

    detail: str
    unreachable: bool = False


RecordLookup = Union[Found, Absent, TransportError]


class UpdateStatus(str, Enum):
    """Outcome of :meth:`RecordStore.update`."""

    UPDATED = "updated"
    NO_DIFFERENCES = "no_differences"


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class RecordStore(Protocol):
    """External versioned record store."""

    def lookup(self, ctx: RequestContext, key: str) -> RecordLookup:
        """Return a tagged result; never raises for transport failures."""
        ...

    def load(self, ctx: RequestContext, ref: str) -> bytes:
        """Return the payload addressed by ``ref``; raises ``RecordStoreError``."""
        ...

    def create(self, ctx: RequestContext, payload: bytes, tags: dict[str, str]) -> str:
        """Create a record and return its payload reference."""
        ...

    def update(self, ctx: RequestContext, ref: str, payload: bytes) -> UpdateStatus:
        """Replace the payload at ``ref``; reports ``NO_DIFFERENCES`` for no-ops."""
        ...


@runtime_checkable
class MetadataStore(Protocol):
    """Authoritative local bucket metadata store."""

    def write(self, ctx: RequestContext, bucket: str, config_key: str, data: bytes) -> datetime:
        """Store ``data`` and return the write timestamp; raises ``MetadataStoreError``."""
        ...

    def read(self, ctx: RequestContext, bucket: str, config_key: str) -> bytes | None:
        """Return stored bytes or ``None`` when nothing is stored."""
        ...

    def delete(self, ctx: RequestContext, bucket: str, config_key: str) -> datetime:
        """Remove the entry and return the deletion timestamp."""
        ...


@runtime_checkable
class PermissionStore(Protocol):
    """External per-object permission store."""

    def resolve(
        self, ctx: RequestContext, owner_id: str, suffix: str, bucket: str
    ) -> str | None:
        """Return the identifier for ``(owner_id, suffix, bucket)`` or ``None``."""
        ...

    def grant_public_read(self, ctx: RequestContext, identifier: str) -> None:
        """Make the resource publicly readable; raises ``PermissionStoreError``."""
        ...

    def clear_principals(self, ctx: RequestContext, identifier: str) -> None:
        """Remove every principal from the resource's access list."""
        ...
