"""In-memory store implementations.

Useful for embedding the engine in tests or single-process tools.  Each
store keeps a ``calls`` list of ``(operation, argument)`` tuples so callers
can assert on the exact sequence of external calls.

Failures can be injected through constructor flags to exercise the
reconciler's soft- and hard-failure paths.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone

from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import (
    MetadataStoreError,
    PermissionStoreError,
    RecordStoreError,
)
from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    RecordLookup,
    TransportError,
    UpdateStatus,
    record_key,
)


class InMemoryRecordStore:
    """Record store keeping payloads in a dict.

    Parameters
    ----------
    unreachable:
        When ``True`` every call fails as a categorical transport failure.
    fail_writes:
        When ``True`` create/update raise a non-categorical ``RecordStoreError``.
    """

    def __init__(self, unreachable: bool = False, fail_writes: bool = False) -> None:
        self.unreachable = unreachable
        self.fail_writes = fail_writes
        self.keys: dict[str, str] = {}
        self.payloads: dict[str, bytes] = {}
        self.tags: dict[str, dict[str, str]] = {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def lookup(self, ctx: RequestContext, key: str) -> RecordLookup:
        ctx.check()
        self.calls.append(("lookup", key))
        if self.unreachable:
            return TransportError(detail="no route to host", unreachable=True)
        with self._lock:
            ref = self.keys.get(key)
        return Found(ref) if ref is not None else Absent()

    def load(self, ctx: RequestContext, ref: str) -> bytes:
        ctx.check()
        self.calls.append(("load", ref))
        self._raise_if_unreachable()
        with self._lock:
            try:
                return self.payloads[ref]
            except KeyError:
                raise RecordStoreError(f"payload '{ref}' not found") from None

    def create(self, ctx: RequestContext, payload: bytes, tags: dict[str, str]) -> str:
        ctx.check()
        self.calls.append(("create", tags.get("key", "")))
        self._raise_if_unreachable()
        if self.fail_writes:
            raise RecordStoreError("create rejected")
        ref = str(uuid.uuid4())
        with self._lock:
            self.payloads[ref] = payload
            self.tags[ref] = dict(tags)
            if "key" in tags:
                self.keys[tags["key"]] = ref
        return ref

    def update(self, ctx: RequestContext, ref: str, payload: bytes) -> UpdateStatus:
        ctx.check()
        self.calls.append(("update", ref))
        self._raise_if_unreachable()
        if self.fail_writes:
            raise RecordStoreError("update rejected")
        with self._lock:
            if ref not in self.payloads:
                raise RecordStoreError(f"payload '{ref}' not found")
            if self.payloads[ref] == payload:
                return UpdateStatus.NO_DIFFERENCES
            self.payloads[ref] = payload
        return UpdateStatus.UPDATED

    def _raise_if_unreachable(self) -> None:
        if self.unreachable:
            raise RecordStoreError("no route to host", unreachable=True)


class InMemoryMetadataStore:
    """Local metadata store keyed by ``(bucket, config_key)``."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.fail_writes = fail_writes
        self.entries: dict[tuple[str, str], bytes] = {}
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def write(self, ctx: RequestContext, bucket: str, config_key: str, data: bytes) -> datetime:
        ctx.check()
        self.calls.append(("write", bucket))
        if self.fail_writes:
            raise MetadataStoreError(f"write to '{bucket}/{config_key}' rejected")
        with self._lock:
            self.entries[(bucket, config_key)] = data
        return datetime.now(tz=timezone.utc)

    def read(self, ctx: RequestContext, bucket: str, config_key: str) -> bytes | None:
        ctx.check()
        self.calls.append(("read", bucket))
        with self._lock:
            return self.entries.get((bucket, config_key))

    def delete(self, ctx: RequestContext, bucket: str, config_key: str) -> datetime:
        ctx.check()
        self.calls.append(("delete", bucket))
        if self.fail_writes:
            raise MetadataStoreError(f"delete of '{bucket}/{config_key}' rejected")
        with self._lock:
            self.entries.pop((bucket, config_key), None)
        return datetime.now(tz=timezone.utc)


class InMemoryPermissionStore:
    """Permission store mapping derived keys to identifiers.

    Parameters
    ----------
    fail_resolve:
        Suffixes whose resolution raises ``PermissionStoreError``.
    fail_mutation:
        Identifiers whose grant/clear calls raise ``PermissionStoreError``.
    """

    def __init__(
        self,
        fail_resolve: set[str] | None = None,
        fail_mutation: set[str] | None = None,
    ) -> None:
        self.identifiers: dict[str, str] = {}
        self.public: set[str] = set()
        self.fail_resolve: set[str] = set(fail_resolve or ())
        self.fail_mutation: set[str] = set(fail_mutation or ())
        self.calls: list[tuple[str, str]] = []

    def register(self, owner_id: str, suffix: str, bucket: str, identifier: str | None = None) -> str:
        """Register a backing resource and return its identifier."""
        identifier = identifier or str(uuid.uuid4())
        self.identifiers[record_key(owner_id, suffix, bucket)] = identifier
        return identifier

    def resolve(self, ctx: RequestContext, owner_id: str, suffix: str, bucket: str) -> str | None:
        ctx.check()
        self.calls.append(("resolve", suffix))
        if suffix in self.fail_resolve:
            raise PermissionStoreError(f"lookup of '{suffix}' failed")
        return self.identifiers.get(record_key(owner_id, suffix, bucket))

    def grant_public_read(self, ctx: RequestContext, identifier: str) -> None:
        ctx.check()
        self.calls.append(("grant", identifier))
        if identifier in self.fail_mutation:
            raise PermissionStoreError(f"grant on '{identifier}' failed")
        self.public.add(identifier)

    def clear_principals(self, ctx: RequestContext, identifier: str) -> None:
        ctx.check()
        self.calls.append(("clear", identifier))
        if identifier in self.fail_mutation:
            raise PermissionStoreError(f"clear on '{identifier}' failed")
        self.public.discard(identifier)
