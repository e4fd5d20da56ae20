"""Tests for stores/memory.py and stores/filesystem.py."""
from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import (
    MetadataStoreError,
    OperationCancelledError,
    PermissionStoreError,
    RecordStoreError,
)
from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    MetadataStore,
    PermissionStore,
    RecordStore,
    TransportError,
    UpdateStatus,
    record_key,
)
from bucket_policy_sync.stores.filesystem import (
    FileMetadataStore,
    FilePermissionStore,
    FileRecordStore,
)
from bucket_policy_sync.stores.memory import (
    InMemoryMetadataStore,
    InMemoryPermissionStore,
    InMemoryRecordStore,
)


@pytest.fixture()
def ctx() -> RequestContext:
    return RequestContext.background()


def test_record_key_format() -> None:
    assert record_key("did:owner", "bucket_policy", "photos") == "did:owner-bucket_policy-photos"


def test_implementations_satisfy_protocols(tmp_path: Path) -> None:
    assert isinstance(InMemoryRecordStore(), RecordStore)
    assert isinstance(FileRecordStore(tmp_path), RecordStore)
    assert isinstance(InMemoryMetadataStore(), MetadataStore)
    assert isinstance(FileMetadataStore(tmp_path), MetadataStore)
    assert isinstance(InMemoryPermissionStore(), PermissionStore)
    assert isinstance(FilePermissionStore(tmp_path), PermissionStore)


# ---------------------------------------------------------------------------
# In-memory stores
# ---------------------------------------------------------------------------


class TestInMemoryRecordStore:
    def test_lookup_absent_then_found(self, ctx: RequestContext) -> None:
        store = InMemoryRecordStore()
        assert store.lookup(ctx, "k") == Absent()
        ref = store.create(ctx, b"payload", {"key": "k"})
        assert store.lookup(ctx, "k") == Found(ref)
        assert store.load(ctx, ref) == b"payload"

    def test_update_reports_no_differences(self, ctx: RequestContext) -> None:
        store = InMemoryRecordStore()
        ref = store.create(ctx, b"v1", {"key": "k"})
        assert store.update(ctx, ref, b"v1") == UpdateStatus.NO_DIFFERENCES
        assert store.update(ctx, ref, b"v2") == UpdateStatus.UPDATED
        assert store.load(ctx, ref) == b"v2"

    def test_unreachable_lookup_is_tagged(self, ctx: RequestContext) -> None:
        lookup = InMemoryRecordStore(unreachable=True).lookup(ctx, "k")
        assert isinstance(lookup, TransportError)
        assert lookup.unreachable is True

    def test_unreachable_load_raises_categorical_error(self, ctx: RequestContext) -> None:
        with pytest.raises(RecordStoreError) as exc_info:
            InMemoryRecordStore(unreachable=True).load(ctx, "ref")
        assert exc_info.value.unreachable is True

    def test_load_unknown_ref(self, ctx: RequestContext) -> None:
        with pytest.raises(RecordStoreError, match="not found"):
            InMemoryRecordStore().load(ctx, "missing")

    def test_cancelled_context_stops_calls(self) -> None:
        ctx = RequestContext.background()
        ctx.cancel()
        store = InMemoryRecordStore()
        with pytest.raises(OperationCancelledError):
            store.lookup(ctx, "k")
        assert store.calls == []


class TestInMemoryMetadataStore:
    def test_write_read_delete(self, ctx: RequestContext) -> None:
        store = InMemoryMetadataStore()
        assert store.read(ctx, "photos", "policy.json") is None
        store.write(ctx, "photos", "policy.json", b"{}")
        assert store.read(ctx, "photos", "policy.json") == b"{}"
        store.delete(ctx, "photos", "policy.json")
        assert store.read(ctx, "photos", "policy.json") is None

    def test_write_failure(self, ctx: RequestContext) -> None:
        with pytest.raises(MetadataStoreError):
            InMemoryMetadataStore(fail_writes=True).write(ctx, "photos", "policy.json", b"{}")


class TestInMemoryPermissionStore:
    def test_resolve_registered(self, ctx: RequestContext) -> None:
        store = InMemoryPermissionStore()
        identifier = store.register("o", "file_a", "photos")
        assert store.resolve(ctx, "o", "file_a", "photos") == identifier
        assert store.resolve(ctx, "o", "file_b", "photos") is None

    def test_grant_and_clear(self, ctx: RequestContext) -> None:
        store = InMemoryPermissionStore()
        store.grant_public_read(ctx, "id")
        assert "id" in store.public
        store.clear_principals(ctx, "id")
        assert "id" not in store.public

    def test_injected_failures(self, ctx: RequestContext) -> None:
        store = InMemoryPermissionStore(fail_resolve={"file_a"}, fail_mutation={"id"})
        with pytest.raises(PermissionStoreError):
            store.resolve(ctx, "o", "file_a", "photos")
        with pytest.raises(PermissionStoreError):
            store.grant_public_read(ctx, "id")


# ---------------------------------------------------------------------------
# File-backed stores
# ---------------------------------------------------------------------------


class TestFileMetadataStore:
    def test_round_trip_on_disk(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FileMetadataStore(tmp_path)
        store.write(ctx, "photos", "policy.json", b'{"Version":"2012-10-17"}')
        assert (tmp_path / "buckets" / "photos" / "policy.json").read_bytes() == b'{"Version":"2012-10-17"}'
        assert FileMetadataStore(tmp_path).read(ctx, "photos", "policy.json") == b'{"Version":"2012-10-17"}'

    def test_missing_entry_reads_none(self, tmp_path: Path, ctx: RequestContext) -> None:
        assert FileMetadataStore(tmp_path).read(ctx, "photos", "policy.json") is None

    def test_delete_missing_entry_is_noop(self, tmp_path: Path, ctx: RequestContext) -> None:
        FileMetadataStore(tmp_path).delete(ctx, "photos", "policy.json")

    def test_delete_removes_file(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FileMetadataStore(tmp_path)
        store.write(ctx, "photos", "policy.json", b"{}")
        store.delete(ctx, "photos", "policy.json")
        assert not (tmp_path / "buckets" / "photos" / "policy.json").exists()

    @pytest.mark.parametrize("bucket", ["", "..", "a/b"])
    def test_invalid_bucket_name(self, tmp_path: Path, ctx: RequestContext, bucket: str) -> None:
        with pytest.raises(MetadataStoreError, match="invalid bucket name"):
            FileMetadataStore(tmp_path).write(ctx, bucket, "policy.json", b"{}")


class TestFileRecordStore:
    def test_create_lookup_load(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FileRecordStore(tmp_path)
        ref = store.create(ctx, b"\x00binary", {"key": "k", "tag": "bucket_policy"})
        reopened = FileRecordStore(tmp_path)
        assert reopened.lookup(ctx, "k") == Found(ref)
        assert reopened.load(ctx, ref) == b"\x00binary"

    def test_tags_persisted(self, tmp_path: Path, ctx: RequestContext) -> None:
        ref = FileRecordStore(tmp_path).create(ctx, b"x", {"key": "k", "retention_days": "365"})
        state = json.loads((tmp_path / "records.json").read_text(encoding="utf-8"))
        assert state["tags"][ref]["retention_days"] == "365"

    def test_update(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FileRecordStore(tmp_path)
        ref = store.create(ctx, b"v1", {"key": "k"})
        assert store.update(ctx, ref, b"v1") == UpdateStatus.NO_DIFFERENCES
        assert store.update(ctx, ref, b"v2") == UpdateStatus.UPDATED
        assert store.load(ctx, ref) == b"v2"

    def test_update_unknown_ref(self, tmp_path: Path, ctx: RequestContext) -> None:
        with pytest.raises(RecordStoreError):
            FileRecordStore(tmp_path).update(ctx, "missing", b"x")

    def test_corrupt_file_reported_as_transport_error(self, tmp_path: Path, ctx: RequestContext) -> None:
        (tmp_path / "records.json").write_text("{not json", encoding="utf-8")
        lookup = FileRecordStore(tmp_path).lookup(ctx, "k")
        assert isinstance(lookup, TransportError)
        assert lookup.unreachable is False


class TestFilePermissionStore:
    def test_register_is_stable(self, tmp_path: Path) -> None:
        store = FilePermissionStore(tmp_path)
        first = store.register("o", "file_a", "photos")
        assert store.register("o", "file_a", "photos") == first

    def test_grant_and_clear_persisted(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FilePermissionStore(tmp_path)
        identifier = store.register("o", "file_a", "photos")
        assert store.resolve(ctx, "o", "file_a", "photos") == identifier
        store.grant_public_read(ctx, identifier)
        store.grant_public_read(ctx, identifier)
        assert FilePermissionStore(tmp_path).is_public(identifier)
        store.clear_principals(ctx, identifier)
        assert not FilePermissionStore(tmp_path).is_public(identifier)

    def test_corrupt_file_raises(self, tmp_path: Path, ctx: RequestContext) -> None:
        (tmp_path / "permissions.json").write_text("[", encoding="utf-8")
        with pytest.raises(PermissionStoreError):
            FilePermissionStore(tmp_path).resolve(ctx, "o", "file_a", "photos")


class TestFileStoreReadLocking:
    def test_record_reads_take_lock(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FileRecordStore(tmp_path)
        ref = store.create(ctx, b"x", {"key": "k"})
        store._lock = MagicMock()
        store.lookup(ctx, "k")
        store.load(ctx, ref)
        assert store._lock.__enter__.call_count == 2
        assert store._lock.__exit__.call_count == 2

    def test_permission_reads_take_lock(self, tmp_path: Path, ctx: RequestContext) -> None:
        store = FilePermissionStore(tmp_path)
        identifier = store.register("o", "file_a", "photos")
        store._lock = MagicMock()
        store.resolve(ctx, "o", "file_a", "photos")
        store.is_public(identifier)
        assert store._lock.__enter__.call_count == 2
        assert store._lock.__exit__.call_count == 2
