"""Store interfaces and reference implementations."""
from __future__ import annotations

from bucket_policy_sync.stores.base import (
    Absent,
    Found,
    MetadataStore,
    PermissionStore,
    RecordLookup,
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

__all__ = [
    # Interfaces
    "Absent",
    "Found",
    "MetadataStore",
    "PermissionStore",
    "RecordLookup",
    "RecordStore",
    "TransportError",
    "UpdateStatus",
    "record_key",
    # Filesystem
    "FileMetadataStore",
    "FilePermissionStore",
    "FileRecordStore",
    # In-memory
    "InMemoryMetadataStore",
    "InMemoryPermissionStore",
    "InMemoryRecordStore",
]
