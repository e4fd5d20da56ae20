"""bucket-policy-sync — bucket access policy reconciliation engine.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import bucket_policy_sync as bps
>>> reconciler = bps.Reconciler(
...     record_store=bps.InMemoryRecordStore(),
...     metadata_store=bps.InMemoryMetadataStore(),
...     permission_store=bps.InMemoryPermissionStore(),
...     owner_id="did:owner",
... )
>>> result = reconciler.put_policy(bps.RequestContext.background(), "photos", body)
>>> result.ok
True
"""
from __future__ import annotations

__version__: str = "0.1.0"

from bucket_policy_sync.config import ConfigLoader, ReplicationConfig, SyncConfig
from bucket_policy_sync.context import RequestContext

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
from bucket_policy_sync.errors import (
    BucketPolicyError,
    ExternalStoreUnreachableError,
    InvalidPolicyVersionError,
    LocalPersistenceError,
    MalformedPolicyError,
    MetadataStoreError,
    MissingPolicyError,
    OperationCancelledError,
    PermissionResolutionError,
    PermissionStoreError,
    PolicyNotFoundError,
    PolicyTooLargeError,
    RecordStoreError,
    ReplicationNotificationError,
)

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------
from bucket_policy_sync.policies.differ import PolicyDelta, PolicyDiffer
from bucket_policy_sync.policies.document import Effect, PolicyDocument, Statement
from bucket_policy_sync.policies.extractor import ObjectNameExtractor
from bucket_policy_sync.policies.parser import PolicyParser, serialize

# ---------------------------------------------------------------------------
# Propagation & persistence
# ---------------------------------------------------------------------------
from bucket_policy_sync.permissions.propagator import PermissionPropagator, PropagationReport
from bucket_policy_sync.persistence.saga import PersistenceResult, PolicyPersistence, RecordStatus
from bucket_policy_sync.replication.hook import (
    LoggingReplicationHook,
    RecordingReplicationHook,
    ReplicationEvent,
    WebhookReplicationHook,
)

# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------
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

# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------
from bucket_policy_sync.reconciler import (
    ReconcileOutcome,
    ReconcileResult,
    ReconcileState,
    Reconciler,
)

__all__ = [
    "__version__",
    "ConfigLoader",
    "ReplicationConfig",
    "RequestContext",
    "SyncConfig",
    # Errors
    "BucketPolicyError",
    "ExternalStoreUnreachableError",
    "InvalidPolicyVersionError",
    "LocalPersistenceError",
    "MalformedPolicyError",
    "MetadataStoreError",
    "MissingPolicyError",
    "OperationCancelledError",
    "PermissionResolutionError",
    "PermissionStoreError",
    "PolicyNotFoundError",
    "PolicyTooLargeError",
    "RecordStoreError",
    "ReplicationNotificationError",
    # Policies
    "Effect",
    "ObjectNameExtractor",
    "PolicyDelta",
    "PolicyDiffer",
    "PolicyDocument",
    "PolicyParser",
    "Statement",
    "serialize",
    # Propagation & persistence
    "LoggingReplicationHook",
    "PermissionPropagator",
    "PersistenceResult",
    "PolicyPersistence",
    "PropagationReport",
    "RecordStatus",
    "RecordingReplicationHook",
    "ReplicationEvent",
    "WebhookReplicationHook",
    # Stores
    "FileMetadataStore",
    "FilePermissionStore",
    "FileRecordStore",
    "InMemoryMetadataStore",
    "InMemoryPermissionStore",
    "InMemoryRecordStore",
    # Reconciler
    "ReconcileOutcome",
    "ReconcileResult",
    "ReconcileState",
    "Reconciler",
]
