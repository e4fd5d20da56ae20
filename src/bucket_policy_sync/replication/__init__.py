"""Replication notification hooks."""
from __future__ import annotations

from bucket_policy_sync.replication.hook import (
    EVENT_TYPE_POLICY,
    LoggingReplicationHook,
    RecordingReplicationHook,
    ReplicationEvent,
    ReplicationHook,
    WebhookReplicationHook,
)

__all__ = [
    "EVENT_TYPE_POLICY",
    "LoggingReplicationHook",
    "RecordingReplicationHook",
    "ReplicationEvent",
    "ReplicationHook",
    "WebhookReplicationHook",
]
