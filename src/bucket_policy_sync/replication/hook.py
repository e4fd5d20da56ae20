"""Replication hooks fired after a bucket policy changes.

A :class:`ReplicationEvent` carries the raw submitted policy bytes (or
``None`` for deletions) and the timestamp of the local write.  Hooks are
fire-and-forget: the reconciler logs delivery failures and never fails a
request because of them.

Example
-------
>>> hook = WebhookReplicationHook("https://replica.example.com/hooks/bucket-meta")
>>> hook.notify(ReplicationEvent(bucket="photos", policy=b"{}", updated_at=now))
"""
from __future__ import annotations

import base64
import json
import logging
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from bucket_policy_sync.errors import ReplicationNotificationError

logger = logging.getLogger(__name__)

EVENT_TYPE_POLICY: str = "policy"


@dataclass(frozen=True)
class ReplicationEvent:
    """Bucket metadata change to replicate to peer sites.

    Attributes
    ----------
    bucket:
        Bucket whose policy changed.
    policy:
        Raw submitted policy bytes, or ``None`` when the policy was deleted.
    updated_at:
        Timestamp returned by the local metadata store.
    type:
        Metadata kind; always ``"policy"`` for events from this package.
    """

    bucket: str
    policy: bytes | None
    updated_at: datetime
    type: str = EVENT_TYPE_POLICY

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "bucket": self.bucket,
            "policy": base64.b64encode(self.policy).decode("ascii") if self.policy is not None else None,
            "updatedAt": self.updated_at.isoformat(),
        }


@runtime_checkable
class ReplicationHook(Protocol):
    """Receiver of replication events."""

    def notify(self, event: ReplicationEvent) -> None:
        """Deliver ``event``; raises ``ReplicationNotificationError`` on failure."""
        ...


class LoggingReplicationHook:
    """Hook used when no replication target is configured; only logs."""

    def notify(self, event: ReplicationEvent) -> None:
        logger.info(
            "Replication event for bucket '%s' (%s, policy %s) at %s",
            event.bucket,
            event.type,
            "deleted" if event.policy is None else f"{len(event.policy)} bytes",
            event.updated_at.isoformat(),
        )


@dataclass
class RecordingReplicationHook:
    """Hook keeping every event in memory."""

    events: list[ReplicationEvent] = field(default_factory=list)

    def notify(self, event: ReplicationEvent) -> None:
        self.events.append(event)


class WebhookReplicationHook:
    """POSTs replication events as JSON to a webhook URL.

    Parameters
    ----------
    webhook_url:
        Endpoint receiving the event.
    timeout_seconds:
        HTTP request timeout in seconds (default: 5).
    """

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0) -> None:
        self._webhook_url = webhook_url
        self._timeout = timeout_seconds

    def notify(self, event: ReplicationEvent) -> None:
        payload = json.dumps(event.to_dict()).encode("utf-8")
        try:
            req = urllib.request.Request(
                self._webhook_url,
                data=payload,
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(req, timeout=self._timeout):  # noqa: S310
                pass
        except Exception as exc:
            raise ReplicationNotificationError(
                f"Failed to deliver replication event for bucket '{event.bucket}': {exc}"
            ) from exc
