"""Tests for replication/hook.py."""
from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from bucket_policy_sync.errors import ReplicationNotificationError
from bucket_policy_sync.replication.hook import (
    LoggingReplicationHook,
    RecordingReplicationHook,
    ReplicationEvent,
    ReplicationHook,
    WebhookReplicationHook,
)

UPDATED_AT = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def event() -> ReplicationEvent:
    return ReplicationEvent(bucket="photos", policy=b'{"Version":"2012-10-17"}', updated_at=UPDATED_AT)


class TestReplicationEvent:
    def test_to_dict(self, event: ReplicationEvent) -> None:
        body = event.to_dict()
        assert body["type"] == "policy"
        assert body["bucket"] == "photos"
        assert base64.b64decode(body["policy"]) == b'{"Version":"2012-10-17"}'
        assert body["updatedAt"] == "2024-05-01T12:00:00+00:00"

    def test_deletion_has_no_policy(self) -> None:
        body = ReplicationEvent(bucket="photos", policy=None, updated_at=UPDATED_AT).to_dict()
        assert body["policy"] is None


class TestHooks:
    def test_hooks_satisfy_protocol(self) -> None:
        assert isinstance(LoggingReplicationHook(), ReplicationHook)
        assert isinstance(RecordingReplicationHook(), ReplicationHook)
        assert isinstance(WebhookReplicationHook("http://localhost"), ReplicationHook)

    def test_logging_hook(self, event: ReplicationEvent, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO):
            LoggingReplicationHook().notify(event)
        assert "photos" in caplog.text

    def test_recording_hook(self, event: ReplicationEvent) -> None:
        hook = RecordingReplicationHook()
        hook.notify(event)
        assert hook.events == [event]


class TestWebhookReplicationHook:
    def test_posts_json(self, event: ReplicationEvent) -> None:
        hook = WebhookReplicationHook("https://replica.example.com/hook", timeout_seconds=2.0)
        with patch("urllib.request.urlopen") as mock_urlopen:
            mock_urlopen.return_value.__enter__ = lambda s: s
            mock_urlopen.return_value.__exit__ = MagicMock(return_value=False)
            hook.notify(event)
        request = mock_urlopen.call_args.args[0]
        assert request.full_url == "https://replica.example.com/hook"
        assert request.get_method() == "POST"
        assert json.loads(request.data)["bucket"] == "photos"
        assert mock_urlopen.call_args.kwargs["timeout"] == 2.0

    def test_delivery_failure_raises(self, event: ReplicationEvent) -> None:
        hook = WebhookReplicationHook("https://replica.example.com/hook")
        with patch("urllib.request.urlopen", side_effect=OSError("connection refused")):
            with pytest.raises(ReplicationNotificationError, match="connection refused"):
                hook.notify(event)
