"""Tests for config.py and context.py."""
from __future__ import annotations

import time
from pathlib import Path

import pytest

from bucket_policy_sync.config import ConfigLoader, SyncConfig
from bucket_policy_sync.context import RequestContext
from bucket_policy_sync.errors import OperationCancelledError
from bucket_policy_sync.policies.parser import MAX_POLICY_SIZE


@pytest.fixture()
def loader() -> ConfigLoader:
    return ConfigLoader()


# ---------------------------------------------------------------------------
# ConfigLoader
# ---------------------------------------------------------------------------


class TestConfigLoader:
    def test_defaults(self, loader: ConfigLoader) -> None:
        config = loader.load_string("")
        assert config.owner_id == "local"
        assert config.record_tag == "bucket_policy"
        assert config.policy_config_key == "policy.json"
        assert config.max_policy_size == MAX_POLICY_SIZE
        assert config.record_retention_days == 365
        assert config.replication.webhook_url is None

    def test_values_from_yaml(self, loader: ConfigLoader) -> None:
        config = loader.load_string(
            "owner_id: did:key:abc\n"
            "state_dir: /var/lib/bucket-policy\n"
            "request_timeout_seconds: 2.5\n"
            "replication:\n"
            "  webhook_url: https://replica.example.com/hook\n"
            "  timeout_seconds: 1\n"
        )
        assert config.owner_id == "did:key:abc"
        assert config.state_dir == Path("/var/lib/bucket-policy")
        assert config.request_timeout_seconds == 2.5
        assert config.replication.webhook_url == "https://replica.example.com/hook"
        assert config.replication.timeout_seconds == 1.0

    def test_unknown_keys_allowed(self, loader: ConfigLoader) -> None:
        config = loader.load_string("future_option: true\n")
        assert isinstance(config, SyncConfig)

    def test_blank_owner_rejected(self, loader: ConfigLoader) -> None:
        with pytest.raises(ValueError, match="Invalid configuration"):
            loader.load_string("owner_id: '  '\n")

    def test_non_positive_size_rejected(self, loader: ConfigLoader) -> None:
        with pytest.raises(ValueError):
            loader.load_string("max_policy_size: 0\n")

    def test_load_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "bucket-policy.yaml"
        path.write_text("record_tag: policies\n", encoding="utf-8")
        assert loader.load(path).record_tag == "policies"

    def test_load_missing_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load(tmp_path / "missing.yaml")

    def test_load_or_default_missing_file(self, loader: ConfigLoader, tmp_path: Path) -> None:
        assert loader.load_or_default(tmp_path / "missing.yaml") == SyncConfig()

    def test_load_or_default_none(self, loader: ConfigLoader) -> None:
        assert loader.load_or_default(None).owner_id == "local"


# ---------------------------------------------------------------------------
# RequestContext
# ---------------------------------------------------------------------------


class TestRequestContext:
    def test_background_never_expires(self) -> None:
        ctx = RequestContext.background()
        ctx.check()
        assert ctx.remaining() is None
        assert not ctx.cancelled

    def test_cancel_with_reason(self) -> None:
        ctx = RequestContext.background()
        ctx.cancel("shutting down")
        assert ctx.cancelled
        with pytest.raises(OperationCancelledError, match="shutting down"):
            ctx.check()

    def test_deadline_exceeded(self) -> None:
        ctx = RequestContext(deadline=time.monotonic() - 1)
        assert ctx.expired
        assert ctx.cancelled
        assert ctx.remaining() == 0.0
        with pytest.raises(OperationCancelledError, match="deadline exceeded"):
            ctx.check()

    def test_with_timeout_has_remaining_time(self) -> None:
        ctx = RequestContext.with_timeout(60.0)
        remaining = ctx.remaining()
        assert remaining is not None
        assert 0 < remaining <= 60.0
        ctx.check()

    def test_request_id(self) -> None:
        assert RequestContext(request_id="req-1").request_id == "req-1"
        assert RequestContext().request_id != RequestContext().request_id
