"""Configuration loader with Pydantic v2 validation.

Loads and validates a ``bucket-policy.yaml`` file into a typed
:class:`SyncConfig` object.  Unknown keys are allowed to support future
schema additions without breakage.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("owner_id: did:key:abc\\nstate_dir: ./state")
>>> config.record_tag
'bucket_policy'
"""
from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bucket_policy_sync.policies.parser import MAX_POLICY_SIZE

DEFAULT_CONFIG_PATH = Path("bucket-policy.yaml")


class ReplicationConfig(BaseModel):
    """Configuration for replication notifications."""

    model_config = {"extra": "allow"}

    webhook_url: str | None = Field(default=None)
    timeout_seconds: float = Field(default=5.0, gt=0)


class SyncConfig(BaseModel):
    """Top-level configuration schema.

    All fields fall back to defaults suitable for local use.
    """

    model_config = {"extra": "allow"}

    owner_id: str = Field(default="local")
    record_tag: str = Field(default="bucket_policy")
    policy_config_key: str = Field(default="policy.json")
    max_policy_size: int = Field(default=MAX_POLICY_SIZE, ge=1)
    record_retention_days: int = Field(default=365, ge=1)
    request_timeout_seconds: float | None = Field(default=None, gt=0)
    state_dir: Path = Field(default=Path("./.bucket-policy"))
    replication: ReplicationConfig = Field(default_factory=ReplicationConfig)

    @field_validator("owner_id", "record_tag", "policy_config_key")
    @classmethod
    def validate_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class ConfigLoader:
    """Loads and validates bucket policy YAML configuration."""

    def load(self, config_path: Path) -> SyncConfig:
        """Load and validate a YAML configuration file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return self._validate(raw)

    def load_string(self, yaml_content: str) -> SyncConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return self._validate(raw)

    def load_or_default(self, config_path: Path | None) -> SyncConfig:
        """Load ``config_path`` if given and present, else return defaults."""
        if config_path is not None and config_path.exists():
            return self.load(config_path)
        return SyncConfig()

    def _validate(self, raw: dict[str, object]) -> SyncConfig:
        try:
            return SyncConfig.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid configuration: {exc}") from exc
