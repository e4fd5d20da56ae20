"""Policy persistence across the record store and the local metadata store."""
from __future__ import annotations

from bucket_policy_sync.persistence.saga import (
    DEFAULT_POLICY_CONFIG_KEY,
    DEFAULT_RECORD_TAG,
    PersistenceResult,
    PolicyPersistence,
    RecordStatus,
    SagaStep,
    StepPolicy,
    run_saga,
)

__all__ = [
    "DEFAULT_POLICY_CONFIG_KEY",
    "DEFAULT_RECORD_TAG",
    "PersistenceResult",
    "PolicyPersistence",
    "RecordStatus",
    "SagaStep",
    "StepPolicy",
    "run_saga",
]
