"""Policy model, parsing, object-name extraction and diffing."""
from __future__ import annotations

from bucket_policy_sync.policies.differ import PolicyDelta, PolicyDiffer, difference
from bucket_policy_sync.policies.document import (
    GET_OBJECT_ACTION,
    WILDCARD_PRINCIPAL,
    Effect,
    PolicyDocument,
    Statement,
)
from bucket_policy_sync.policies.extractor import ObjectNameExtractor
from bucket_policy_sync.policies.parser import MAX_POLICY_SIZE, PolicyParser, serialize

__all__ = [
    "GET_OBJECT_ACTION",
    "MAX_POLICY_SIZE",
    "WILDCARD_PRINCIPAL",
    "Effect",
    "ObjectNameExtractor",
    "PolicyDelta",
    "PolicyDiffer",
    "PolicyDocument",
    "PolicyParser",
    "Statement",
    "difference",
    "serialize",
]
