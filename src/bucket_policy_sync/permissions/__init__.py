"""Object-level permission propagation.

Example
-------
::

    from bucket_policy_sync.permissions import PermissionPropagator
    from bucket_policy_sync.stores import InMemoryPermissionStore

    propagator = PermissionPropagator(InMemoryPermissionStore(), owner_id="owner")
    report = propagator.revoke(ctx, ["cat.png", "*"], "photos")
    assert report.skipped == ["cat.png", "*"]
    assert report.revoked == []
"""
from __future__ import annotations

from bucket_policy_sync.permissions.propagator import (
    WILDCARD_OBJECT,
    PermissionChange,
    PermissionPropagator,
    PropagationFailure,
    PropagationReport,
    derived_suffixes,
)

__all__ = [
    "WILDCARD_OBJECT",
    "PermissionChange",
    "PermissionPropagator",
    "PropagationFailure",
    "PropagationReport",
    "derived_suffixes",
]
