"""Reconcile two successive bucket policies with in-memory stores.

Run with::

    python examples/01_reconcile.py
"""
from __future__ import annotations

import json
import logging

from bucket_policy_sync import (
    InMemoryMetadataStore,
    InMemoryPermissionStore,
    InMemoryRecordStore,
    RecordingReplicationHook,
    Reconciler,
    RequestContext,
)
from bucket_policy_sync.permissions import derived_suffixes

OWNER = "did:example:owner"
BUCKET = "photos"


def policy(*objects: str) -> bytes:
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": "*",
                    "Action": "s3:GetObject",
                    "Resource": [f"arn:aws:s3:::{BUCKET}/{name}" for name in objects],
                }
            ],
        }
    ).encode("utf-8")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    permissions = InMemoryPermissionStore()
    for name in ("cat.png", "dog.png"):
        for suffix in derived_suffixes(name):
            permissions.register(OWNER, suffix, BUCKET)

    hook = RecordingReplicationHook()
    reconciler = Reconciler(
        record_store=InMemoryRecordStore(),
        metadata_store=InMemoryMetadataStore(),
        permission_store=permissions,
        owner_id=OWNER,
        replication_hook=hook,
    )
    ctx = RequestContext.with_timeout(5.0)

    first = reconciler.put_policy(ctx, BUCKET, policy("cat.png"))
    print(f"first:  {first.outcome.value} +{first.delta.added} -{first.delta.removed}")

    second = reconciler.put_policy(ctx, BUCKET, policy("dog.png"))
    print(f"second: {second.outcome.value} +{second.delta.added} -{second.delta.removed}")

    print(f"public identifiers: {len(permissions.public)}")
    print(f"replication events: {len(hook.events)}")
    print(reconciler.get_policy(ctx, BUCKET).decode("utf-8"))


if __name__ == "__main__":
    main()
