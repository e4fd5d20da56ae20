"""Error taxonomy for bucket policy reconciliation.

Errors fall into three groups:

- **User-facing** — :class:`MalformedPolicyError` and its subclasses.  The
  submission is rejected and no store is touched.
- **Hard failures** — :class:`ExternalStoreUnreachableError` and
  :class:`LocalPersistenceError`.  The request is aborted.
- **Soft failures** — :class:`PermissionResolutionError` and
  :class:`ReplicationNotificationError`.  Logged, never surfaced as a
  request failure.

Collaborator implementations raise the store-level errors
(:class:`RecordStoreError`, :class:`MetadataStoreError`,
:class:`PermissionStoreError`); the reconciliation layer translates them.
"""
from __future__ import annotations


class BucketPolicyError(Exception):
    """Base class for all bucket policy errors."""


# ---------------------------------------------------------------------------
# User-facing
# ---------------------------------------------------------------------------


class MalformedPolicyError(BucketPolicyError):
    """Raised when a submitted policy fails schema or version validation.

    Attributes
    ----------
    bucket:
        The bucket the policy was submitted for.
    detail:
        Human-readable description of the violation.
    """

    code: str = "MalformedPolicy"

    def __init__(self, bucket: str, detail: str) -> None:
        self.bucket = bucket
        self.detail = detail
        super().__init__(f"Malformed policy for bucket '{bucket}': {detail}")


class MissingPolicyError(MalformedPolicyError):
    """Raised when the submitted policy body is empty."""

    code = "MissingContentLength"

    def __init__(self, bucket: str) -> None:
        super().__init__(bucket, "policy body is empty")


class PolicyTooLargeError(MalformedPolicyError):
    """Raised when the submitted policy body exceeds the size limit."""

    code = "PolicyTooLarge"

    def __init__(self, bucket: str, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(bucket, f"policy is {size} bytes, limit is {limit} bytes")


class InvalidPolicyVersionError(MalformedPolicyError):
    """Raised when the policy carries an empty ``Version``."""

    code = "PolicyInvalidVersion"

    def __init__(self, bucket: str) -> None:
        super().__init__(bucket, "policy version must not be empty")


class PolicyNotFoundError(BucketPolicyError):
    """Raised when a bucket has no stored policy."""

    code: str = "NoSuchBucketPolicy"

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        super().__init__(f"No policy stored for bucket '{bucket}'")


# ---------------------------------------------------------------------------
# Hard failures
# ---------------------------------------------------------------------------


class ExternalStoreUnreachableError(BucketPolicyError):
    """Raised when the record store cannot be reached at all."""

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Record store unreachable during {operation}: {detail}")


class LocalPersistenceError(BucketPolicyError):
    """Raised when the authoritative local metadata store rejects a write."""

    def __init__(self, bucket: str, detail: str) -> None:
        self.bucket = bucket
        self.detail = detail
        super().__init__(f"Failed to persist policy for bucket '{bucket}': {detail}")


class OperationCancelledError(BucketPolicyError):
    """Raised when the request context is cancelled or its deadline passes."""

    def __init__(self, reason: str = "operation cancelled") -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Soft failures
# ---------------------------------------------------------------------------


class PermissionResolutionError(BucketPolicyError):
    """Raised when an object's backing permission record cannot be resolved."""

    def __init__(self, object_name: str, suffix: str, detail: str) -> None:
        self.object_name = object_name
        self.suffix = suffix
        self.detail = detail
        super().__init__(
            f"Could not resolve permission record '{suffix}' for object "
            f"'{object_name}': {detail}"
        )


class ReplicationNotificationError(BucketPolicyError):
    """Raised by replication hooks when an event cannot be delivered."""


# ---------------------------------------------------------------------------
# Collaborator-level errors
# ---------------------------------------------------------------------------


class RecordStoreError(BucketPolicyError):
    """Raised by :class:`~bucket_policy_sync.stores.base.RecordStore` implementations.

    Attributes
    ----------
    unreachable:
        ``True`` when the failure is a categorical transport failure (for
        example, no route to host) rather than a per-request error.
    """

    def __init__(self, message: str, unreachable: bool = False) -> None:
        self.unreachable = unreachable
        super().__init__(message)


class MetadataStoreError(BucketPolicyError):
    """Raised by local metadata store implementations."""


class PermissionStoreError(BucketPolicyError):
    """Raised by permission store implementations."""
