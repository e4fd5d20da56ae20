"""JSON bucket policy parser.

Parses a submitted policy body into a :class:`PolicyDocument`.  The raw
grammar is validated with Pydantic before being converted into the frozen
dataclass model used by the rest of the engine.

The accepted structure is::

    {
      "Version": "2012-10-17",
      "Statement": [
        {
          "Sid": "public-photos",
          "Effect": "Allow",
          "Principal": {"AWS": ["*"]},
          "Action": ["s3:GetObject"],
          "Resource": ["arn:aws:s3:::photos/cat.png"]
        }
      ]
    }

``Principal``, ``Action`` and ``Resource`` accept either a single string or
a list.  ``"Principal": "*"`` is shorthand for ``{"AWS": ["*"]}``.  Every
resource must belong to the bucket the policy is submitted for.  The
optional policy ``Id`` (also accepted as ``ID``) is kept and serialized
back as ``Id``.

An empty ``Version`` is accepted here; rejecting it is the reconciler's job.

Example
-------
>>> parser = PolicyParser()
>>> doc = parser.parse(b'{"Version": "2012-10-17", "Statement": []}', "photos")
>>> doc.version
'2012-10-17'
"""
from __future__ import annotations

import json
from typing import Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from bucket_policy_sync.errors import (
    MalformedPolicyError,
    MissingPolicyError,
    PolicyTooLargeError,
)
from bucket_policy_sync.policies.document import (
    RESOURCE_ARN_PREFIX,
    WILDCARD_PRINCIPAL,
    Effect,
    PolicyDocument,
    Statement,
)

# Same ceiling S3 applies to bucket policies.
MAX_POLICY_SIZE: int = 20 * 1024

StringOrList = Union[str, list[str]]


def _as_list(value: StringOrList) -> list[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


class _RawPrincipal(BaseModel):
    model_config = ConfigDict(extra="forbid")

    aws: StringOrList = Field(alias="AWS")


class _RawStatement(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sid: str = Field(default="", alias="Sid")
    effect: Literal["Allow", "Deny"] = Field(alias="Effect")
    principal: Union[Literal["*"], _RawPrincipal] = Field(alias="Principal")
    action: StringOrList = Field(alias="Action")
    resource: StringOrList = Field(alias="Resource")

    @field_validator("action", "resource")
    @classmethod
    def validate_not_empty(cls, value: StringOrList) -> StringOrList:
        values = _as_list(value)
        if not values or any(not v for v in values):
            raise ValueError("must contain at least one non-empty value")
        return value


class _RawPolicy(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    version: str = Field(default="", alias="Version")
    id: str = Field(default="", validation_alias=AliasChoices("Id", "ID"))
    statement: list[_RawStatement] = Field(default_factory=list, alias="Statement")


class PolicyParser:
    """Parses raw policy bytes into :class:`PolicyDocument` objects.

    Parameters
    ----------
    max_size:
        Largest accepted policy body in bytes.
    """

    def __init__(self, max_size: int = MAX_POLICY_SIZE) -> None:
        self._max_size = max_size

    def parse(self, data: bytes, bucket: str) -> PolicyDocument:
        """Parse and validate a policy body for ``bucket``.

        Raises
        ------
        MissingPolicyError
            If ``data`` is empty.
        PolicyTooLargeError
            If ``data`` exceeds ``max_size``.
        MalformedPolicyError
            If the body is not valid JSON or violates the policy grammar.
        """
        if not data:
            raise MissingPolicyError(bucket)
        if len(data) > self._max_size:
            raise PolicyTooLargeError(bucket, len(data), self._max_size)
        return self.parse_stored(data, bucket)

    def parse_stored(self, data: bytes, bucket: str) -> PolicyDocument:
        """Parse a previously persisted canonical policy (no size limit)."""
        try:
            raw = _RawPolicy.model_validate_json(data)
        except ValidationError as exc:
            raise MalformedPolicyError(bucket, _describe(exc)) from exc
        statements = tuple(self._convert_statement(bucket, s) for s in raw.statement)
        return PolicyDocument(version=raw.version, statements=statements, id=raw.id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _convert_statement(self, bucket: str, raw: _RawStatement) -> Statement:
        if isinstance(raw.principal, str):
            principals = frozenset({WILDCARD_PRINCIPAL})
        else:
            principals = frozenset(_as_list(raw.principal.aws))

        resources = frozenset(
            self._convert_resource(bucket, r) for r in _as_list(raw.resource)
        )
        return Statement(
            effect=Effect(raw.effect),
            principals=principals,
            actions=frozenset(_as_list(raw.action)),
            resources=resources,
            sid=raw.sid,
        )

    def _convert_resource(self, bucket: str, resource: str) -> str:
        if not resource.startswith(RESOURCE_ARN_PREFIX):
            raise MalformedPolicyError(
                bucket, f"resource '{resource}' must start with '{RESOURCE_ARN_PREFIX}'"
            )
        pattern = resource[len(RESOURCE_ARN_PREFIX):]
        if pattern == "*" or pattern == bucket or pattern.startswith(f"{bucket}/"):
            return pattern
        raise MalformedPolicyError(
            bucket, f"resource '{resource}' does not belong to bucket '{bucket}'"
        )


def serialize(document: PolicyDocument) -> bytes:
    """Return the canonical JSON bytes for ``document``."""
    return json.dumps(document.to_dict(), separators=(",", ":")).encode("utf-8")


def _describe(exc: ValidationError) -> str:
    parts: list[str] = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid')}" if location else error.get("msg", "invalid"))
    return "; ".join(parts) or str(exc)
