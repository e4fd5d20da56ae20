"""In-memory representation of a bucket access policy.

Instances are built fresh for every request (the submitted policy and the
previously stored one) and discarded afterwards.

Example
-------
>>> statement = Statement(
...     effect=Effect.ALLOW,
...     principals=frozenset({"*"}),
...     actions=frozenset({GET_OBJECT_ACTION}),
...     resources=frozenset({"photos/cat.png"}),
... )
>>> doc = PolicyDocument(version="2012-10-17", statements=(statement,))
>>> doc.statements[0].grants_public_read()
True
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

WILDCARD_PRINCIPAL: str = "*"
GET_OBJECT_ACTION: str = "s3:GetObject"
RESOURCE_ARN_PREFIX: str = "arn:aws:s3:::"


class Effect(str, Enum):
    """Effect of a policy statement."""

    ALLOW = "Allow"
    DENY = "Deny"


@dataclass(frozen=True)
class Statement:
    """A single allow/deny rule binding principals, actions and resources.

    Attributes
    ----------
    effect:
        Whether the statement allows or denies.
    principals:
        Principal identifiers; ``"*"`` is the anonymous wildcard.
    actions:
        Action names such as ``"s3:GetObject"``.
    resources:
        Resource patterns with the ARN prefix removed: either the bucket
        name or ``"<bucket>/<object-pattern>"``.
    sid:
        Optional statement identifier.
    """

    effect: Effect
    principals: frozenset[str]
    actions: frozenset[str]
    resources: frozenset[str]
    sid: str = ""

    def grants_public_read(self) -> bool:
        """Return ``True`` for Allow statements giving anyone ``s3:GetObject``."""
        return (
            self.effect == Effect.ALLOW
            and WILDCARD_PRINCIPAL in self.principals
            and GET_OBJECT_ACTION in self.actions
        )

    def sorted_resources(self) -> list[str]:
        """Resource patterns in canonical (sorted) traversal order."""
        return sorted(self.resources)


@dataclass(frozen=True)
class PolicyDocument:
    """Parsed bucket access policy.

    ``id`` is the optional policy identifier; empty when not supplied.
    """

    version: str
    statements: tuple[Statement, ...] = field(default_factory=tuple)
    id: str = ""

    @classmethod
    def empty(cls) -> PolicyDocument:
        """A document with no statements, used when no previous policy exists."""
        return cls(version="", statements=())

    def to_dict(self) -> dict[str, object]:
        """Return the canonical JSON-ready representation.

        Sets are emitted in sorted order and resources regain their ARN
        prefix, so two equivalent documents serialize identically.
        """
        statements: list[dict[str, object]] = []
        for statement in self.statements:
            entry: dict[str, object] = {}
            if statement.sid:
                entry["Sid"] = statement.sid
            entry["Effect"] = statement.effect.value
            entry["Principal"] = {"AWS": sorted(statement.principals)}
            entry["Action"] = sorted(statement.actions)
            entry["Resource"] = [
                f"{RESOURCE_ARN_PREFIX}{pattern}" for pattern in statement.sorted_resources()
            ]
            statements.append(entry)
        body: dict[str, object] = {"Version": self.version}
        if self.id:
            body["Id"] = self.id
        body["Statement"] = statements
        return body
