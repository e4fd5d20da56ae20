"""Derives publicly readable object names from a policy document.

Only statements that ``Allow`` the anonymous principal ``"*"`` the
``s3:GetObject`` action contribute names.  For every resource pattern of
such a statement:

- ``"<bucket>/<name>"`` yields ``<name>`` (everything after the first
  ``/``, so ``"<bucket>/*"`` yields the literal ``"*"``).
- ``"<bucket>"`` is a bucket-level grant and yields nothing.
- anything else is used verbatim, including prefix wildcards like
  ``"obj*"``.

Names are returned in statement/resource traversal order; duplicates are
kept.

Example
-------
>>> extractor = ObjectNameExtractor()
>>> extractor.extract(doc, "photos")
['cat.png']
"""
from __future__ import annotations

import logging

from bucket_policy_sync.policies.document import PolicyDocument

logger = logging.getLogger(__name__)

RESOURCE_SEPARATOR: str = "/"


class ObjectNameExtractor:
    """Computes the object-level public-read grants of a policy."""

    def extract(self, document: PolicyDocument | None, bucket: str) -> list[str]:
        """Return object names made publicly readable by ``document``.

        Parameters
        ----------
        document:
            Parsed policy, or ``None`` when the bucket has no policy.
        bucket:
            Bucket the policy governs; a resource equal to it is skipped.
        """
        if document is None:
            return []

        object_names: list[str] = []
        for statement in document.statements:
            if not statement.grants_public_read():
                continue
            for pattern in statement.sorted_resources():
                if RESOURCE_SEPARATOR in pattern:
                    object_names.append(pattern.split(RESOURCE_SEPARATOR, 1)[1])
                elif pattern == bucket:
                    continue
                else:
                    object_names.append(pattern)

        logger.debug(
            "Extracted %d public object name(s) for bucket '%s'", len(object_names), bucket
        )
        return object_names
