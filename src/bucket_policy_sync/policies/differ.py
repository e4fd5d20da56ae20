"""Object-name delta between two policies.

The difference is membership-only: an element of ``next`` is *added* when
it does not appear anywhere in ``previous``, regardless of how many times
it occurs on either side.  Output order and duplicates follow the source
sequence.

Example
-------
>>> PolicyDiffer().diff(["a", "b"], ["b", "c"])
PolicyDelta(added=['c'], removed=['a'])
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field


@dataclass
class PolicyDelta:
    """Objects gaining (``added``) and losing (``removed``) public read access."""

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def difference(source: Sequence[str], other: Sequence[str]) -> list[str]:
    """Return the elements of ``source`` that are not members of ``other``."""
    members = set(other)
    return [name for name in source if name not in members]


class PolicyDiffer:
    """Computes :class:`PolicyDelta` objects between extracted name sets."""

    def diff(self, previous: Sequence[str], next_names: Sequence[str]) -> PolicyDelta:
        """Return names added to and removed from public read access."""
        return PolicyDelta(
            added=difference(next_names, previous),
            removed=difference(previous, next_names),
        )
