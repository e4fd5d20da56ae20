"""Tests for ObjectNameExtractor and PolicyDiffer."""
from __future__ import annotations

import pytest

from bucket_policy_sync.policies.differ import PolicyDelta, PolicyDiffer, difference
from bucket_policy_sync.policies.document import Effect, PolicyDocument, Statement
from bucket_policy_sync.policies.extractor import ObjectNameExtractor


def _statement(
    *resources: str,
    effect: Effect = Effect.ALLOW,
    principals: tuple[str, ...] = ("*",),
    actions: tuple[str, ...] = ("s3:GetObject",),
) -> Statement:
    return Statement(
        effect=effect,
        principals=frozenset(principals),
        actions=frozenset(actions),
        resources=frozenset(resources),
    )


def _doc(*statements: Statement) -> PolicyDocument:
    return PolicyDocument(version="2012-10-17", statements=statements)


@pytest.fixture()
def extractor() -> ObjectNameExtractor:
    return ObjectNameExtractor()


# ---------------------------------------------------------------------------
# ObjectNameExtractor
# ---------------------------------------------------------------------------


class TestExtractor:
    def test_single_object(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(_doc(_statement("bucket/obj1")), "bucket") == ["obj1"]

    def test_bucket_root_skipped(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(_doc(_statement("bucket")), "bucket") == []

    def test_everything_after_first_separator(self, extractor: ObjectNameExtractor) -> None:
        doc = _doc(_statement("bucket/dir/sub/file.txt"))
        assert extractor.extract(doc, "bucket") == ["dir/sub/file.txt"]

    def test_bucket_wildcard_yields_literal_star(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(_doc(_statement("bucket/*")), "bucket") == ["*"]

    def test_bare_wildcard_pattern_verbatim(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(_doc(_statement("*")), "bucket") == ["*"]

    def test_prefix_wildcard_pattern_verbatim(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(_doc(_statement("obj*")), "bucket") == ["obj*"]

    def test_deny_statement_ignored(self, extractor: ObjectNameExtractor) -> None:
        doc = _doc(_statement("bucket/a", effect=Effect.DENY))
        assert extractor.extract(doc, "bucket") == []

    def test_named_principal_ignored(self, extractor: ObjectNameExtractor) -> None:
        doc = _doc(_statement("bucket/a", principals=("alice",)))
        assert extractor.extract(doc, "bucket") == []

    def test_other_action_ignored(self, extractor: ObjectNameExtractor) -> None:
        doc = _doc(_statement("bucket/a", actions=("s3:PutObject",)))
        assert extractor.extract(doc, "bucket") == []

    def test_duplicates_kept_in_traversal_order(self, extractor: ObjectNameExtractor) -> None:
        doc = _doc(_statement("bucket/b", "bucket/a"), _statement("bucket/a"))
        assert extractor.extract(doc, "bucket") == ["a", "b", "a"]

    def test_none_document_yields_nothing(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(None, "bucket") == []

    def test_empty_document_yields_nothing(self, extractor: ObjectNameExtractor) -> None:
        assert extractor.extract(PolicyDocument.empty(), "bucket") == []


# ---------------------------------------------------------------------------
# PolicyDiffer
# ---------------------------------------------------------------------------


class TestDiffer:
    def test_added_and_removed(self) -> None:
        delta = PolicyDiffer().diff(["a", "b"], ["b", "c"])
        assert delta.added == ["c"]
        assert delta.removed == ["a"]

    def test_identical_sets_empty_delta(self) -> None:
        delta = PolicyDiffer().diff(["a", "b"], ["b", "a"])
        assert delta.is_empty

    def test_membership_only_for_duplicates(self) -> None:
        delta = PolicyDiffer().diff(["a"], ["a", "a"])
        assert delta.added == []
        assert delta.removed == []

    def test_duplicates_of_new_name_kept(self) -> None:
        delta = PolicyDiffer().diff([], ["x", "x"])
        assert delta.added == ["x", "x"]

    def test_everything_added_from_empty(self) -> None:
        delta = PolicyDiffer().diff([], ["a", "b"])
        assert delta == PolicyDelta(added=["a", "b"], removed=[])

    def test_everything_removed_to_empty(self) -> None:
        delta = PolicyDiffer().diff(["a", "*"], [])
        assert delta.removed == ["a", "*"]

    def test_difference_preserves_source_order(self) -> None:
        assert difference(["c", "a", "b"], ["a"]) == ["c", "b"]
