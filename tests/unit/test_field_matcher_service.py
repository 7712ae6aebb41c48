"""
Unit tests for FieldMatcherService.

Run: pytest tests/unit/test_field_matcher_service.py -v
"""

import pytest

from integrations.lark import RemoteField
from models.fields import FieldMappingDecision, FieldType
from services.field_matcher_service import (
    FieldMatcherService,
    collect_field_names,
    get_field_matcher_service,
    to_existing_fields,
)
from tests.factories import ExistingFieldFactory


@pytest.fixture
def matcher() -> FieldMatcherService:
    return FieldMatcherService()


class TestCollectFieldNames:
    """Tests for collect_field_names()"""

    def test_first_seen_order_without_duplicates(self):
        records = [{"b": 1, "a": 2}, {"a": 3, "c": 4}, {"b": 5}]

        assert collect_field_names(records) == ["b", "a", "c"]

    def test_no_records(self):
        assert collect_field_names([]) == []


class TestToExistingFields:
    """Tests for to_existing_fields()"""

    def test_attaches_normalized_names(self):
        remote = [RemoteField(field_id="fld1", field_name="価格（税込）", type=2)]

        existing = to_existing_fields(remote)

        assert existing[0].field_name == "価格（税込）"
        assert existing[0].normalized_name == "価格(税込)"
        assert existing[0].type == FieldType.NUMBER


class TestValidateFields:
    """Tests for FieldMatcherService.validate_fields()"""

    def test_exact_similar_new(self, matcher):
        existing = ExistingFieldFactory.create_batch(["名前", "ID", "価格(税込)"])

        result = matcher.validate_fields(["名前", "ＩＤ", "価格（税込）", "age"], existing)

        assert [(m.json_field, m.existing_field) for m in result.exact_matches] == [("名前", "名前")]
        assert [(m.json_field, m.existing_field) for m in result.similar_matches] == [
            ("ＩＤ", "ID"),
            ("価格（税込）", "価格(税込)"),
        ]
        assert result.similar_matches[0].normalized_name == "ID"
        assert result.new_fields == ["age"]
        assert result.needs_approval is True

    def test_all_exact_needs_no_approval(self, matcher):
        existing = ExistingFieldFactory.create_batch(["a", "b"])

        result = matcher.validate_fields(["a", "b"], existing)

        assert result.needs_approval is False
        assert result.new_fields == []

    def test_partition_covers_each_name_once(self, matcher):
        existing = ExistingFieldFactory.create_batch(["名前", "ID", "メモ"])
        incoming = ["名前", "名前\u200b", "ＩＤ", "ID", "x", "x", " メモ ", "y"]

        result = matcher.validate_fields(incoming, existing)

        covered = result.all_fields()
        assert sorted(covered) == sorted(set(incoming))
        assert len(covered) == len(set(covered))

    def test_empty_schema_makes_everything_new(self, matcher):
        result = matcher.validate_fields(["a", "b"], [])

        assert result.new_fields == ["a", "b"]
        assert result.exact_matches == []
        assert result.similar_matches == []

    def test_ambiguous_existing_fields_first_listed_wins(self, matcher):
        existing = ExistingFieldFactory.create_batch(["Name ", "Name", "Ｎａｍｅ"])

        result = matcher.validate_fields(["Name", "Name\u200b"], existing)

        assert result.ambiguous == ["Name"]
        # Literal match with any candidate is exact
        assert [m.json_field for m in result.exact_matches] == ["Name"]
        # Otherwise paired with the first field listed
        assert result.similar_matches[0].existing_field == "Name "


class TestResolveFieldTargets:
    """Tests for FieldMatcherService.resolve_field_targets()"""

    def _validation(self, matcher):
        existing = ExistingFieldFactory.create_batch(["名前", "ID"])
        return matcher.validate_fields(["名前", "ＩＤ", "age", "extra"], existing)

    def test_approve_all(self, matcher):
        validation = self._validation(matcher)
        decision = FieldMappingDecision.approve_all(validation)

        mapping, dropped = matcher.resolve_field_targets(
            validation, decision, {"age": "age", "extra": "extra"}
        )

        assert mapping == {"名前": "名前", "ＩＤ": "ID", "age": "age", "extra": "extra"}
        assert dropped == []

    def test_unapproved_new_fields_are_dropped(self, matcher):
        validation = self._validation(matcher)
        decision = FieldMappingDecision(approved_new_fields={"age"})

        mapping, dropped = matcher.resolve_field_targets(validation, decision, {"age": "age"})

        assert "extra" not in mapping
        assert dropped == ["extra"]

    def test_similar_defaults_to_existing_field(self, matcher):
        validation = self._validation(matcher)

        mapping, _ = matcher.resolve_field_targets(validation, FieldMappingDecision(), {})

        assert mapping["ＩＤ"] == "ID"

    def test_similar_resolved_to_new_field(self, matcher):
        validation = self._validation(matcher)
        decision = FieldMappingDecision(similar_mappings={"ＩＤ": None})

        mapping, _ = matcher.resolve_field_targets(validation, decision, {"ＩＤ": "ＩＤ"})

        assert mapping["ＩＤ"] == "ＩＤ"

    def test_approved_but_not_created_is_dropped(self, matcher):
        validation = self._validation(matcher)
        decision = FieldMappingDecision(approved_new_fields={"age", "extra"})

        mapping, dropped = matcher.resolve_field_targets(validation, decision, {"age": "age"})

        assert mapping["age"] == "age"
        assert dropped == ["extra"]


class TestGetFieldMatcherService:
    """Tests for singleton getter."""

    def test_returns_same_instance(self):
        assert get_field_matcher_service() is get_field_matcher_service()
