"""
Unit tests for the JSON recovery parser.

Run: pytest tests/unit/test_json_parser.py -v
"""

import json

import pytest

from models.ingest import InputErrorCode
from parsers.json_parser import (
    ParseStage,
    escape_control_characters,
    parse_json_bytes,
    parse_json_text,
    recover_json,
    repair_json_quotes,
)


class TestRepairJsonQuotes:
    """Tests for repair_json_quotes()"""

    def test_embedded_quotes_in_object_value(self):
        """Repaired text parses to the same value as properly escaped input."""
        broken = '{"a": "he said "hi" to me"}'
        expected = json.loads('{"a": "he said \\"hi\\" to me"}')

        assert json.loads(repair_json_quotes(broken)) == expected

    def test_embedded_quotes_in_array_keep_element_count(self):
        """Should produce two elements, not three or more."""
        broken = '["a "b" c", "d"]'

        result = json.loads(repair_json_quotes(broken))

        assert result == ['a "b" c', "d"]

    def test_comma_inside_value_followed_by_text(self):
        broken = '{"note": "x", y "z"", "n": 1}'

        result = json.loads(repair_json_quotes(broken))

        assert result == {"note": 'x", y "z"', "n": 1}

    def test_valid_json_unchanged(self):
        text = '[{"a": "b", "c": [1, "d", {"e": "f"}]}, {"g": null}]'

        assert repair_json_quotes(text) == text

    def test_existing_escapes_untouched(self):
        text = '{"a": "already \\"escaped\\""}'

        assert repair_json_quotes(text) == text


class TestEscapeControlCharacters:
    """Tests for escape_control_characters()"""

    def test_raw_newline_and_tab_inside_string(self):
        text = '{"a": "line1\nline2\tend"}'

        assert json.loads(escape_control_characters(text)) == {"a": "line1\nline2\tend"}

    def test_whitespace_between_tokens_kept(self):
        text = '{\n  "a": 1\n}'

        assert escape_control_characters(text) == text

    def test_other_control_characters_escaped(self):
        text = '{"a": "bell\x07"}'

        assert json.loads(escape_control_characters(text)) == {"a": "bell\x07"}


class TestRecoverJson:
    """Tests for recover_json() stage selection"""

    def test_valid_json_is_direct(self):
        result = recover_json('{"a": 1}')

        assert result.ok
        assert result.stage == ParseStage.DIRECT

    def test_quote_repair_stage(self):
        result = recover_json('{"a": "he said "hi""}')

        assert result.ok
        assert result.stage == ParseStage.QUOTE_REPAIR
        assert result.value == {"a": 'he said "hi"'}

    def test_control_escape_stage(self):
        result = recover_json('{"a": "he said "hi"\nbye"}')

        assert result.ok
        assert result.stage == ParseStage.CONTROL_ESCAPE
        assert result.value == {"a": 'he said "hi"\nbye'}

    def test_failure_has_positional_diagnostics(self):
        text = '{"a": 1, "b": }'

        result = recover_json(text)

        assert not result.ok
        diagnostics = result.diagnostics
        assert diagnostics.position == text.index("}")
        assert diagnostics.code_point == "U+007D"
        assert '"b": }' in diagnostics.context

    def test_non_finite_numbers_rejected_with_position(self):
        text = '[{"note": "NaN is fine here", "a": NaN}]'

        result = recover_json(text)

        assert not result.ok
        assert result.diagnostics.position == text.index("NaN}")
        assert result.diagnostics.code_point == "U+004E"
        assert "NaN" in result.diagnostics.message

    def test_context_is_bounded(self):
        text = '{"a": "' + "x" * 100 + '", oops}'

        result = recover_json(text)

        assert not result.ok
        assert len(result.diagnostics.context) <= 60


class TestParseJsonText:
    """Tests for parse_json_text()"""

    def test_array_of_objects(self):
        parsed = parse_json_text('[{"a": 1}, {"b": 2}]', "data.json")

        assert parsed.status == "pending"
        assert parsed.file_name == "data.json"
        assert [r.data for r in parsed.records] == [{"a": 1}, {"b": 2}]
        assert all(r.status == "pending" for r in parsed.records)
        assert parsed.repaired is False

    def test_single_object_is_one_record(self):
        parsed = parse_json_text('{"名前": "太郎"}')

        assert len(parsed.records) == 1
        assert parsed.records[0].data == {"名前": "太郎"}

    def test_bom_and_zero_width_are_tolerated(self):
        parsed = parse_json_text('\ufeff\u200b[{"a":\u200b 1}] ')

        assert parsed.is_importable
        assert parsed.records[0].data == {"a": 1}

    def test_repaired_flag(self):
        parsed = parse_json_text('[{"a": "he said "hi""}]')

        assert parsed.is_importable
        assert parsed.repaired is True

    @pytest.mark.parametrize("text,code", [
        ("", InputErrorCode.EMPTY_INPUT),
        ("  \n\u200b", InputErrorCode.EMPTY_INPUT),
        ("[]", InputErrorCode.EMPTY_ARRAY),
        ("{}", InputErrorCode.EMPTY_OBJECT),
        ('"just a string"', InputErrorCode.INVALID_ROOT),
        ("42", InputErrorCode.INVALID_ROOT),
        ("null", InputErrorCode.INVALID_ROOT),
        ('[{"a": 1}, 2]', InputErrorCode.NON_OBJECT_ELEMENT),
        ('[{"a": 1}, [{"b": 2}]]', InputErrorCode.NON_OBJECT_ELEMENT),
        ("{not json", InputErrorCode.PARSE_FAILED),
        ('[{"a": NaN, "b": Infinity}]', InputErrorCode.PARSE_FAILED),
        ('{"a": -Infinity}', InputErrorCode.PARSE_FAILED),
    ])
    def test_rejections_are_named(self, text, code):
        """Bad input yields an error result, never an exception."""
        parsed = parse_json_text(text)

        assert parsed.status == "error"
        assert parsed.error_code == code
        assert parsed.error
        assert parsed.records == []
        assert not parsed.is_importable

    def test_root_rejections_are_distinct(self):
        codes = {parse_json_text(t).error_code for t in ("[]", "{}", '"just a string"')}

        assert len(codes) == 3

    def test_parse_failure_message_includes_position(self):
        parsed = parse_json_text('{"a": 1,, "b": 2}')

        assert parsed.error_code == InputErrorCode.PARSE_FAILED
        assert parsed.diagnostics is not None
        assert parsed.diagnostics.position == 8
        assert "Near position 8" in parsed.error
        assert "U+002C" in parsed.error


class TestParseJsonBytes:
    """Tests for parse_json_bytes()"""

    def test_utf8_with_bom(self):
        content = '\ufeff[{"名前": "花子"}]'.encode("utf-8")

        parsed = parse_json_bytes(content, "names.json")

        assert parsed.file_name == "names.json"
        assert parsed.records[0].data == {"名前": "花子"}

    def test_invalid_utf8_is_parse_failure(self):
        parsed = parse_json_bytes(b'[{"a": "\xff\xfe"}]', "bad.json")

        assert parsed.status == "error"
        assert parsed.error_code == InputErrorCode.PARSE_FAILED
        assert parsed.diagnostics.position == 8
