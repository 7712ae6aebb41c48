"""
Unit tests for text utilities.

Run: pytest tests/unit/test_text_utils.py -v
"""

import pytest

from utils.text_utils import (
    is_http_url,
    normalize_field_name,
    remove_invisible_outside_strings,
    sanitize_json_text,
)


class TestNormalizeFieldName:
    """Tests for normalize_field_name()"""

    def test_full_width_alphanumerics_collapse(self):
        """Should map ＩＤ to ID."""
        assert normalize_field_name("ＩＤ") == "ID"

    def test_full_width_parentheses(self):
        """Should map full-width parentheses to ASCII."""
        assert normalize_field_name("価格（税込）") == "価格(税込)"

    def test_full_width_colon_and_space(self):
        assert normalize_field_name("備考：\u3000メモ") == "備考: メモ"

    def test_removes_zero_width_characters(self):
        assert normalize_field_name("名\u200b前\ufeff") == "名前"

    def test_collapses_whitespace_runs(self):
        assert normalize_field_name("  first \t  name  ") == "first name"

    def test_keeps_case(self):
        """Comparison is case-sensitive: Name and name are different fields."""
        assert normalize_field_name("Name") != normalize_field_name("name")

    def test_empty_and_none(self):
        assert normalize_field_name("") == ""
        assert normalize_field_name(None) == ""

    @pytest.mark.parametrize("name", [
        "ＩＤ",
        "価格（税込）",
        "  a\u200b  b ",
        "ｶﾀｶﾅ",
        "①②",
        "\u00a0nbsp\u00a0",
        "tab\there",
        "",
        "already normal",
    ])
    def test_idempotent(self, name):
        """Normalizing a normalized name is a no-op."""
        once = normalize_field_name(name)
        assert normalize_field_name(once) == once


class TestSanitizeJsonText:
    """Tests for sanitize_json_text()"""

    def test_strips_bom(self):
        assert sanitize_json_text('\ufeff{"a": 1}') == '{"a": 1}'

    def test_trims_nbsp_and_zero_width_at_edges(self):
        assert sanitize_json_text('\u00a0\u200b {"a": 1} \u200b\n') == '{"a": 1}'

    def test_removes_zero_width_between_tokens(self):
        assert sanitize_json_text('{"a":\u200b 1}') == '{"a": 1}'

    def test_keeps_zero_width_inside_strings(self):
        text = '{"a": "x\u200by"}'
        assert remove_invisible_outside_strings(text) == text

    def test_escaped_quote_does_not_end_string(self):
        text = '{"a": "say \\"\u200b\\""}'
        assert remove_invisible_outside_strings(text) == text

    def test_whitespace_only_becomes_empty(self):
        assert sanitize_json_text(" \n\t\u200b ") == ""


class TestIsHttpUrl:
    """Tests for is_http_url()"""

    @pytest.mark.parametrize("value", [
        "https://a.b",
        "http://example.com/x?y=1",
        "HTTPS://EXAMPLE.COM",
    ])
    def test_accepts_absolute_http_urls(self, value):
        assert is_http_url(value) is True

    @pytest.mark.parametrize("value", [
        "not a url",
        "ftp://example.com",
        "example.com",
        "https://",
        "/relative/path",
        " https://a.b",
        "https://a.b/with space",
        "",
        None,
        42,
    ])
    def test_rejects_everything_else(self, value):
        assert is_http_url(value) is False
