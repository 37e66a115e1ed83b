"""Tests for text normalization and matching helpers"""

from webeval_core.scoring.text_scorers import contains_expected, normalize_text, remove_markdown


class TestRemoveMarkdown:
    def test_code_fence_keeps_content(self):
        assert remove_markdown("```json\n{\"a\": 1}\n```").strip() == '{"a": 1}'

    def test_inline_code_and_bold(self):
        assert remove_markdown("The answer is **`Tokyo`**") == "The answer is Tokyo"

    def test_bullets_and_numbering(self):
        text = "- first\n* second\n1. third"
        assert remove_markdown(text) == "first\nsecond\nthird"


class TestNormalizeText:
    def test_none_and_empty(self):
        assert normalize_text(None) == ""
        assert normalize_text("") == ""

    def test_case_whitespace_and_width(self):
        assert normalize_text("  Ｔｏｋｙｏ\n\nCity  ") == "tokyo city"


class TestContainsExpected:
    def test_substring_match(self):
        assert contains_expected("Tokyo", "The capital of Japan is **Tokyo**.")

    def test_mismatch(self):
        assert not contains_expected("Kyoto", "The capital of Japan is Tokyo.")

    def test_blank_expected_never_matches(self):
        assert not contains_expected("   ", "anything")

    def test_none_actual(self):
        assert not contains_expected("Tokyo", None)
