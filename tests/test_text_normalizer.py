"""
Tests for OCR text normalization.

The normalizer must be total (never raises) and idempotent, and its
output must only contain the allow-listed characters.
"""

import re

import pytest

from bill_extraction.normalization import TextNormalizer, normalize_text


@pytest.fixture
def normalizer():
    return TextNormalizer()


SAMPLES = [
    "NETFLIX\r\nTotal:  $1,234.56!",
    "British Gas\nAccount #12-345\nDue: 15th Jan 2026",
    "  mixed\tWHITESPACE   and separators ",
    "café – £45.00 (incl. VAT)",
    "email: billing@verizon.com / phone 555-0100",
    "",
    "1,234,567.00 and 12,34",
]


class TestNormalize:
    """Canonical form of OCR text"""

    def test_lowercases_and_collapses_whitespace(self, normalizer):
        assert normalizer.normalize("NETFLIX\r\nTotal:  $1,234.56!") == "netflix total: $1234.56"

    def test_line_break_variants_become_spaces(self, normalizer):
        assert normalizer.normalize("a\r\nb\rc\nd e f") == "a b c d e f"

    def test_thousands_separators_are_dropped(self, normalizer):
        assert normalizer.normalize("1,234,567.00") == "1234567.00"

    def test_other_commas_become_spaces(self, normalizer):
        assert normalizer.normalize("12,34 and a,b") == "12 34 and a b"

    def test_allowed_symbols_are_kept(self, normalizer):
        assert normalizer.normalize("Due: 01/15/2026 - $5.00 @ Home") == \
            "due: 01/15/2026 - $5.00 @ home"

    def test_non_ascii_characters_are_removed(self, normalizer):
        assert normalizer.normalize("Café £45.00") == "caf 45.00"

    @pytest.mark.parametrize("sample", SAMPLES)
    def test_output_uses_only_allowed_characters(self, normalizer, sample):
        assert re.fullmatch(r"[0-9a-z @.:$/\-]*", normalizer.normalize(sample))

    @pytest.mark.parametrize("sample", SAMPLES)
    def test_idempotent(self, normalizer, sample):
        once = normalizer.normalize(sample)
        assert normalizer.normalize(once) == once


class TestTotality:
    """The normalizer never raises"""

    def test_none_becomes_empty(self, normalizer):
        assert normalizer.normalize(None) == ""

    def test_non_string_becomes_empty(self, normalizer):
        assert normalizer.normalize(12345) == ""
        assert normalizer.normalize(b"bytes") == ""

    def test_internal_failure_returns_lowercased_original(self, normalizer, monkeypatch):
        def boom(_text):
            raise RuntimeError("regex engine exploded")

        monkeypatch.setattr(normalizer, "_normalize", boom)
        assert normalizer.normalize("Netflix TOTAL!") == "netflix total!"

    def test_module_level_helper(self):
        assert normalize_text("Due:\n15 Jan 2026") == "due: 15 jan 2026"
