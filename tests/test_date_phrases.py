"""
Tests for the regex + dateutil date phrase parser.
"""

from datetime import date

import pytest

from bill_extraction.field_extraction import DatePhraseParser

from conftest import REFERENCE_DATE


@pytest.fixture
def parser():
    return DatePhraseParser(reference=lambda: REFERENCE_DATE)


def resolved(parser, text):
    return [phrase.date for phrase in parser.parse(text)]


class TestRecognizedPhrases:
    """Each supported phrase shape resolves to the right date"""

    @pytest.mark.parametrize("text, expected", [
        ("due 2026-02-01", date(2026, 2, 1)),
        ("due 01/15/2026", date(2026, 1, 15)),
        ("due 15.01.2026", date(2026, 1, 15)),
        ("due january 15 2026", date(2026, 1, 15)),
        ("due jan. 15th, 2026", date(2026, 1, 15)),
        ("due 3 march 2026", date(2026, 3, 3)),
        ("due 15th of march 2026", date(2026, 3, 15)),
    ])
    def test_absolute_dates(self, parser, text, expected):
        assert resolved(parser, text) == [expected]

    def test_month_day_without_year_uses_reference_year(self, parser):
        assert resolved(parser, "due jan 15") == [date(2026, 1, 15)]

    def test_day_month_without_year_uses_reference_year(self, parser):
        assert resolved(parser, "due 15th of march") == [date(2026, 3, 15)]

    @pytest.mark.parametrize("word, expected", [
        ("today", date(2026, 1, 10)),
        ("tomorrow", date(2026, 1, 11)),
        ("yesterday", date(2026, 1, 9)),
    ])
    def test_relative_words(self, parser, word, expected):
        assert resolved(parser, f"payment due {word}") == [expected]


class TestPhraseSelection:
    """Ordering, overlaps and unresolvable phrases"""

    def test_phrases_ordered_by_position(self, parser):
        phrases = parser.parse("paid yesterday next due 2026-02-01")
        assert [p.text for p in phrases] == ["yesterday", "2026-02-01"]
        assert phrases[0].start < phrases[1].start

    def test_overlapping_patterns_yield_one_phrase(self, parser):
        phrases = parser.parse("due january 15 2026")
        assert len(phrases) == 1
        assert phrases[0].text == "january 15 2026"

    def test_phrase_offsets(self, parser):
        text = "bill dated 2026-02-01"
        phrase = parser.parse(text)[0]
        assert text[phrase.start:phrase.end] == "2026-02-01"

    def test_impossible_dates_are_skipped(self, parser):
        assert parser.parse("ref 02/30/2026") == []

    def test_no_phrases(self, parser):
        assert parser.parse("nothing to see") == []
        assert parser.parse("") == []

    def test_reference_defaults_to_now(self):
        phrases = DatePhraseParser().parse("due today")
        assert phrases[0].date == date.today()
