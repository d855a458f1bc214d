"""
Tests for the heuristic amount, vendor and date extractors.

Covers:
- Candidate detection and which candidate wins
- Confidence penalties for ambiguous documents
- "Not found" instead of errors
"""

import pytest

from bill_extraction.field_extraction import (
    AmountExtractor,
    DateExtractor,
    DatePhraseParser,
    FieldEstimate,
    VendorExtractor,
    penalized_confidence,
)

from conftest import REFERENCE_DATE


class TestPenalizedConfidence:
    """Shared confidence rule"""

    def test_single_match_scores_initial(self):
        assert penalized_confidence(1, 100, 20) == 100

    def test_each_extra_match_costs_the_penalty(self):
        assert penalized_confidence(3, 100, 20) == 60
        assert penalized_confidence(2, 100, 30) == 70

    def test_floored_at_zero(self):
        assert penalized_confidence(9, 100, 20) == 0

    def test_no_match_scores_zero(self):
        assert penalized_confidence(0, 100, 20) == 0


class TestAmountExtractor:
    """Currency-like token detection"""

    @pytest.fixture
    def extractor(self):
        return AmountExtractor()

    def test_single_currency_amount(self, extractor):
        assert extractor.extract("total $45.00") == FieldEstimate(45.0, 100)

    def test_last_match_wins_with_penalty(self, extractor):
        result = extractor.extract("subtotal 40.00 vat 5.00 total $45.00")
        assert result == FieldEstimate(45.0, 60)

    def test_symbol_without_fraction(self, extractor):
        assert extractor.extract("pay $120 now") == FieldEstimate(120.0, 100)

    def test_thousands_separator(self, extractor):
        assert extractor.extract("balance $1,234.56").value == 1234.56
        assert extractor.extract("balance 1234.56").value == 1234.56

    def test_bare_integers_are_not_amounts(self, extractor):
        assert extractor.extract("account 12345 due 15 jan 2026") == FieldEstimate.not_found()

    def test_dates_and_times_are_not_amounts(self, extractor):
        text = "paid 01.15.26 at 10:30 ref 2026-01-15 phone 555-0100"
        assert extractor.find_candidates(text) == []

    def test_single_decimal_is_not_an_amount(self, extractor):
        assert extractor.extract("rating 4.5 stars") == FieldEstimate.not_found()

    def test_empty_text(self, extractor):
        assert extractor.extract("") == FieldEstimate.not_found()
        assert extractor.extract(None) == FieldEstimate.not_found()

    def test_confidence_non_increasing_in_match_count(self, extractor):
        confidences = [
            extractor.extract(" ".join(["$1.00"] * n)).confidence
            for n in range(1, 9)
        ]
        assert confidences == sorted(confidences, reverse=True)
        assert confidences[0] == 100
        assert confidences[-1] == 0

    def test_configured_penalty(self):
        extractor = AmountExtractor(initial_confidence=90, penalty=50)
        assert extractor.extract("$1.00 $2.00").confidence == 40


class TestVendorExtractor:
    """Known-vendor matching"""

    def test_vendor_from_mapping(self):
        extractor = VendorExtractor()
        result = extractor.extract("netflix monthly plan", {"Netflix": "Subscriptions"})
        assert result == FieldEstimate("Netflix", 100)

    def test_default_vendors_when_mapping_empty(self):
        extractor = VendorExtractor()
        assert extractor.extract("british gas energy bill", {}).value == "British Gas"

    def test_vendor_names_are_normalized_before_matching(self):
        extractor = VendorExtractor()
        assert extractor.extract("at t wireless statement", {}).value == "AT&T"

    def test_first_vendor_in_list_order_wins(self):
        extractor = VendorExtractor()
        result = extractor.extract("spotify and amazon prime", {})
        assert result == FieldEstimate("Amazon", 70)

    def test_mapping_replaces_default_list(self):
        extractor = VendorExtractor()
        result = extractor.extract("netflix and edf energy", {"EDF Energy": "Utilities"})
        assert result == FieldEstimate("EDF Energy", 100)

    def test_vendor_source_used_when_no_mapping_given(self):
        extractor = VendorExtractor(vendor_source=lambda: {"EDF Energy": "Utilities"})
        assert extractor.extract("edf energy quarterly bill").value == "EDF Energy"

    def test_no_match(self):
        extractor = VendorExtractor()
        assert extractor.extract("corner shop receipt", {}) == FieldEstimate.not_found()

    def test_empty_text(self):
        extractor = VendorExtractor()
        assert extractor.extract("", {"Netflix": "Subscriptions"}) == FieldEstimate.not_found()

    def test_failing_vendor_source_is_not_found(self):
        def broken():
            raise RuntimeError("cache exploded")

        extractor = VendorExtractor(vendor_source=broken)
        assert extractor.extract("netflix") == FieldEstimate.not_found()


class TestDateExtractor:
    """Pay date through the phrase parser"""

    @pytest.fixture
    def extractor(self):
        return DateExtractor(parser=DatePhraseParser(reference=lambda: REFERENCE_DATE))

    def test_single_date(self, extractor):
        assert extractor.extract("payment due 2026-02-01") == FieldEstimate("2026-02-01", 100)

    def test_first_date_wins_with_penalty(self, extractor):
        result = extractor.extract("issued 2026-01-05 due 2026-02-01")
        assert result == FieldEstimate("2026-01-05", 70)

    def test_month_name_without_year_uses_reference_year(self, extractor):
        assert extractor.extract("due jan 15").value == "2026-01-15"

    def test_no_date(self, extractor):
        assert extractor.extract("no dates here") == FieldEstimate.not_found()

    def test_parser_failure_is_not_found(self):
        class BrokenParser:
            def parse(self, text):
                raise RuntimeError("parser crashed")

        extractor = DateExtractor(parser=BrokenParser())
        assert extractor.extract("due 2026-02-01") == FieldEstimate.not_found()

    def test_custom_output_format(self):
        extractor = DateExtractor(
            parser=DatePhraseParser(reference=lambda: REFERENCE_DATE),
            output_format="%d/%m/%Y",
        )
        assert extractor.extract("due 2026-02-01").value == "01/02/2026"
