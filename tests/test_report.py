"""
tests/test_report.py — Rank extractor and report builder.

Requires: pytest
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from tradereport.ledger import BucketState
from tradereport.report import ReportRecord, TopProduct, argmax, build_report

D = Decimal

LOOKUP = {"0101": "Horses, asses, mules and hinnies; live", "0202": "Meat of bovine animals; frozen"}


class TestArgmax:
    def test_picks_maximum(self):
        assert argmax({"0101": D(5), "0202": D(10)}) == ("0202", D(10))

    def test_empty_returns_none(self):
        assert argmax({}) is None

    def test_single_entry(self):
        assert argmax({"0303": D("0")}) == ("0303", D("0"))

    def test_negative_values(self):
        assert argmax({"0101": D("-5"), "0202": D("-1")}) == ("0202", D("-1"))

    def test_tie_breaks_on_smallest_code(self):
        assert argmax({"0909": D(10), "0101": D(10), "0505": D(3)}) == ("0101", D(10))

    def test_tie_break_independent_of_insertion_order(self):
        forward = {"0202": D(7), "0101": D(7)}
        backward = {"0101": D(7), "0202": D(7)}
        assert argmax(forward) == argmax(backward) == ("0101", D(7))

    def test_equal_decimals_with_different_exponents_tie(self):
        assert argmax({"0202": D("10.00"), "0101": D("10")}) == ("0101", D("10"))


class TestBuildReport:
    def test_balance_and_tops(self):
        state = BucketState()
        state.add_import("0101", D("100"))
        state.add_export("0202", D("200"))

        report = build_report("Testland (TL)", state, LOOKUP, code="TL")

        assert report.label == "Testland (TL)"
        assert report.code == "TL"
        assert report.trade_balance == D("100")
        assert report.total_imports == D("100")
        assert report.total_exports == D("200")
        assert report.top_import == TopProduct("0101", LOOKUP["0101"], D("100"))
        assert report.top_export == TopProduct("0202", LOOKUP["0202"], D("200"))

    def test_balance_is_exports_minus_imports(self):
        state = BucketState()
        state.add_import("0101", D("300"))
        state.add_export("0202", D("120.5"))
        report = build_report("X", state, LOOKUP)
        assert report.trade_balance == D("-179.5")

    def test_empty_state(self):
        report = build_report("Emptyland", BucketState(), LOOKUP)
        assert report.trade_balance == D(0)
        assert report.top_import is None
        assert report.top_export is None

    def test_one_sided_state(self):
        state = BucketState()
        state.add_export("0202", D("5"))
        report = build_report("X", state, LOOKUP)
        assert report.top_import is None
        assert report.top_export is not None

    def test_unknown_code_gets_placeholder(self):
        state = BucketState()
        state.add_import("9999", D("1"))
        report = build_report("X", state, LOOKUP)
        assert report.top_import is not None
        assert report.top_import.description == "(unknown)"
        assert report.top_import.code == "9999"

    def test_zero_valued_top_is_present(self):
        state = BucketState()
        state.add_import("0101", D("0"))
        report = build_report("X", state, LOOKUP)
        assert report.top_import == TopProduct("0101", LOOKUP["0101"], D("0"))

    def test_record_is_frozen(self):
        report = build_report("X", BucketState(), LOOKUP)
        assert isinstance(report, ReportRecord)
        with pytest.raises(FrozenInstanceError):
            report.label = "Y"  # type: ignore[misc]


class TestExactRanking:
    def test_values_differing_past_default_precision(self):
        # 30 significant digits; the default context keeps 28.
        low = D("1.00000000000000000000000000001")
        high = D("1.00000000000000000000000000002")
        assert argmax({"0101": low, "0202": high}) == ("0202", high)

    def test_balance_keeps_every_digit(self):
        state = BucketState()
        state.add_export("0101", D("1" + "0" * 30))
        state.add_import("0202", D("0.01"))
        report = build_report("X", state, LOOKUP)
        assert report.trade_balance == D("9" * 30 + ".99")
