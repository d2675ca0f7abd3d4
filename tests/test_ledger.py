"""
tests/test_ledger.py — Aggregation ledger, bucket state and bloc aggregator.

Requires: pytest
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from tradereport.ledger import (
    AggregationLedger,
    BlocAggregator,
    BucketState,
    normalize_account,
)

D = Decimal


@pytest.fixture
def ledger() -> AggregationLedger:
    return AggregationLedger(["NO", "DE", "FR", "IT", "PL", "EU"])


@pytest.fixture
def bloc(ledger: AggregationLedger) -> BlocAggregator:
    return BlocAggregator(ledger, "EU", {"DE", "FR", "IT", "PL"})


class TestBucketState:
    def test_starts_empty(self):
        state = BucketState()
        assert state.total_imports == D(0)
        assert state.total_exports == D(0)
        assert state.imports_by_classification == {}
        assert state.exports_by_classification == {}
        assert state.is_empty

    def test_merge_add_per_code(self):
        state = BucketState()
        state.add_import("0101", D("100"))
        state.add_import("0101", D("50.25"))
        state.add_export("0202", D("50"))
        assert state.total_imports == D("150.25")
        assert state.imports_by_classification == {"0101": D("150.25")}
        assert state.total_exports == D("50")
        assert state.exports_by_classification == {"0202": D("50")}

    def test_absorb(self):
        a = BucketState()
        a.add_import("0101", D("1"))
        b = BucketState()
        b.add_import("0101", D("2"))
        b.add_export("0303", D("3"))
        a.absorb(b)
        assert a.total_imports == D("3")
        assert a.imports_by_classification == {"0101": D("3")}
        assert a.exports_by_classification == {"0303": D("3")}


class TestNormalizeAccount:
    def test_case_and_whitespace(self):
        assert normalize_account(" Imports ") == "imports"
        assert normalize_account("EXPORTS") == "exports"

    def test_none(self):
        assert normalize_account(None) is None


class TestRecord:
    def test_imports_and_exports(self, ledger):
        assert ledger.record("NO", "Imports", "0101", D("100"))
        assert ledger.record("NO", "Exports", "0202", D("250"))
        assert ledger["NO"].total_imports == D("100")
        assert ledger["NO"].total_exports == D("250")

    def test_account_case_and_space_insensitive(self, ledger):
        ledger.record("NO", "  imports", "0101", D("1"))
        ledger.record("NO", "IMPORTS ", "0101", D("2"))
        ledger.record("NO", "eXpOrTs", "0101", D("4"))
        assert ledger["NO"].total_imports == D("3")
        assert ledger["NO"].total_exports == D("4")

    def test_unknown_key_is_noop(self, ledger):
        assert not ledger.record("US", "Imports", "0101", D("100"))
        assert not ledger.record(None, "Imports", "0101", D("100"))
        assert all(ledger[k].is_empty for k in ledger.keys())

    @pytest.mark.parametrize("account", ["Re-exports", "", None, "Import"])
    def test_unknown_account_is_noop(self, ledger, account):
        assert not ledger.record("NO", account, "0101", D("100"))
        assert ledger["NO"].is_empty
        assert ledger["NO"].total_imports == D(0)

    def test_zero_is_counted(self, ledger):
        assert ledger.record("NO", "Imports", "0101", D("0"))
        assert ledger["NO"].imports_by_classification == {"0101": D("0")}
        assert not ledger["NO"].is_empty

    def test_per_code_sums_equal_totals(self, ledger):
        amounts = [("0101", "10.10"), ("0202", "20.20"), ("0101", "0.01"), ("0303", "-5")]
        for code, value in amounts:
            ledger.record("DE", "Imports", code, D(value))
            ledger.record("DE", "Exports", code, D(value) * 2)
        state = ledger["DE"]
        assert sum(state.imports_by_classification.values(), D(0)) == state.total_imports
        assert sum(state.exports_by_classification.values(), D(0)) == state.total_exports
        assert state.total_imports == D("25.31")

    def test_long_values_are_not_rounded(self, ledger):
        ledger.record("NO", "Imports", "0101", D("0.12345678901234567890123456789"))
        ledger.record("NO", "Imports", "0101", D("1"))
        state = ledger["NO"]
        assert state.total_imports == D("1.12345678901234567890123456789")
        assert state.imports_by_classification["0101"] == D("1.12345678901234567890123456789")


class TestMerge:
    def test_merge_sums_all_buckets(self):
        a = AggregationLedger(["NO", "EU"])
        b = AggregationLedger(["NO", "EU"])
        a.record("NO", "Imports", "0101", D("1.5"))
        b.record("NO", "Imports", "0101", D("2.5"))
        b.record("EU", "Exports", "0202", D("7"))
        a.merge(b)
        assert a["NO"].total_imports == D("4.0")
        assert a["EU"].exports_by_classification == {"0202": D("7")}

    def test_merge_rejects_different_keys(self):
        a = AggregationLedger(["NO"])
        b = AggregationLedger(["SE"])
        with pytest.raises(ValueError):
            a.merge(b)


class TestBlocAggregator:
    def test_requires_tracked_bloc_key(self, ledger):
        with pytest.raises(KeyError):
            BlocAggregator(ledger, "XX", {"DE"})

    def test_member_rows_feed_bloc(self, ledger, bloc):
        ledger.record("DE", "Imports", "0101", D("10"))
        assert bloc.record("DE", "Imports", "0101", D("10"))
        assert ledger["EU"].total_imports == D("10")
        assert ledger["EU"].imports_by_classification == {"0101": D("10")}

    def test_non_member_ignored(self, ledger, bloc):
        assert not bloc.record("NO", "Imports", "0101", D("10"))
        assert not bloc.record("US", "Imports", "0101", D("10"))
        assert ledger["EU"].is_empty

    def test_unknown_account_ignored(self, ledger, bloc):
        assert not bloc.record("DE", "Re-exports", "0101", D("10"))
        assert ledger["EU"].is_empty

    def test_bloc_equals_sum_of_members(self, ledger, bloc):
        rows = [
            ("DE", "Imports", "0101", D("100.10")),
            ("DE", "Exports", "0202", D("40")),
            ("FR", "Imports", "0101", D("33.33")),
            ("FR", "Exports", "0303", D("12.5")),
            ("IT", "Imports", "0404", D("7")),
            ("IT", "Exports", "0202", D("0")),
            ("PL", "Imports", "0505", D("0")),
            ("NO", "Imports", "0101", D("999")),
        ]
        for key, account, code, amount in rows:
            ledger.record(key, account, code, amount)
            bloc.record(key, account, code, amount)

        members = ["DE", "FR", "IT", "PL"]
        assert ledger["PL"].total_imports == D(0)
        assert not ledger["PL"].is_empty
        eu = ledger["EU"]
        assert eu.total_imports == sum((ledger[m].total_imports for m in members), D(0))
        assert eu.total_exports == sum((ledger[m].total_exports for m in members), D(0))
        assert eu.imports_by_classification == {
            "0101": D("133.43"),
            "0404": D("7"),
            "0505": D("0"),
        }
        assert eu.exports_by_classification == {
            "0202": D("40"),
            "0303": D("12.5"),
        }
