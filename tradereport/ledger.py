"""
tradereport.ledger — Aggregation ledger and bloc aggregator.

The only mutable state in the pipeline. One BucketState per configured
bucket key, created empty at pipeline start. All arithmetic is exact
decimal.Decimal; nothing is rounded here.

Design contract:
    - record() is the ONLY mutation path for per-row amounts.
    - Unknown bucket keys and unknown account text are silent no-ops.
    - The bloc aggregate is fed per row through record(), never by
      summing finished member totals.
    - merge() folds a partition ledger into this one (partition-and-merge).
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Context, Decimal
from typing import Optional

from tradereport.constants import ACCOUNT_EXPORTS, ACCOUNT_IMPORTS

ZERO = Decimal(0)

# Unbounded context for every ledger operation. Passed explicitly, so
# results do not depend on the calling thread's decimal context.
EXACT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)


def normalize_account(account: Optional[str]) -> Optional[str]:
    """'  Imports ' → 'imports'. None stays None."""
    return account.strip().casefold() if account is not None else None


# ---------------------------------------------------------------------------
# BucketState
# ---------------------------------------------------------------------------


@dataclass
class BucketState:
    """Accumulated totals for one bucket.

    Invariant: sum(imports_by_classification.values()) == total_imports,
    and likewise for exports.
    """

    total_imports: Decimal = ZERO
    total_exports: Decimal = ZERO
    imports_by_classification: dict[str, Decimal] = field(default_factory=dict)
    exports_by_classification: dict[str, Decimal] = field(default_factory=dict)

    def add_import(self, code: str, amount: Decimal) -> None:
        self.total_imports = EXACT.add(self.total_imports, amount)
        self.imports_by_classification[code] = EXACT.add(
            self.imports_by_classification.get(code, ZERO), amount
        )

    def add_export(self, code: str, amount: Decimal) -> None:
        self.total_exports = EXACT.add(self.total_exports, amount)
        self.exports_by_classification[code] = EXACT.add(
            self.exports_by_classification.get(code, ZERO), amount
        )

    def absorb(self, other: BucketState) -> None:
        """Merge-add another state's totals into this one."""
        self.total_imports = EXACT.add(self.total_imports, other.total_imports)
        self.total_exports = EXACT.add(self.total_exports, other.total_exports)
        for code, amount in other.imports_by_classification.items():
            self.imports_by_classification[code] = EXACT.add(
                self.imports_by_classification.get(code, ZERO), amount
            )
        for code, amount in other.exports_by_classification.items():
            self.exports_by_classification[code] = EXACT.add(
                self.exports_by_classification.get(code, ZERO), amount
            )

    @property
    def is_empty(self) -> bool:
        return not self.imports_by_classification and not self.exports_by_classification


# ---------------------------------------------------------------------------
# AggregationLedger
# ---------------------------------------------------------------------------


class AggregationLedger:
    """Mapping bucket key → BucketState over a closed key set."""

    def __init__(self, bucket_keys: Iterable[str]) -> None:
        self._buckets: dict[str, BucketState] = {key: BucketState() for key in bucket_keys}

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def __getitem__(self, key: str) -> BucketState:
        return self._buckets[key]

    def __len__(self) -> int:
        return len(self._buckets)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._buckets)

    def get(self, key: str) -> Optional[BucketState]:
        return self._buckets.get(key)

    def record(
        self,
        bucket_key: Optional[str],
        account: Optional[str],
        classification_code: str,
        amount: Decimal,
    ) -> bool:
        """Add one amount to a bucket.

        Returns True if the amount was applied, False when the bucket key
        is not tracked or the account is neither imports nor exports.
        """
        state = self._buckets.get(bucket_key) if bucket_key is not None else None
        if state is None:
            return False

        side = normalize_account(account)
        if side == ACCOUNT_IMPORTS:
            state.add_import(classification_code, amount)
        elif side == ACCOUNT_EXPORTS:
            state.add_export(classification_code, amount)
        else:
            return False
        return True

    def merge(self, other: AggregationLedger) -> None:
        """Fold a partition ledger into this one.

        Both ledgers must track the same key set. Decimal addition is
        exact, so the result is independent of partition order.
        """
        if set(other.keys()) != set(self._buckets):
            raise ValueError("cannot merge ledgers with different bucket keys")
        for key, state in other._buckets.items():
            self._buckets[key].absorb(state)

    def snapshot(self) -> Mapping[str, BucketState]:
        """Read-only view of all bucket states."""
        return dict(self._buckets)


# ---------------------------------------------------------------------------
# BlocAggregator
# ---------------------------------------------------------------------------


class BlocAggregator:
    """Re-dispatches member-country amounts into the reserved bloc bucket."""

    def __init__(
        self,
        ledger: AggregationLedger,
        bloc_key: str,
        members: Iterable[str],
    ) -> None:
        if bloc_key not in ledger:
            raise KeyError(f"bloc key '{bloc_key}' is not a tracked bucket")
        self.ledger = ledger
        self.bloc_key = bloc_key
        self.members = frozenset(members)

    def record(
        self,
        bucket_key: Optional[str],
        account: Optional[str],
        classification_code: str,
        amount: Decimal,
    ) -> bool:
        """Record against the bloc bucket iff bucket_key is a member."""
        if bucket_key not in self.members:
            return False
        return self.ledger.record(self.bloc_key, account, classification_code, amount)
