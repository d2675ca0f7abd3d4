"""
tradereport.report — Rank extractor and report builder.

Pure computation over a finished BucketState. A ReportRecord is fully
determined by its bucket state and the classification lookup; it is
built only after the streaming pass completes and is never mutated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from tradereport.constants import UNKNOWN_DESCRIPTION
from tradereport.ledger import EXACT, BucketState


@dataclass(frozen=True, slots=True)
class TopProduct:
    """Highest-valued classification code on one side of a bucket."""

    code: str
    description: str
    value: Decimal


@dataclass(frozen=True, slots=True)
class ReportRecord:
    """Derived, immutable per-bucket result.

    trade_balance is exports minus imports. top_import / top_export are
    None when the bucket saw no rows on that side; sinks render that as
    an explicit absence, never as zero.
    """

    code: str
    label: str
    trade_balance: Decimal
    total_imports: Decimal
    total_exports: Decimal
    top_import: Optional[TopProduct]
    top_export: Optional[TopProduct]


def argmax(by_classification: Mapping[str, Decimal]) -> Optional[tuple[str, Decimal]]:
    """Return the (code, value) entry with the maximum value, or None if empty.

    Ties are broken by the lexicographically smallest code, so the
    result never depends on mapping iteration order.
    """
    if not by_classification:
        return None
    code, value = min(by_classification.items(), key=lambda kv: (EXACT.minus(kv[1]), kv[0]))
    return code, value


def _top(
    by_classification: Mapping[str, Decimal],
    lookup: Mapping[str, str],
) -> Optional[TopProduct]:
    best = argmax(by_classification)
    if best is None:
        return None
    code, value = best
    return TopProduct(code=code, description=lookup.get(code, UNKNOWN_DESCRIPTION), value=value)


def build_report(
    label: str,
    state: BucketState,
    lookup: Mapping[str, str],
    code: str = "",
) -> ReportRecord:
    """Convert a BucketState into a ReportRecord.

    Balance = exports − imports (standard trade-balance definition; a
    surplus is positive).
    """
    return ReportRecord(
        code=code,
        label=label,
        trade_balance=EXACT.subtract(state.total_exports, state.total_imports),
        total_imports=state.total_imports,
        total_exports=state.total_exports,
        top_import=_top(state.imports_by_classification, lookup),
        top_export=_top(state.exports_by_classification, lookup),
    )
