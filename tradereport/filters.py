"""
tradereport.filters — Row filter and decimal parser.

Pure functions. Zero I/O. Zero mutable state. Safe to call from any
thread, which is what allows run_partitioned() to filter shards
concurrently.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Optional

from tradereport.config import ReportConfig
from tradereport.rows import Row

# Optional sign, digits with an optional fraction, or a bare fraction.
# ASCII digits only; no exponent notation.
_DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)")

GROUPING_SEPARATOR = ","


@lru_cache(maxsize=8)
def _code_regex(length: int) -> re.Pattern[str]:
    return re.compile(f"[0-9]{{{length}}}")


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_reporting_year(period: Optional[str], year_prefix: str) -> bool:
    """Exact prefix match on the YYYYMM period text."""
    return bool(period) and period.startswith(year_prefix)


def is_category(category: Optional[str], expected: str) -> bool:
    """Trimmed, case-folded equality ('Goods', ' goods ' both match 'goods')."""
    return category is not None and category.strip().casefold() == expected


def is_classification_code(code: Optional[str], length: int) -> bool:
    """Exactly `length` ASCII digits. Leading zeros are significant."""
    return code is not None and _code_regex(length).fullmatch(code) is not None


def rejection_reason(row: Row, config: ReportConfig) -> Optional[str]:
    """Name of the first failing predicate, or None if the row is accepted.

    Account and country are deliberately not checked here; they are
    resolved downstream so unmatched rows still count as seen.
    """
    if not is_reporting_year(row.period, config.year_prefix):
        return "period"
    if not is_category(row.category, config.category):
        return "category"
    if not is_classification_code(row.classification_code, config.code_length):
        return "code"
    return None


def accept(row: Row, config: ReportConfig) -> bool:
    """True when the row passes the period, category and code predicates."""
    return rejection_reason(row, config) is None


# ---------------------------------------------------------------------------
# Decimal parsing
# ---------------------------------------------------------------------------

def parse_decimal(text: Optional[str]) -> Optional[Decimal]:
    """Parse a monetary field into an exact Decimal.

    Grouping commas are removed first ('1,234.56' → 1234.56). Returns
    None for null, blank or malformed text. Zero is a valid result and
    is never confused with None. No rounding is applied.
    """
    if text is None:
        return None
    cleaned = text.replace(GROUPING_SEPARATOR, "").strip()
    if not cleaned or _DECIMAL_RE.fullmatch(cleaned) is None:
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None
