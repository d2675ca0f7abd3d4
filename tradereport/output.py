"""
tradereport.output — Result sinks: CSV file, console tables, JSON.

All sinks consume finished ReportRecords only. Money is rendered from
the exact Decimal with ROUND_HALF_UP to two places; the CSV carries no
thousands separators, the console does.
"""

from __future__ import annotations

import csv
import os
import sys
import uuid
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Optional, TextIO

from tradereport.config import ReportConfig
from tradereport.constants import CURRENCY, NOT_APPLICABLE, RESULT_FIELDNAMES
from tradereport.ledger import EXACT
from tradereport.pipeline import PipelineResult
from tradereport.report import ReportRecord, TopProduct

CENTS = Decimal("0.01")
BANNER_WIDTH = 80


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

def format_amount(value: Optional[Decimal]) -> str:
    """Two fractional digits, half-up, no grouping. None → ''."""
    if value is None:
        return ""
    return f"{value.quantize(CENTS, rounding=ROUND_HALF_UP, context=EXACT):f}"


def format_grouped(value: Decimal) -> str:
    """Two fractional digits with thousands separators, for console output."""
    return f"{value.quantize(CENTS, rounding=ROUND_HALF_UP, context=EXACT):,.2f}"


def result_row(report: ReportRecord) -> list[str]:
    """One CSV row in RESULT_FIELDNAMES order. Absent top fields → ''."""
    row = [report.label, format_amount(report.trade_balance)]
    for top in (report.top_import, report.top_export):
        if top is None:
            row.extend(["", "", ""])
        else:
            row.extend([top.description, top.code, format_amount(top.value)])
    return row


# ---------------------------------------------------------------------------
# CSV sink
# ---------------------------------------------------------------------------

def write_results_csv(path: Path, reports: tuple[ReportRecord, ...] | list[ReportRecord]) -> Path:
    """Write the result table atomically and return the final path.

    Rows are written to a temp file beside the target and moved into
    place with os.replace(), so a failure never leaves a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")

    try:
        with open(tmp_path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(RESULT_FIELDNAMES)
            for report in reports:
                writer.writerow(result_row(report))
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    return path


# ---------------------------------------------------------------------------
# Console sink
# ---------------------------------------------------------------------------

def _top_line(kind: str, top: Optional[TopProduct]) -> str:
    if top is None:
        return f"  Most {kind} product: {NOT_APPLICABLE}"
    return (
        f"  Most {kind} product: {top.description} ({top.code}) - "
        f"{format_grouped(top.value)} {CURRENCY}"
    )


def print_report(report: ReportRecord, stream: TextIO) -> None:
    print(f"\n{report.label}:", file=stream)
    print(
        f"  Trade balance (Exports - Imports): "
        f"{format_grouped(report.trade_balance)} {CURRENCY}",
        file=stream,
    )
    print(_top_line("imported", report.top_import), file=stream)
    print(_top_line("exported", report.top_export), file=stream)


def print_console_report(
    result: PipelineResult,
    config: ReportConfig,
    stream: TextIO | None = None,
) -> None:
    """Human-readable tables: focus country, bloc members, bloc total."""
    stream = stream or sys.stdout
    focus = result.get(config.focus_code)
    bloc = result.get(config.bloc_code)
    members = [
        r for r in result.reports
        if r.code not in (config.focus_code, config.bloc_code)
    ]

    print("\n" + "=" * BANNER_WIDTH, file=stream)
    print(
        f"TRADE REPORT {config.year_prefix} - {config.focus_name.upper()} & "
        f"{config.bloc_code} ({config.category.title()}, HS{config.code_length})",
        file=stream,
    )
    print("=" * BANNER_WIDTH, file=stream)

    if focus is not None:
        print_report(focus, stream)

    print(f"\n--- {config.bloc_code} MEMBER COUNTRIES ---", file=stream)
    for report in members:
        print_report(report, stream)

    print(
        f"\n--- {config.bloc_code} TOTAL ({len(config.bloc_members)} countries) ---",
        file=stream,
    )
    if bloc is not None:
        print_report(bloc, stream)


def print_waterfall(result: PipelineResult, stream: TextIO | None = None) -> None:
    stream = stream or sys.stdout
    print("\n  Row waterfall:", file=stream)
    for stage, count in result.counts.waterfall():
        print(f"    {stage}: {count}", file=stream)


# ---------------------------------------------------------------------------
# JSON form
# ---------------------------------------------------------------------------

def _top_to_dict(top: Optional[TopProduct]) -> Optional[dict[str, str]]:
    if top is None:
        return None
    return {
        "code": top.code,
        "description": top.description,
        "value": format_amount(top.value),
    }


def report_to_dict(report: ReportRecord) -> dict[str, Any]:
    """JSON-safe dict; money as fixed two-decimal strings."""
    return {
        "code": report.code,
        "label": report.label,
        "trade_balance": format_amount(report.trade_balance),
        "total_imports": format_amount(report.total_imports),
        "total_exports": format_amount(report.total_exports),
        "top_import": _top_to_dict(report.top_import),
        "top_export": _top_to_dict(report.top_export),
    }


def result_to_dict(result: PipelineResult, config: ReportConfig) -> dict[str, Any]:
    return {
        "year": config.year_prefix,
        "category": config.category,
        "currency": CURRENCY,
        "focus": config.focus_code,
        "bloc": config.bloc_code,
        "counts": result.counts.to_dict(),
        "reports": [report_to_dict(r) for r in result.reports],
    }
