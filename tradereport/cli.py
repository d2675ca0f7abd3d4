"""
tradereport.cli — Command-line entry point for the annual trade report.

Usage:
    python -m tradereport.cli
    python -m tradereport.cli data/output_csv_full.csv --year 2024
    python -m tradereport.cli --classification goods_classification.csv --output out/report.csv
    python -m tradereport.cli --json
    python -m tradereport.cli --quiet

Exit codes:
    0: OK — report written.
    1: Missing input — trade CSV not found. Nothing written.
    2: Lookup unavailable — classification CSV missing or unreadable.
    3: Schema error — a mandatory column is absent, or the trade CSV
       does not decode or parse. Nothing written.
    4: Configuration error — an override failed validation.

Paths and filters may also come from the environment
(TRADE_DATA_PATH, GOODS_CLASS_PATH, TRADE_RESULTS_PATH,
TRADE_YEAR_PREFIX, TRADE_CATEGORY, TRADE_FOCUS_COUNTRY, TRADE_FOCUS_NAME).
"""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys

from pydantic import ValidationError

from tradereport.config import resolve_config
from tradereport.output import (
    print_console_report,
    print_waterfall,
    result_to_dict,
    write_results_csv,
)
from tradereport.pipeline import PipelineDriver
from tradereport.rows import (
    InputNotFoundError,
    MissingColumnError,
    load_classification_lookup,
    read_rows,
)

logger = logging.getLogger("tradereport.cli")

EXIT_OK: int = 0
EXIT_MISSING_INPUT: int = 1
EXIT_LOOKUP_UNAVAILABLE: int = 2
EXIT_SCHEMA: int = 3
EXIT_CONFIG: int = 4


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trade-report",
        description="Aggregate yearly goods trade for a focus country and a bloc.",
    )
    parser.add_argument(
        "input",
        nargs="?",
        default=None,
        help="Trade CSV (default: TRADE_DATA_PATH or output_csv_full.csv).",
    )
    parser.add_argument(
        "--classification",
        default=None,
        help="HS4 goods classification CSV (default: GOODS_CLASS_PATH).",
    )
    parser.add_argument(
        "--output",
        default=None,
        help="Result CSV path (default: TRADE_RESULTS_PATH).",
    )
    parser.add_argument(
        "--year",
        default=None,
        help="Reporting year prefix, e.g. 2024.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print the result as JSON instead of tables.",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress console output. Exit code only.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Emit structured debug logs to stderr.",
    )
    return parser


def _fatal(message: str) -> None:
    print(f"FATAL: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    """Run the trade report. Returns exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        config = resolve_config(
            data_path=args.input,
            classification_path=args.classification,
            results_path=args.output,
            year_prefix=args.year,
        )
    except ValidationError as exc:
        for err in exc.errors():
            field = ".".join(str(p) for p in err.get("loc", []))
            _fatal(f"invalid configuration: {field}: {err.get('msg')}")
        return EXIT_CONFIG

    if not config.data_path.is_file():
        _fatal(f"File not found: {config.data_path.resolve()}")
        return EXIT_MISSING_INPUT

    try:
        lookup = load_classification_lookup(config.classification_path)
    except (InputNotFoundError, MissingColumnError, OSError, ValueError, csv.Error) as exc:
        _fatal(f"Failed to load goods classification: {exc}")
        return EXIT_LOOKUP_UNAVAILABLE

    try:
        result = PipelineDriver(config, lookup).run(read_rows(config.data_path))
    except InputNotFoundError as exc:
        _fatal(str(exc))
        return EXIT_MISSING_INPUT
    except MissingColumnError as exc:
        _fatal(str(exc))
        return EXIT_SCHEMA
    except (UnicodeDecodeError, csv.Error) as exc:
        _fatal(f"Unreadable trade data in {config.data_path}: {exc}")
        return EXIT_SCHEMA

    out_path = write_results_csv(config.results_path, result.reports)
    logger.info(json.dumps({
        "event": "results_written",
        "path": str(out_path),
        "reports": len(result.reports),
    }))

    if args.quiet:
        return EXIT_OK

    if args.json_output:
        print(json.dumps(result_to_dict(result, config), indent=2, ensure_ascii=False))
        return EXIT_OK

    print_console_report(result, config)
    if args.verbose:
        print_waterfall(result)
    print(f"\nResults saved to: {out_path.resolve()}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
