"""
tradereport.rows — Row source and classification lookup loader.

Reads the Stats NZ overseas-trade CSV lazily, one decoded Row at a
time, so memory stays flat regardless of file size. The header is
validated before the first row is yielded: a missing mandatory column
is fatal, a missing optional `status` column is not.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tradereport.constants import (
    COL_ACCOUNT,
    COL_CATEGORY,
    COL_CODE,
    COL_COUNTRY,
    COL_PERIOD,
    COL_STATUS,
    COL_VALUE,
    CODE_LENGTH,
    LOOKUP_CODE_COLUMN,
    LOOKUP_DESCRIPTION_COLUMN,
    MANDATORY_COLUMNS,
)

_HS4_RE = re.compile(f"[0-9]{{{CODE_LENGTH}}}")


# ---------------------------------------------------------------------------
# Row: immutable, transient value object
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Row:
    """One decoded ledger line. Every field is untrusted and may be None."""

    period: Optional[str]
    account: Optional[str]
    classification_code: Optional[str]
    country_code: Optional[str]
    category: Optional[str]
    value: Optional[str]
    status: Optional[str] = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class InputNotFoundError(Exception):
    """Raised when a required input file does not exist."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        super().__init__(f"File not found: {self.path.resolve()}")


class MissingColumnError(Exception):
    """Raised when a CSV header lacks a mandatory column."""

    def __init__(self, column: str, path: Path | None = None) -> None:
        self.column = column
        self.path = path
        where = f" in {path}" if path is not None else ""
        super().__init__(f"Missing expected column: {column}{where}")


def require_columns(
    reader: csv.DictReader,
    required: tuple[str, ...],
    path: Path | None = None,
) -> None:
    """Normalise header names in place, then raise MissingColumnError
    for the first required column that is absent."""
    fieldnames = [(name or "").strip() for name in (reader.fieldnames or [])]
    reader.fieldnames = fieldnames
    present = set(fieldnames)
    for column in required:
        if column not in present:
            raise MissingColumnError(column, path)


def _clean(value: Optional[str]) -> Optional[str]:
    return value.strip() if value is not None else None


# ---------------------------------------------------------------------------
# Row source
# ---------------------------------------------------------------------------

def iter_rows(reader: csv.DictReader, path: Path | None = None) -> Iterator[Row]:
    """Decode rows from an open DictReader after validating its header."""
    require_columns(reader, MANDATORY_COLUMNS, path)
    for record in reader:
        yield Row(
            period=_clean(record.get(COL_PERIOD)),
            account=_clean(record.get(COL_ACCOUNT)),
            classification_code=_clean(record.get(COL_CODE)),
            country_code=_clean(record.get(COL_COUNTRY)),
            category=_clean(record.get(COL_CATEGORY)),
            value=_clean(record.get(COL_VALUE)),
            status=_clean(record.get(COL_STATUS)),
        )


def read_rows(path: Path) -> Iterator[Row]:
    """Lazily stream Rows from a trade CSV file.

    Raises:
        InputNotFoundError: the file does not exist (checked eagerly).
        MissingColumnError: on first iteration, if the header lacks a
            mandatory column. No row is yielded in that case.
    """
    path = Path(path)
    if not path.is_file():
        raise InputNotFoundError(path)
    return _stream(path)


def _stream(path: Path) -> Iterator[Row]:
    with open(path, newline="", encoding="utf-8-sig") as fh:
        yield from iter_rows(csv.DictReader(fh), path)


# ---------------------------------------------------------------------------
# Classification lookup
# ---------------------------------------------------------------------------

def load_classification_lookup(path: Path) -> dict[str, str]:
    """Load HS4 code → description from goods_classification.csv.

    Rows whose code is not exactly four digits are skipped silently.

    Raises:
        InputNotFoundError: the file does not exist.
        MissingColumnError: the code or description column is absent.
    """
    path = Path(path)
    if not path.is_file():
        raise InputNotFoundError(path)

    lookup: dict[str, str] = {}
    with open(path, newline="", encoding="utf-8-sig") as fh:
        reader = csv.DictReader(fh)
        require_columns(
            reader,
            (LOOKUP_CODE_COLUMN, LOOKUP_DESCRIPTION_COLUMN),
            path,
        )
        for record in reader:
            code = _clean(record.get(LOOKUP_CODE_COLUMN))
            if code is None or _HS4_RE.fullmatch(code) is None:
                continue
            lookup[code] = _clean(record.get(LOOKUP_DESCRIPTION_COLUMN)) or ""
    return lookup
