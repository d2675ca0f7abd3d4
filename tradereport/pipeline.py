"""
tradereport.pipeline — Streaming filter-aggregate-rank driver.

State machine (one-shot, forward-only):

    IDLE ──first row──▶ STREAMING ──exhausted──▶ FINALIZING ──▶ DONE
      └──────────── empty source ──────────────▶ FINALIZING

While STREAMING, every row is filtered, its value parsed, then recorded
into the ledger and offered to the bloc aggregator. Row-level problems
(filter rejection, bad value, unknown country, unknown account) are
counted and skipped, never raised. Reports exist only once the driver
reaches DONE; nothing exposes STREAMING-state aggregates.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from tradereport.config import ReportConfig
from tradereport.filters import parse_decimal, rejection_reason
from tradereport.ledger import AggregationLedger, BlocAggregator
from tradereport.report import ReportRecord, build_report
from tradereport.rows import Row, load_classification_lookup, read_rows

logger = logging.getLogger("tradereport.pipeline")


class PipelineState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    DONE = "done"


class PipelineStateError(RuntimeError):
    """Raised when a driver is asked to stream a second time."""


# ---------------------------------------------------------------------------
# Row waterfall
# ---------------------------------------------------------------------------


@dataclass
class RowCounts:
    """Per-run row waterfall. The only observable trace of skipped rows."""

    rows_seen: int = 0
    rejected_period: int = 0
    rejected_category: int = 0
    rejected_code: int = 0
    dropped_invalid_value: int = 0
    dropped_unknown_country: int = 0
    dropped_unknown_account: int = 0
    kept: int = 0

    def merge(self, other: RowCounts) -> None:
        for name, value in asdict(other).items():
            setattr(self, name, getattr(self, name) + value)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    def waterfall(self) -> list[tuple[str, int]]:
        return list(asdict(self).items())


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PipelineResult:
    """Completed run: reports in output order plus the row waterfall."""

    reports: tuple[ReportRecord, ...]
    counts: RowCounts

    def get(self, code: str) -> Optional[ReportRecord]:
        for report in self.reports:
            if report.code == code:
                return report
        return None


# ---------------------------------------------------------------------------
# Driver
# ---------------------------------------------------------------------------


class PipelineDriver:
    """Single-pass aggregation over a row source.

    Args:
        config: Immutable run configuration (bucket set, filters).
        lookup: Classification code → description, read-only.
    """

    def __init__(self, config: ReportConfig, lookup: Mapping[str, str]) -> None:
        self.config = config
        self.lookup = lookup
        self.state = PipelineState.IDLE
        self.ledger, self._bloc = self._new_ledger()
        self.counts = RowCounts()

    def _new_ledger(self) -> tuple[AggregationLedger, BlocAggregator]:
        ledger = AggregationLedger(self.config.bucket_keys())
        bloc = BlocAggregator(ledger, self.config.bloc_code, self.config.member_codes)
        return ledger, bloc

    def _require_idle(self) -> None:
        if self.state is not PipelineState.IDLE:
            raise PipelineStateError(
                f"pipeline already {self.state.value}; a driver streams exactly once"
            )

    # -- Streaming ---------------------------------------------------------

    def _process(
        self,
        row: Row,
        ledger: AggregationLedger,
        bloc: BlocAggregator,
        counts: RowCounts,
    ) -> None:
        counts.rows_seen += 1

        reason = rejection_reason(row, self.config)
        if reason == "period":
            counts.rejected_period += 1
            return
        if reason == "category":
            counts.rejected_category += 1
            return
        if reason == "code":
            counts.rejected_code += 1
            return

        amount = parse_decimal(row.value)
        if amount is None:
            counts.dropped_invalid_value += 1
            return

        # The reserved bloc key is fed only through the bloc aggregator.
        key = row.country_code
        if key == self.config.bloc_code or key not in ledger:
            counts.dropped_unknown_country += 1
            return

        applied = ledger.record(key, row.account, row.classification_code, amount)
        bloc.record(key, row.account, row.classification_code, amount)

        if applied:
            counts.kept += 1
        else:
            counts.dropped_unknown_account += 1

    def run(self, rows: Iterable[Row]) -> PipelineResult:
        """Consume the row source once and return the finished reports."""
        self._require_idle()
        logger.info(json.dumps({
            "event": "pipeline_start",
            "year_prefix": self.config.year_prefix,
            "buckets": len(self.ledger),
        }))

        for row in rows:
            if self.state is PipelineState.IDLE:
                self.state = PipelineState.STREAMING
            self._process(row, self.ledger, self._bloc, self.counts)

        return self._finalize()

    def run_partitioned(
        self,
        partitions: Sequence[Iterable[Row]],
        max_workers: Optional[int] = None,
    ) -> PipelineResult:
        """Ingest row shards concurrently, merge, then finalise.

        Each shard gets its own ledger; ledgers are merged before any
        ranking, so tie-breaks only ever see the merged totals.
        """
        self._require_idle()
        self.state = PipelineState.STREAMING
        logger.info(json.dumps({
            "event": "pipeline_start",
            "year_prefix": self.config.year_prefix,
            "buckets": len(self.ledger),
            "partitions": len(partitions),
        }))

        def ingest(partition: Iterable[Row]) -> tuple[AggregationLedger, RowCounts]:
            ledger, bloc = self._new_ledger()
            counts = RowCounts()
            for row in partition:
                self._process(row, ledger, bloc, counts)
            return ledger, counts

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            for ledger, counts in pool.map(ingest, partitions):
                self.ledger.merge(ledger)
                self.counts.merge(counts)

        return self._finalize()

    # -- Finalizing --------------------------------------------------------

    def _finalize(self) -> PipelineResult:
        self.state = PipelineState.FINALIZING

        reports = tuple(
            build_report(
                self.config.label_for(key),
                self.ledger[key],
                self.lookup,
                code=key,
            )
            for key in self.config.bucket_keys()
        )

        self.state = PipelineState.DONE
        logger.info(json.dumps({"event": "pipeline_done", **self.counts.to_dict()}))
        return PipelineResult(reports=reports, counts=self.counts)


def run_from_files(config: ReportConfig) -> PipelineResult:
    """Load the lookup and stream the configured trade CSV in one pass.

    Raises InputNotFoundError / MissingColumnError before any row is
    aggregated.
    """
    lookup = load_classification_lookup(config.classification_path)
    rows = read_rows(config.data_path)
    return PipelineDriver(config, lookup).run(rows)
