"""Pipeline orchestration: bronze → silver → gold.

This module sequences the stages and owns everything that is about the run
rather than the data: timing, per-table reports, failure isolation, warnings
and the overall status.

Order of work:
1. Silver: ``cleanse`` then ``derive`` for each of the six source tables.
   Tables are independent and may run in parallel (``max_workers > 1``).
   A ``StageFailure`` aborts only its own table.
2. Gold: ``dim_customer``, ``dim_product``, then ``fact_sales``. An output
   whose inputs did not all succeed is not computed at all (``BatchFailure``),
   and neither is anything depending on it.

Status of a run:
    "ok"      every table and every output succeeded
    "partial" some outputs were produced, something failed
    "failed"  no gold output was produced

Examples:
    >>> from dwh_core import DataPaths
    >>> from dwh_core.pipeline import run_from_paths
    >>> result = run_from_paths(DataPaths.from_root("data"), reference_date="2025-01-15")
    >>> result.status
    'ok'
    >>> result.outputs["dim_customer"].head()
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
import warnings
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Sequence

import pandas as pd

from dwh_core import __version__
from dwh_core.config import DataPaths
from dwh_core.exceptions import (
    BatchFailure,
    ConfigError,
    DataQualityError,
    StageFailure,
    ValidationWarning,
)
from dwh_core.marts import assemble_customer, assemble_product, assemble_sales_fact
from dwh_core.metadata import RunMetadata, write_run_metadata
from dwh_core.qa import run_gold_qa
from dwh_core.raw import load_bronze
from dwh_core.staging import cleanse, derive
from dwh_core.staging.cleanse import RawRecords
from dwh_core.storage import write_tables
from dwh_core.tables import (
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_CUST_AZ12,
    ERP_LOC_A101,
    ERP_PX_CAT_G1V2,
    TABLE_ORDER,
    get_table,
)
from dwh_core.utils import format_duration, parse_date

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_PARTIAL = "partial"

DIM_CUSTOMER = "dim_customer"
DIM_PRODUCT = "dim_product"
FACT_SALES = "fact_sales"

# Gold outputs in build order, with the silver tables / outputs each needs
GOLD_DEPENDENCIES: dict[str, list[str]] = {
    DIM_CUSTOMER: [CRM_CUST_INFO, ERP_CUST_AZ12, ERP_LOC_A101],
    DIM_PRODUCT: [CRM_PRD_INFO, ERP_PX_CAT_G1V2],
    FACT_SALES: [CRM_SALES_DETAILS, DIM_CUSTOMER, DIM_PRODUCT],
}
GOLD_ORDER = list(GOLD_DEPENDENCIES)


@dataclass
class TableReport:
    """Outcome of one silver table or gold output.

    Attributes:
        name: Source table id or gold output name.
        status: "ok" or "failed".
        rows_in: Rows received (for gold outputs: rows of the primary input).
        rows_out: Rows produced.
        dropped: Rows removed by reason.
        repaired: Non-fatal repairs by kind.
        duration_seconds: Wall-clock time spent on this table.
        error: Failure message when status is "failed".
        records: The produced rows (None on failure).

    For every successful report ``rows_in == rows_out + sum(dropped.values())``.
    """

    name: str
    status: str
    rows_in: int = 0
    rows_out: int = 0
    dropped: dict[str, int] = field(default_factory=dict)
    repaired: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0
    error: str | None = None
    records: pd.DataFrame | None = field(default=None, repr=False)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict:
        """Summary without the records, for logs and run metadata."""
        return {
            "status": self.status,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "dropped": dict(self.dropped),
            "repaired": dict(self.repaired),
            "duration_seconds": round(self.duration_seconds, 3),
            "error": self.error,
        }


@dataclass
class PipelineResult:
    """Outcome of a full run.

    Attributes:
        status: "ok", "partial" or "failed".
        reference_date: Reference date the run used.
        silver: Reports per source table, in ``TABLE_ORDER``.
        gold: Reports per gold output, in ``GOLD_ORDER``.
        duration_seconds: Wall-clock time of the whole batch.
    """

    status: str
    reference_date: pd.Timestamp
    silver: dict[str, TableReport]
    gold: dict[str, TableReport]
    duration_seconds: float

    @property
    def outputs(self) -> dict[str, pd.DataFrame]:
        """Successfully produced gold tables by name."""
        return {name: r.records for name, r in self.gold.items() if r.ok and r.records is not None}

    @property
    def silver_tables(self) -> dict[str, pd.DataFrame]:
        """Successfully derived silver tables by id."""
        return {name: r.records for name, r in self.silver.items() if r.ok and r.records is not None}


def resolve_reference_date(reference_date: str | pd.Timestamp | None = None) -> pd.Timestamp:
    """Return the run's reference date at midnight (today when not given).

    Raises:
        ConfigError: If a string date is not YYYY-MM-DD.
    """
    if reference_date is None:
        return pd.Timestamp.today().normalize()
    if isinstance(reference_date, str):
        return pd.Timestamp(parse_date(reference_date))
    return pd.Timestamp(reference_date).normalize()


# ---------- silver ----------


def _merge_counts(*counters: Mapping[str, int]) -> dict[str, int]:
    merged: dict[str, int] = {}
    for counter in counters:
        for name, n in counter.items():
            merged[name] = merged.get(name, 0) + n
    return merged


def run_table(
    table_id: str,
    raw_records: RawRecords,
    reference_date: pd.Timestamp,
) -> TableReport:
    """Cleanse and derive one source table, turning a StageFailure into a failed report."""
    start = time.perf_counter()
    logger.info("Processing %s", table_id)
    try:
        cleansed = cleanse(table_id, raw_records, reference_date=reference_date)
        derived = derive(table_id, cleansed.records)
    except StageFailure as e:
        elapsed = time.perf_counter() - start
        logger.error("Table %s failed after %s: %s", table_id, format_duration(elapsed), e)
        return TableReport(name=table_id, status=STATUS_FAILED, duration_seconds=elapsed, error=str(e))

    elapsed = time.perf_counter() - start
    report = TableReport(
        name=table_id,
        status=STATUS_OK,
        rows_in=cleansed.rows_in,
        rows_out=derived.rows_out,
        dropped=_merge_counts(cleansed.dropped, derived.dropped),
        repaired=_merge_counts(cleansed.repaired, derived.repaired),
        duration_seconds=elapsed,
        records=derived.records,
    )
    logger.info(
        "%s: %d rows in, %d out, %d dropped, %d repaired (%s)",
        table_id,
        report.rows_in,
        report.rows_out,
        sum(report.dropped.values()),
        sum(report.repaired.values()),
        format_duration(elapsed),
    )
    return report


def _warn_repairs(report: TableReport) -> None:
    if not report.ok or not report.repaired:
        return
    message = f"{report.name}: {sum(report.repaired.values())} value(s) repaired {report.repaired}"
    logger.warning(message)
    warnings.warn(message, ValidationWarning, stacklevel=3)


def run_silver(
    raw_tables: Mapping[str, RawRecords],
    *,
    reference_date: str | pd.Timestamp | None = None,
    max_workers: int = 1,
) -> dict[str, TableReport]:
    """Run the silver stages for all six source tables.

    A table absent from ``raw_tables`` is reported as failed. Tables never
    share state, so with ``max_workers > 1`` they run in a thread pool; the
    reports are identical either way.

    Args:
        raw_tables: Table id -> raw records (DataFrame or iterable of mappings).
        reference_date: "Today" for plausibility checks (default: today).
        max_workers: Number of tables processed concurrently.

    Returns:
        Dictionary mapping table id to TableReport, in ``TABLE_ORDER``.

    Raises:
        ConfigError: If ``raw_tables`` names an unknown table or the reference
            date is invalid.
    """
    for table_id in raw_tables:
        get_table(table_id)
    ref = resolve_reference_date(reference_date)

    present = [t for t in TABLE_ORDER if t in raw_tables]
    if max_workers > 1 and len(present) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda t: run_table(t, raw_tables[t], ref), present))
    else:
        results = [run_table(t, raw_tables[t], ref) for t in present]
    by_table = dict(zip(present, results))

    reports: dict[str, TableReport] = {}
    for table_id in TABLE_ORDER:
        if table_id in by_table:
            reports[table_id] = by_table[table_id]
        else:
            error = StageFailure(table_id, "no raw records provided")
            logger.error("%s", error)
            reports[table_id] = TableReport(name=table_id, status=STATUS_FAILED, error=str(error))
        _warn_repairs(reports[table_id])
    return reports


# ---------- gold ----------


def _build_customer(inputs: Mapping[str, pd.DataFrame]) -> tuple[pd.DataFrame, int, dict[str, int]]:
    crm = inputs[CRM_CUST_INFO]
    dim = assemble_customer(crm, inputs[ERP_CUST_AZ12], inputs[ERP_LOC_A101])
    return dim, len(crm), {}


def _build_product(inputs: Mapping[str, pd.DataFrame]) -> tuple[pd.DataFrame, int, dict[str, int]]:
    crm = inputs[CRM_PRD_INFO]
    dim = assemble_product(crm, inputs[ERP_PX_CAT_G1V2])
    historical = len(crm) - len(dim)
    return dim, len(crm), {"historical_version": historical} if historical else {}


def _build_sales(inputs: Mapping[str, pd.DataFrame]) -> tuple[pd.DataFrame, int, dict[str, int]]:
    sales = inputs[CRM_SALES_DETAILS]
    fact = assemble_sales_fact(sales, inputs[DIM_CUSTOMER], inputs[DIM_PRODUCT])
    return fact, len(sales), {}


_BUILDERS: dict[str, Callable[[Mapping[str, pd.DataFrame]], tuple[pd.DataFrame, int, dict[str, int]]]] = {
    DIM_CUSTOMER: _build_customer,
    DIM_PRODUCT: _build_product,
    FACT_SALES: _build_sales,
}


def run_gold(silver: Mapping[str, TableReport]) -> dict[str, TableReport]:
    """Assemble the gold outputs from successful silver reports.

    Outputs are built in dependency order. One whose dependencies did not all
    succeed is recorded as failed with a ``BatchFailure`` message and not
    computed; a ``DataQualityError`` during assembly fails that output only.

    Returns:
        Dictionary mapping output name to TableReport, in ``GOLD_ORDER``.
    """
    available: dict[str, pd.DataFrame] = {
        name: r.records for name, r in silver.items() if r.ok and r.records is not None
    }
    reports: dict[str, TableReport] = {}

    for output in GOLD_ORDER:
        missing = [dep for dep in GOLD_DEPENDENCIES[output] if dep not in available]
        if missing:
            failure = BatchFailure(output, missing)
            logger.error("Skipping %s", failure)
            reports[output] = TableReport(name=output, status=STATUS_FAILED, error=str(failure))
            continue

        start = time.perf_counter()
        try:
            records, rows_in, dropped = _BUILDERS[output](available)
        except DataQualityError as e:
            elapsed = time.perf_counter() - start
            logger.error("Assembly of %s failed: %s", output, e)
            reports[output] = TableReport(
                name=output, status=STATUS_FAILED, duration_seconds=elapsed, error=str(e)
            )
            continue

        elapsed = time.perf_counter() - start
        available[output] = records
        reports[output] = TableReport(
            name=output,
            status=STATUS_OK,
            rows_in=rows_in,
            rows_out=len(records),
            dropped=dropped,
            duration_seconds=elapsed,
            records=records,
        )
        logger.info("Built %s: %d rows (%s)", output, len(records), format_duration(elapsed))

    return reports


# ---------- batch ----------


def overall_status(silver: Mapping[str, TableReport], gold: Mapping[str, TableReport]) -> str:
    if all(r.ok for r in silver.values()) and all(r.ok for r in gold.values()):
        return STATUS_OK
    if any(r.ok for r in gold.values()):
        return STATUS_PARTIAL
    return STATUS_FAILED


def run_pipeline(
    raw_tables: Mapping[str, RawRecords],
    *,
    reference_date: str | pd.Timestamp | None = None,
    max_workers: int = 1,
) -> PipelineResult:
    """Run silver and gold on an in-memory snapshot of the six source tables.

    The function performs no I/O. Running it twice on the same input with the
    same reference date yields identical outputs, surrogate keys included.

    Args:
        raw_tables: Table id -> raw records.
        reference_date: "Today" for plausibility checks (default: today).
        max_workers: Silver tables processed concurrently.

    Returns:
        PipelineResult with per-table reports and the gold outputs.

    Raises:
        ConfigError: If a table id or the reference date is invalid.
    """
    batch_start = time.perf_counter()
    ref = resolve_reference_date(reference_date)
    logger.info("Starting warehouse batch (reference date %s)", ref.date().isoformat())

    silver = run_silver(raw_tables, reference_date=ref, max_workers=max_workers)
    gold = run_gold(silver)
    status = overall_status(silver, gold)

    elapsed = time.perf_counter() - batch_start
    log = logger.info if status == STATUS_OK else logger.warning
    log("Batch finished with status '%s' in %s", status, format_duration(elapsed))

    return PipelineResult(
        status=status,
        reference_date=ref,
        silver=silver,
        gold=gold,
        duration_seconds=elapsed,
    )


def run_from_paths(
    paths: DataPaths,
    *,
    reference_date: str | pd.Timestamp | None = None,
    max_workers: int = 1,
    write: bool = True,
) -> PipelineResult:
    """Load the bronze extracts, run the pipeline and persist its outputs.

    Successful silver tables and gold outputs replace their previous CSVs;
    outputs that failed keep whatever the last successful run wrote. The run
    summary goes to ``<gold>/_meta/last_run.json``.
    """
    raw_tables = load_bronze(paths)
    result = run_pipeline(raw_tables, reference_date=reference_date, max_workers=max_workers)

    if write:
        paths.ensure_dirs()
        write_tables(result.silver_tables, paths.silver)
        write_tables(result.outputs, paths.gold)
        tables = {name: r.to_dict() for name, r in {**result.silver, **result.gold}.items()}
        meta = RunMetadata(
            last_run=datetime.now().isoformat(timespec="seconds"),
            reference_date=result.reference_date.date().isoformat(),
            status=result.status,
            duration_seconds=round(result.duration_seconds, 3),
            tables=tables,
            pipeline_version=__version__,
        )
        write_run_metadata(paths.gold, meta)

    return result


# ---------- CLI ----------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dwh-core",
        description="Build the CRM/ERP warehouse: bronze CSV extracts → silver tables → gold star schema.",
    )
    parser.add_argument(
        "--data-root",
        default="data",
        help="Root directory holding datasets/source_crm and datasets/source_erp (default: data)",
    )
    parser.add_argument(
        "--reference-date",
        default=None,
        help="Reference date YYYY-MM-DD for plausibility checks (default: today)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of source tables cleansed concurrently (default: 1)",
    )
    parser.add_argument(
        "--no-write",
        action="store_true",
        help="Run the transformations without writing silver/gold outputs",
    )
    parser.add_argument(
        "--no-qa",
        action="store_true",
        help="Skip the gold-layer quality checks",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings and errors")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
    )

    paths = DataPaths.from_root(args.data_root)
    try:
        result = run_from_paths(
            paths,
            reference_date=args.reference_date,
            max_workers=max(1, args.workers),
            write=not args.no_write,
        )
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if not args.no_qa and len(result.outputs) == len(GOLD_ORDER):
        qa = run_gold_qa(
            result.outputs[DIM_CUSTOMER],
            result.outputs[DIM_PRODUCT],
            result.outputs[FACT_SALES],
        )
        if not qa.passed:
            logger.warning("Gold QA found problems: %s", qa.summary)

    for name, report in {**result.silver, **result.gold}.items():
        if not report.ok:
            print(f"FAILED {name}: {report.error}", file=sys.stderr)
    print(f"Batch status: {result.status} ({format_duration(result.duration_seconds)})")
    return 0 if result.status == STATUS_OK else 1


if __name__ == "__main__":
    raise SystemExit(main())
