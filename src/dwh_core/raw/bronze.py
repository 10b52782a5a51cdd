"""Raw (Bronze) layer: read the source system CSV extracts.

Each source table is bulk-loaded from one CSV file:

    datasets/source_crm/cust_info.csv      → crm_cust_info
    datasets/source_crm/prd_info.csv       → crm_prd_info
    datasets/source_crm/sales_details.csv  → crm_sales_details
    datasets/source_erp/cust_az12.csv      → erp_cust_az12
    datasets/source_erp/loc_a101.csv       → erp_loc_a101
    datasets/source_erp/px_cat_g1v2.csv    → erp_px_cat_g1v2

Values are read as text exactly as extracted (blank fields become null).
All typing happens in the Silver layer.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from dwh_core.config import DataPaths
from dwh_core.staging.cleaning_utils import to_snake
from dwh_core.tables import TABLE_ORDER, TableSpec, get_table

logger = logging.getLogger(__name__)


def source_path(paths: DataPaths, spec: TableSpec) -> Path:
    """Location of a table's extract file."""
    source_dir = paths.source_crm if spec.source == "crm" else paths.source_erp
    return source_dir / spec.file_name


def read_extract(csv_path: Path) -> pd.DataFrame:
    """Read one extract CSV with every value as text and snake_case headers.

    Only empty fields are null; literal values such as "NA" or "n/a" are kept.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    df = pd.read_csv(csv_path, dtype=str, encoding="utf-8-sig", keep_default_na=False, na_values=[""])
    df.columns = [to_snake(c) for c in df.columns]
    return df


def load_bronze(
    paths: DataPaths,
    tables: list[str] | None = None,
) -> dict[str, pd.DataFrame]:
    """Load the raw extracts of the requested tables.

    Missing files are logged and skipped, so the pipeline reports those
    tables as failed instead of aborting the batch.

    Args:
        paths: DataPaths configuration.
        tables: Table ids to load (default: all six).

    Returns:
        Dictionary mapping table id to raw DataFrame, for the files found.

    Raises:
        ConfigError: If a table id is unknown.

    Examples:
        >>> from dwh_core import DataPaths
        >>> raw = load_bronze(DataPaths.from_root("data"))
        >>> sorted(raw)
        ['crm_cust_info', 'crm_prd_info', 'crm_sales_details', 'erp_cust_az12', 'erp_loc_a101', 'erp_px_cat_g1v2']
    """
    raw: dict[str, pd.DataFrame] = {}
    for table_id in tables or TABLE_ORDER:
        spec = get_table(table_id)
        csv_path = source_path(paths, spec)
        if not csv_path.exists():
            logger.warning("Extract for %s not found: %s", table_id, csv_path)
            continue
        raw[table_id] = read_extract(csv_path)
        logger.info("Loaded %s: %d rows from %s", table_id, len(raw[table_id]), csv_path.name)
    return raw
