"""Persistence of silver and gold tables.

Every run is a full refresh: each table's CSV is truncated and rewritten in
full. Dates are written as ISO YYYY-MM-DD, missing values as empty fields.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

import pandas as pd

from dwh_core.utils import date_columns

logger = logging.getLogger(__name__)


def table_path(directory: Path, name: str) -> Path:
    return directory / f"{name}.csv"


def write_table(df: pd.DataFrame, directory: Path, name: str) -> Path:
    """Replace ``<directory>/<name>.csv`` with the contents of ``df``."""
    directory.mkdir(parents=True, exist_ok=True)
    out_path = table_path(directory, name)

    out = df.copy()
    for col in date_columns(out):
        out[col] = out[col].dt.strftime("%Y-%m-%d")

    out.to_csv(out_path, index=False, encoding="utf-8")
    logger.debug("Wrote %s (%d rows)", out_path, len(out))
    return out_path


def write_tables(frames: Mapping[str, pd.DataFrame], directory: Path) -> list[Path]:
    """Write one CSV per table, replacing previous outputs.

    Args:
        frames: Table name -> DataFrame.
        directory: Output directory (created if missing).

    Returns:
        Paths of the written files, in the order of ``frames``.
    """
    return [write_table(df, directory, name) for name, df in frames.items()]


def read_table(directory: Path, name: str) -> pd.DataFrame:
    """Read a table written by ``write_table`` back (dates stay ISO strings).

    Raises:
        FileNotFoundError: If the table has not been written.
    """
    out_path = table_path(directory, name)
    if not out_path.exists():
        raise FileNotFoundError(f"Table {name} not found at {out_path}. Run the pipeline first.")
    return pd.read_csv(out_path, encoding="utf-8")
