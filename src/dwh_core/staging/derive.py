"""Staging (Silver) layer: business-rule derivation on cleansed tables.

Second half of the Silver layer. Each rule is a pure function of a row's own
fields, except product lifecycle end-dating which needs every version of a
product at once.

Rules by table:
- crm_prd_info: split the composite product key into category id and product
  key; end-date each product version one day before the next version starts.
  Undated versions sort first; when every version is undated only the one
  with the highest id is kept.
- crm_sales_details: decode YYYYMMDD order/ship/due dates; reconcile sales
  amount and unit price so that amount == quantity * |price|.

Tables without rules pass through unchanged (as a copy).
"""

from __future__ import annotations

import logging
from typing import Callable

import pandas as pd

from dwh_core.exceptions import MalformedKeyError, StageFailure
from dwh_core.staging.cleaning_utils import parse_int_date, split_product_key
from dwh_core.staging.types import StageResult, count_into
from dwh_core.tables import CRM_PRD_INFO, CRM_SALES_DETAILS, get_table

logger = logging.getLogger(__name__)

SALES_DATE_COLUMNS = ["sls_order_dt", "sls_ship_dt", "sls_due_dt"]

PRODUCT_COLUMNS = [
    "prd_id",
    "cat_id",
    "prd_key",
    "prd_nm",
    "prd_cost",
    "prd_line",
    "prd_start_dt",
    "prd_end_dt",
]


def derive_end_dates(
    df: pd.DataFrame,
    group_cols: list[str],
    start_col: str,
    tiebreak_col: str,
    end_col: str,
) -> pd.DataFrame:
    """Set each version's end date to the day before the next version starts.

    Within each group, rows are ordered by start date ascending (ties by
    ``tiebreak_col``, missing start dates first). A version ends the day
    before the next dated version starts; the last version of every group
    stays open (NaT). Rows come back in their input order.

    A group whose versions are all undated has no date to close them with, so
    every version of it is left open.

    Args:
        df: Rows with non-null group columns.
        group_cols: Columns identifying one entity.
        start_col: Validity start (datetime64).
        tiebreak_col: Deterministic tie breaker for equal start dates.
        end_col: Name of the derived end-date column.

    Returns:
        Copy of ``df`` with ``end_col`` set.

    Examples:
        >>> df = pd.DataFrame({
        ...     "k": ["A", "A"], "id": [1, 2],
        ...     "start": pd.to_datetime(["2011-07-01", "2012-07-01"]),
        ... })
        >>> derive_end_dates(df, ["k"], "start", "id", "end")["end"].tolist()
        [Timestamp('2012-06-30 00:00:00'), NaT]
    """
    ordered = df.sort_values([*group_cols, start_col, tiebreak_col], na_position="first")
    next_start = ordered.groupby(group_cols, sort=False)[start_col].shift(-1)
    # skip undated versions in between
    next_start = next_start.groupby([ordered[c] for c in group_cols], sort=False).bfill()
    ordered[end_col] = next_start - pd.Timedelta(days=1)
    return ordered.sort_index()


def reconcile_sales(
    df: pd.DataFrame,
    repaired: dict[str, int],
) -> pd.DataFrame:
    """Repair sales amount and unit price row by row.

    - Amount missing, non-positive, or different from quantity * |price|
      (when that product is computable) -> amount := quantity * |price|.
    - Price missing or non-positive -> price := amount / quantity, but only
      when quantity is non-zero and the reconciled amount is positive;
      otherwise "no price" (NaN). Never divides by zero.

    Args:
        df: Cleansed sales rows (float measures).
        repaired: Repair counter updated in place.

    Returns:
        Copy of ``df`` with reconciled ``sls_sales`` and ``sls_price``.
    """
    out = df.copy()
    quantity = out["sls_quantity"]
    price = out["sls_price"]
    amount = out["sls_sales"]

    expected = quantity * price.abs()
    bad_amount = amount.isna() | (amount <= 0) | (expected.notna() & (amount != expected))
    amount = amount.where(~bad_amount, expected)

    bad_price = price.isna() | (price <= 0)
    implied_price = (amount / quantity.where(quantity != 0)).where(amount > 0)
    price = price.where(~bad_price, implied_price)

    count_into(repaired, "sls_sales_recomputed", bad_amount)
    count_into(repaired, "sls_price_recomputed", bad_price & price.notna())
    count_into(repaired, "sls_price_unresolved", bad_price & price.isna())

    out["sls_sales"] = amount
    out["sls_price"] = price
    return out


def _derive_crm_prd_info(df: pd.DataFrame, dropped: dict[str, int], repaired: dict[str, int]) -> pd.DataFrame:
    cat_ids: list[str | None] = []
    prd_keys: list[str | None] = []
    for raw_key in df["prd_key"]:
        try:
            cat_id, prd_key = split_product_key(raw_key)
        except MalformedKeyError as e:
            logger.debug("Dropping product row: %s", e)
            cat_id, prd_key = None, None
        cat_ids.append(cat_id)
        prd_keys.append(prd_key)

    out = df.assign(cat_id=cat_ids, prd_key=prd_keys)
    malformed = out["cat_id"].isna()
    count_into(dropped, "malformed_key", malformed)
    out = out.loc[~malformed].copy()

    out = derive_end_dates(out, ["cat_id", "prd_key"], "prd_start_dt", "prd_id", "prd_end_dt")

    # Only the newest of several undated versions stays open
    newest = out.groupby(["cat_id", "prd_key"])["prd_id"].transform("max")
    superseded = out["prd_start_dt"].isna() & out["prd_end_dt"].isna() & (out["prd_id"] != newest)
    count_into(dropped, "undated_version", superseded)
    out = out.loc[~superseded]
    return out[PRODUCT_COLUMNS].reset_index(drop=True)


def _derive_crm_sales_details(df: pd.DataFrame, dropped: dict[str, int], repaired: dict[str, int]) -> pd.DataFrame:
    out = df.copy()
    for col in SALES_DATE_COLUMNS:
        parsed = pd.to_datetime(out[col].map(parse_int_date), errors="coerce")
        count_into(repaired, f"{col}_invalid", out[col].notna() & parsed.isna())
        out[col] = parsed
    return reconcile_sales(out, repaired)


_DERIVATIONS: dict[str, Callable[[pd.DataFrame, dict[str, int], dict[str, int]], pd.DataFrame]] = {
    CRM_PRD_INFO: _derive_crm_prd_info,
    CRM_SALES_DETAILS: _derive_crm_sales_details,
}


def derive(table_id: str, cleansed_records: pd.DataFrame) -> StageResult:
    """Apply the table's business rules to its cleansed rows.

    Args:
        table_id: Source table id.
        cleansed_records: Output of ``cleanse`` for that table. Not modified.

    Returns:
        StageResult with derived rows. Rows whose required fields cannot be
        resolved (malformed product keys) are dropped and counted.

    Raises:
        ConfigError: If the table id is unknown.
        StageFailure: If the cleansed frame lacks columns the rules need.
    """
    get_table(table_id)
    rows_in = len(cleansed_records)
    dropped: dict[str, int] = {}
    repaired: dict[str, int] = {}

    rule = _DERIVATIONS.get(table_id)
    try:
        records = rule(cleansed_records, dropped, repaired) if rule else cleansed_records.copy()
    except (KeyError, TypeError, ValueError) as e:
        raise StageFailure(table_id, f"derivation failed: {e}") from e

    logger.debug(
        "Derived %s: %d -> %d rows (dropped=%s, repaired=%s)",
        table_id,
        rows_in,
        len(records),
        dropped,
        repaired,
    )
    return StageResult(
        table_id=table_id,
        stage="derive",
        records=records,
        rows_in=rows_in,
        dropped=dropped,
        repaired=repaired,
    )
