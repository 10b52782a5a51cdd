"""Marts (Gold) layer: conformed customer and product dimensions.

This module is part of the Marts (Gold) layer. It combines derived Silver
tables from both source systems into dimension tables keyed by dense
surrogate keys.

Data flow:
    crm_cust_info + erp_cust_az12 + erp_loc_a101 → dim_customer
    crm_prd_info (current versions) + erp_px_cat_g1v2 → dim_product

Joins are left joins from the CRM (primary) side: every primary row survives
and no primary row is ever duplicated. Secondary tables must therefore be
unique on their join key, which is checked before joining.

Conflicting attributes are resolved by ``CUSTOMER_PRECEDENCE``: a list of
(output column, primary column, fallback column) rules applied in order.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from dwh_core.exceptions import DataQualityError
from dwh_core.staging.cleaning_utils import NOT_APPLICABLE

logger = logging.getLogger(__name__)

# (output column, primary source column, fallback source column)
CUSTOMER_PRECEDENCE: list[tuple[str, str, str]] = [
    ("gender", "cst_gndr", "gen"),
]

DIM_CUSTOMER_COLUMNS = [
    "customer_key",
    "customer_id",
    "customer_number",
    "first_name",
    "last_name",
    "country",
    "marital_status",
    "gender",
    "birthdate",
    "create_date",
]

DIM_PRODUCT_COLUMNS = [
    "product_key",
    "product_id",
    "product_number",
    "product_name",
    "category_id",
    "category",
    "subcategory",
    "maintenance",
    "cost",
    "product_line",
    "start_date",
]


# ---------- helpers ----------


def require_columns(df: pd.DataFrame, columns: Iterable[str], name: str) -> None:
    """Raise DataQualityError if ``df`` lacks any of ``columns``."""
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataQualityError(f"{name} is missing required column(s) {missing}. Available: {list(df.columns)}")


def secondary_lookup(
    df: pd.DataFrame,
    key: str,
    columns: Sequence[str],
    name: str,
) -> pd.DataFrame:
    """Prepare a secondary source for a left join on ``key``.

    Rows with a null key are ignored (a null never matches anything). The
    remaining keys must be unique.

    Raises:
        DataQualityError: If columns are missing or the key is not unique.
    """
    require_columns(df, [key, *columns], name)
    lookup = df.loc[df[key].notna(), [key, *columns]]
    dup = lookup[key].duplicated(keep=False)
    if dup.any():
        sample = sorted(lookup.loc[dup, key].astype(str).unique())[:5]
        raise DataQualityError(
            f"{name} is not unique on join key '{key}': {int(dup.sum())} rows share a key (e.g. {sample})"
        )
    return lookup


def apply_precedence(
    df: pd.DataFrame,
    rules: Sequence[tuple[str, str, str]],
) -> pd.DataFrame:
    """Resolve attributes present in more than one source.

    For each (target, primary, fallback) rule the primary value wins unless it
    is missing or "n/a"; then the fallback wins under the same condition;
    otherwise the result is "n/a".

    Examples:
        >>> df = pd.DataFrame({"cst_gndr": ["n/a", "Male", "n/a"], "gen": ["Female", "Female", None]})
        >>> apply_precedence(df, CUSTOMER_PRECEDENCE)["gender"].tolist()
        ['Female', 'Male', 'n/a']
    """
    out = df.copy()
    for target, primary, fallback in rules:
        p = out[primary]
        f = out[fallback]
        f_resolved = f.where(f.notna() & (f != NOT_APPLICABLE), NOT_APPLICABLE)
        out[target] = p.where(p.notna() & (p != NOT_APPLICABLE), f_resolved).astype(object)
    return out


def assign_surrogate_keys(
    df: pd.DataFrame,
    order_by: Sequence[str],
    key_col: str,
) -> pd.DataFrame:
    """Number rows 1..n in ``order_by`` order and return them sorted by that key.

    Ordering is ascending with missing values last and a stable sort, so a
    given input snapshot always yields the same keys.

    Examples:
        >>> df = pd.DataFrame({"id": [20, 10]})
        >>> assign_surrogate_keys(df, ["id"], "sk")[["sk", "id"]].values.tolist()
        [[1, 10], [2, 20]]
    """
    ordered = df.sort_values(list(order_by), na_position="last", kind="mergesort")
    ordered = ordered.reset_index(drop=True)
    ordered.insert(0, key_col, np.arange(1, len(ordered) + 1, dtype="int64"))
    return ordered


# ---------- dimensions ----------


def assemble_customer(
    crm_rows: pd.DataFrame,
    erp_demographic_rows: pd.DataFrame,
    erp_location_rows: pd.DataFrame,
) -> pd.DataFrame:
    """Build the conformed customer dimension.

    Args:
        crm_rows: Derived ``crm_cust_info`` (primary source).
        erp_demographic_rows: Derived ``erp_cust_az12`` (birthdate, gender).
        erp_location_rows: Derived ``erp_loc_a101`` (country).

    Returns:
        DataFrame with ``DIM_CUSTOMER_COLUMNS``, one row per CRM customer,
        ``customer_key`` dense from 1 ordered by (create_date, customer_id).

    Raises:
        DataQualityError: If a required column is missing or an ERP table is
            not unique on ``cid``.
    """
    require_columns(
        crm_rows,
        ["cst_id", "cst_key", "cst_firstname", "cst_lastname", "cst_marital_status", "cst_gndr", "cst_create_date"],
        "crm_cust_info",
    )
    demographics = secondary_lookup(erp_demographic_rows, "cid", ["bdate", "gen"], "erp_cust_az12")
    locations = secondary_lookup(erp_location_rows, "cid", ["cntry"], "erp_loc_a101")

    merged = crm_rows.merge(
        demographics, how="left", left_on="cst_key", right_on="cid", validate="m:1"
    ).drop(columns="cid")
    merged = merged.merge(
        locations, how="left", left_on="cst_key", right_on="cid", validate="m:1"
    ).drop(columns="cid")
    merged = apply_precedence(merged, CUSTOMER_PRECEDENCE)

    matched = int(merged["cntry"].notna().sum())
    logger.debug("dim_customer: %d of %d customers matched a location", matched, len(merged))

    dim = pd.DataFrame({
        "customer_id": merged["cst_id"],
        "customer_number": merged["cst_key"],
        "first_name": merged["cst_firstname"],
        "last_name": merged["cst_lastname"],
        "country": merged["cntry"].fillna(NOT_APPLICABLE).astype(object),
        "marital_status": merged["cst_marital_status"],
        "gender": merged["gender"],
        "birthdate": pd.to_datetime(merged["bdate"]),
        "create_date": pd.to_datetime(merged["cst_create_date"]),
    })
    dim = assign_surrogate_keys(dim, ["create_date", "customer_id"], "customer_key")
    return dim[DIM_CUSTOMER_COLUMNS]


def assemble_product(
    crm_rows: pd.DataFrame,
    erp_category_rows: pd.DataFrame,
) -> pd.DataFrame:
    """Build the conformed product dimension from current product versions.

    Versions with an end date are historical and excluded; only the open
    version of each product is kept.

    Args:
        crm_rows: Derived ``crm_prd_info`` (with ``cat_id`` and ``prd_end_dt``).
        erp_category_rows: Derived ``erp_px_cat_g1v2``.

    Returns:
        DataFrame with ``DIM_PRODUCT_COLUMNS``, ``product_key`` dense from 1
        ordered by (start_date, product_number, product_id).

    Raises:
        DataQualityError: If a required column is missing or the category
            table is not unique on ``id``.
    """
    require_columns(
        crm_rows,
        ["prd_id", "cat_id", "prd_key", "prd_nm", "prd_cost", "prd_line", "prd_start_dt", "prd_end_dt"],
        "crm_prd_info",
    )
    categories = secondary_lookup(erp_category_rows, "id", ["cat", "subcat", "maintenance"], "erp_px_cat_g1v2")

    current = crm_rows.loc[crm_rows["prd_end_dt"].isna()]
    logger.debug("dim_product: %d of %d product versions are current", len(current), len(crm_rows))

    merged = current.merge(categories, how="left", left_on="cat_id", right_on="id", validate="m:1")

    dim = pd.DataFrame({
        "product_id": merged["prd_id"],
        "product_number": merged["prd_key"],
        "product_name": merged["prd_nm"],
        "category_id": merged["cat_id"],
        "category": merged["cat"].fillna(NOT_APPLICABLE).astype(object),
        "subcategory": merged["subcat"].fillna(NOT_APPLICABLE).astype(object),
        "maintenance": merged["maintenance"].fillna(NOT_APPLICABLE).astype(object),
        "cost": merged["prd_cost"],
        "product_line": merged["prd_line"],
        "start_date": pd.to_datetime(merged["prd_start_dt"]),
    })
    dim = assign_surrogate_keys(dim, ["start_date", "product_number", "product_id"], "product_key")
    return dim[DIM_PRODUCT_COLUMNS]
