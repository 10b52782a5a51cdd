"""Quality checks for the gold star schema.

This module runs in-memory checks on the assembled dimensions and fact:

- surrogate keys unique and dense from 1 in each dimension
- business keys unique in each dimension
- fact rows whose customer or product could not be resolved (counted, not
  errors: the fact keeps them with an absent surrogate key)
- fact rows breaking ``sales_amount == quantity * |price|``

It does not read or write files and does not print (logging only).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from dwh_core.exceptions import DataQualityError
from dwh_core.marts import DIM_CUSTOMER_COLUMNS, DIM_PRODUCT_COLUMNS, FACT_SALES_COLUMNS

logger = logging.getLogger(__name__)

# (dimension name, surrogate key, business key)
DIMENSION_KEYS = [
    ("dim_customer", "customer_key", "customer_id"),
    ("dim_product", "product_key", "product_number"),
]


@dataclass
class GoldQAResult:
    """Result of the gold-layer QA checks.

    Attributes:
        summary: Dictionary with counts and flags.
        key_errors: One row per dimension key problem (dimension, column,
            problem), or None if none found.
        unresolved_facts: Fact rows missing customer_key or product_key, or
            None if none found.
        reconciliation_violations: Fact rows where the amount does not equal
            quantity * |price|, or None if none found.
    """

    summary: dict
    key_errors: pd.DataFrame | None
    unresolved_facts: pd.DataFrame | None
    reconciliation_violations: pd.DataFrame | None

    @property
    def passed(self) -> bool:
        """True when no key errors or reconciliation violations were found."""
        return self.key_errors is None and self.reconciliation_violations is None


def _require(df: pd.DataFrame, columns: list[str], name: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataQualityError(f"Missing required columns in {name}: {missing}. Required: {columns}")


def check_dimension_keys(dim: pd.DataFrame, name: str, surrogate_key: str, business_key: str) -> list[dict]:
    """Return one record per key problem found in a dimension."""
    problems: list[dict] = []
    keys = dim[surrogate_key]
    if keys.isna().any():
        problems.append({"dimension": name, "column": surrogate_key, "problem": "null surrogate key"})
    if keys.duplicated().any():
        problems.append({"dimension": name, "column": surrogate_key, "problem": "duplicate surrogate key"})
    expected = np.arange(1, len(dim) + 1)
    if not np.array_equal(np.sort(keys.dropna().to_numpy(dtype="int64")), expected):
        problems.append({"dimension": name, "column": surrogate_key, "problem": "surrogate keys not dense from 1"})
    business = dim[business_key].dropna()
    if business.duplicated().any():
        problems.append({"dimension": name, "column": business_key, "problem": "duplicate business key"})
    return problems


def find_reconciliation_violations(fact: pd.DataFrame, tolerance: float = 1e-6) -> pd.DataFrame:
    """Fact rows with amount, quantity and a non-zero price where amount != quantity * |price|."""
    amount = fact["sales_amount"]
    expected = fact["quantity"] * fact["price"].abs()
    comparable = amount.notna() & expected.notna() & (fact["price"] != 0)
    bad = comparable & ((amount - expected).abs() > tolerance)
    return fact.loc[bad]


def run_gold_qa(
    dim_customer: pd.DataFrame,
    dim_product: pd.DataFrame,
    fact_sales: pd.DataFrame,
) -> GoldQAResult:
    """Run the gold-layer checks in memory.

    Args:
        dim_customer: Customer dimension (``DIM_CUSTOMER_COLUMNS``).
        dim_product: Product dimension (``DIM_PRODUCT_COLUMNS``).
        fact_sales: Sales fact (``FACT_SALES_COLUMNS``).

    Returns:
        GoldQAResult with a summary and the offending rows of each check.

    Raises:
        DataQualityError: If required columns are missing.
    """
    _require(dim_customer, DIM_CUSTOMER_COLUMNS, "dim_customer")
    _require(dim_product, DIM_PRODUCT_COLUMNS, "dim_product")
    _require(fact_sales, FACT_SALES_COLUMNS, "fact_sales")

    logger.info(
        "Running gold QA on %d customers, %d products, %d sales rows",
        len(dim_customer),
        len(dim_product),
        len(fact_sales),
    )

    dims = {"dim_customer": dim_customer, "dim_product": dim_product}
    problems: list[dict] = []
    for name, surrogate_key, business_key in DIMENSION_KEYS:
        problems.extend(check_dimension_keys(dims[name], name, surrogate_key, business_key))
    key_errors_df: pd.DataFrame | None = pd.DataFrame(problems) if problems else None

    unresolved_mask = fact_sales["customer_key"].isna() | fact_sales["product_key"].isna()
    unresolved_df: pd.DataFrame | None = fact_sales.loc[unresolved_mask] if unresolved_mask.any() else None

    violations = find_reconciliation_violations(fact_sales)
    violations_df: pd.DataFrame | None = violations if not violations.empty else None

    summary = {
        "customers": len(dim_customer),
        "products": len(dim_product),
        "sales_rows": len(fact_sales),
        "key_errors_count": len(problems),
        "missing_customer_key_count": int(fact_sales["customer_key"].isna().sum()),
        "missing_product_key_count": int(fact_sales["product_key"].isna().sum()),
        "missing_price_count": int(fact_sales["price"].isna().sum()),
        "reconciliation_violations_count": len(violations),
        "min_order_date": fact_sales["order_date"].min().isoformat()
        if fact_sales["order_date"].notna().any()
        else None,
        "max_order_date": fact_sales["order_date"].max().isoformat()
        if fact_sales["order_date"].notna().any()
        else None,
    }

    logger.info(
        "Gold QA complete: %d key errors, %d unresolved fact rows, %d reconciliation violations",
        summary["key_errors_count"],
        int(unresolved_mask.sum()),
        summary["reconciliation_violations_count"],
    )

    return GoldQAResult(
        summary=summary,
        key_errors=key_errors_df,
        unresolved_facts=unresolved_df,
        reconciliation_violations=violations_df,
    )
