"""Marts (Gold) layer: sales fact.

The sales fact keeps the grain of the derived ``crm_sales_details`` table
(one row per order line) and resolves dimension surrogate keys by equality
lookup on business keys:

    sls_cust_id = dim_customer.customer_id  → customer_key
    sls_prd_key = dim_product.product_number → product_key

A sales row whose customer or product is not in the dimension is kept; its
surrogate key is absent (``<NA>`` in a nullable Int64 column) and its own
business keys stay on the row.
"""

from __future__ import annotations

import logging

import pandas as pd

from dwh_core.exceptions import DataQualityError
from dwh_core.marts.dimensions import require_columns

logger = logging.getLogger(__name__)

FACT_SALES_COLUMNS = [
    "order_number",
    "product_key",
    "customer_key",
    "product_number",
    "customer_id",
    "order_date",
    "ship_date",
    "due_date",
    "sales_amount",
    "quantity",
    "price",
]


def _as_integer_ids(ids: pd.Series) -> pd.Series:
    """Return ids as nullable Int64 when every present value is integral."""
    present = ids.dropna()
    if (present % 1 == 0).all():
        return ids.astype("Int64")
    return ids


def key_lookup(dim: pd.DataFrame, business_key: str, surrogate_key: str, name: str) -> dict:
    """Map business key -> surrogate key for one dimension.

    Raises:
        DataQualityError: If the business key is not unique in the dimension.
    """
    require_columns(dim, [business_key, surrogate_key], name)
    keys = dim.loc[dim[business_key].notna(), [business_key, surrogate_key]]
    dup = keys[business_key].duplicated(keep=False)
    if dup.any():
        raise DataQualityError(
            f"{name} is not unique on '{business_key}': {int(dup.sum())} rows share a business key"
        )
    return dict(zip(keys[business_key], keys[surrogate_key]))


def assemble_sales_fact(
    sales_rows: pd.DataFrame,
    dim_customer: pd.DataFrame,
    dim_product: pd.DataFrame,
) -> pd.DataFrame:
    """Build the sales fact from derived sales rows and the two dimensions.

    Args:
        sales_rows: Derived ``crm_sales_details``.
        dim_customer: Output of ``assemble_customer``.
        dim_product: Output of ``assemble_product``.

    Returns:
        DataFrame with ``FACT_SALES_COLUMNS``, one row per sales row, in input
        order. ``customer_key``/``product_key`` are nullable Int64.

    Raises:
        DataQualityError: If a required column is missing or a dimension is
            not unique on its business key.

    Examples:
        >>> sales = pd.DataFrame({
        ...     "sls_ord_num": ["SO1"], "sls_prd_key": ["BK-R93R-62"], "sls_cust_id": [11000.0],
        ...     "sls_order_dt": pd.to_datetime(["2010-12-29"]), "sls_ship_dt": pd.to_datetime(["2011-01-05"]),
        ...     "sls_due_dt": pd.to_datetime(["2011-01-10"]),
        ...     "sls_sales": [3578.0], "sls_quantity": [1.0], "sls_price": [3578.0],
        ... })
        >>> customers = pd.DataFrame({"customer_key": [1], "customer_id": [11000]})
        >>> products = pd.DataFrame({"product_key": [7], "product_number": ["OTHER"]})
        >>> fact = assemble_sales_fact(sales, customers, products)
        >>> fact[["customer_key", "product_key"]].values.tolist()
        [[1, <NA>]]
    """
    require_columns(
        sales_rows,
        [
            "sls_ord_num",
            "sls_prd_key",
            "sls_cust_id",
            "sls_order_dt",
            "sls_ship_dt",
            "sls_due_dt",
            "sls_sales",
            "sls_quantity",
            "sls_price",
        ],
        "crm_sales_details",
    )
    customers = key_lookup(dim_customer, "customer_id", "customer_key", "dim_customer")
    products = key_lookup(dim_product, "product_number", "product_key", "dim_product")

    # Compare customer ids as floats: the sales extract carries them as numbers
    # that may be null, the dimension as integers.
    customer_ids = pd.to_numeric(sales_rows["sls_cust_id"], errors="coerce").astype("float64")
    customers_by_float = {float(k): v for k, v in customers.items()}

    fact = pd.DataFrame({
        "order_number": sales_rows["sls_ord_num"],
        "product_key": sales_rows["sls_prd_key"].map(products).astype("Int64"),
        "customer_key": customer_ids.map(customers_by_float).astype("Int64"),
        "product_number": sales_rows["sls_prd_key"],
        "customer_id": _as_integer_ids(customer_ids),
        "order_date": pd.to_datetime(sales_rows["sls_order_dt"]),
        "ship_date": pd.to_datetime(sales_rows["sls_ship_dt"]),
        "due_date": pd.to_datetime(sales_rows["sls_due_dt"]),
        "sales_amount": sales_rows["sls_sales"],
        "quantity": sales_rows["sls_quantity"],
        "price": sales_rows["sls_price"],
    }).reset_index(drop=True)

    logger.debug(
        "fact_sales: %d rows, %d without customer_key, %d without product_key",
        len(fact),
        int(fact["customer_key"].isna().sum()),
        int(fact["product_key"].isna().sum()),
    )
    return fact[FACT_SALES_COLUMNS]
