"""Tests for the sales fact (dwh_core.marts.facts)."""

import numpy as np
import pandas as pd
import pytest

from dwh_core.exceptions import DataQualityError
from dwh_core.marts import FACT_SALES_COLUMNS, assemble_sales_fact


@pytest.fixture
def sales_rows() -> pd.DataFrame:
    """Derived crm_sales_details rows."""
    return pd.DataFrame({
        "sls_ord_num": ["SO43697", "SO43698", "SO43699"],
        "sls_prd_key": ["FR-R92B-58", "HL-U509-R", "UNKNOWN-1"],
        "sls_cust_id": [11000.0, 99999.0, np.nan],
        "sls_order_dt": pd.to_datetime(["2010-12-29", "2010-12-29", None]),
        "sls_ship_dt": pd.to_datetime(["2011-01-05", "2011-01-05", "2011-01-05"]),
        "sls_due_dt": pd.to_datetime(["2011-01-10", "2011-01-10", "2011-01-10"]),
        "sls_sales": [3578.0, 26.0, 0.0],
        "sls_quantity": [1.0, 2.0, 2.0],
        "sls_price": [3578.0, 13.0, np.nan],
    })


@pytest.fixture
def dim_customer() -> pd.DataFrame:
    return pd.DataFrame({"customer_key": [1, 2], "customer_id": [11001, 11000]})


@pytest.fixture
def dim_product() -> pd.DataFrame:
    return pd.DataFrame({"product_key": [1, 2], "product_number": ["FR-R92B-58", "HL-U509-R"]})


def test_fact_keeps_every_sales_row(sales_rows, dim_customer, dim_product) -> None:
    fact = assemble_sales_fact(sales_rows, dim_customer, dim_product)

    assert list(fact.columns) == FACT_SALES_COLUMNS
    assert fact["order_number"].tolist() == ["SO43697", "SO43698", "SO43699"]


def test_surrogate_keys_resolved_by_business_key(sales_rows, dim_customer, dim_product) -> None:
    fact = assemble_sales_fact(sales_rows, dim_customer, dim_product)

    assert fact.loc[0, "customer_key"] == 2
    assert fact.loc[0, "product_key"] == 1
    assert fact.loc[1, "product_key"] == 2


def test_unmatched_keys_are_absent_not_dropped(sales_rows, dim_customer, dim_product) -> None:
    fact = assemble_sales_fact(sales_rows, dim_customer, dim_product)

    assert str(fact["customer_key"].dtype) == "Int64"
    assert str(fact["product_key"].dtype) == "Int64"
    assert fact["customer_key"].isna().tolist() == [False, True, True]
    assert fact["product_key"].isna().tolist() == [False, False, True]
    # Business keys stay on the row
    assert fact.loc[1, "customer_id"] == 99999
    assert fact.loc[2, "product_number"] == "UNKNOWN-1"


def test_measures_and_dates_carried_over(sales_rows, dim_customer, dim_product) -> None:
    fact = assemble_sales_fact(sales_rows, dim_customer, dim_product)

    assert fact.loc[0, "order_date"] == pd.Timestamp("2010-12-29")
    assert pd.isna(fact.loc[2, "order_date"])
    assert fact["sales_amount"].tolist() == [3578.0, 26.0, 0.0]
    assert np.isnan(fact.loc[2, "price"])


def test_non_unique_dimension_is_rejected(sales_rows, dim_customer, dim_product) -> None:
    bad = pd.DataFrame({"product_key": [1, 2], "product_number": ["HL-U509-R", "HL-U509-R"]})

    with pytest.raises(DataQualityError, match="dim_product"):
        assemble_sales_fact(sales_rows, dim_customer, bad)


def test_empty_dimensions(sales_rows) -> None:
    empty_customers = pd.DataFrame({"customer_key": pd.Series([], dtype="int64"), "customer_id": pd.Series([], dtype="int64")})
    empty_products = pd.DataFrame({"product_key": pd.Series([], dtype="int64"), "product_number": pd.Series([], dtype=object)})

    fact = assemble_sales_fact(sales_rows, empty_customers, empty_products)

    assert len(fact) == 3
    assert fact["customer_key"].isna().all()
    assert fact["product_key"].isna().all()
