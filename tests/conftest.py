"""Shared fixtures: a small raw snapshot of the six source tables.

Values are text, as they arrive from the CSV extracts. The snapshot contains
one duplicate customer, one customer without id, three versions of one
product and sales rows needing every kind of measure repair.
"""

from __future__ import annotations

import pandas as pd
import pytest

REFERENCE_DATE = "2025-10-17"


@pytest.fixture
def raw_tables() -> dict[str, list[dict]]:
    """Raw rows for all six source tables."""
    return {
        "crm_cust_info": [
            {
                "cst_id": "11000",
                "cst_key": "AW00011000",
                "cst_firstname": " Jon",
                "cst_lastname": "Yang ",
                "cst_marital_status": "M",
                "cst_gndr": "M",
                "cst_create_date": "2025-10-06",
            },
            {
                "cst_id": "11001",
                "cst_key": "AW00011001",
                "cst_firstname": "Eugene",
                "cst_lastname": "Huang",
                "cst_marital_status": "S",
                "cst_gndr": None,
                "cst_create_date": "2025-10-07",
            },
            {
                "cst_id": "11002",
                "cst_key": "AW00011002",
                "cst_firstname": "Ruben",
                "cst_lastname": "Torres",
                "cst_marital_status": "M",
                "cst_gndr": "M",
                "cst_create_date": "2025-10-06",
            },
            {
                "cst_id": "11002",
                "cst_key": "AW00011002",
                "cst_firstname": "Ruben",
                "cst_lastname": "Torress",
                "cst_marital_status": "S",
                "cst_gndr": "M",
                "cst_create_date": "2025-10-01",
            },
            {
                "cst_id": None,
                "cst_key": "AW00011003",
                "cst_firstname": "Christy",
                "cst_lastname": "Zhu",
                "cst_marital_status": "S",
                "cst_gndr": "F",
                "cst_create_date": "2025-10-08",
            },
        ],
        "crm_prd_info": [
            {
                "prd_id": "210",
                "prd_key": "CO-RF-FR-R92B-58",
                "prd_nm": "HL Road Frame - Black- 58",
                "prd_cost": None,
                "prd_line": "R",
                "prd_start_dt": "2003-07-01",
                "prd_end_dt": None,
            },
            {
                "prd_id": "213",
                "prd_key": "AC-HE-HL-U509-R",
                "prd_nm": "Sport-100 Helmet- Red",
                "prd_cost": "14",
                "prd_line": "S",
                "prd_start_dt": "2012-07-01",
                "prd_end_dt": None,
            },
            {
                "prd_id": "212",
                "prd_key": "AC-HE-HL-U509-R",
                "prd_nm": "Sport-100 Helmet- Red",
                "prd_cost": "12",
                "prd_line": "S",
                "prd_start_dt": "2011-07-01",
                "prd_end_dt": "2011-12-28",
            },
            {
                "prd_id": "214",
                "prd_key": "AC-HE-HL-U509-R",
                "prd_nm": "Sport-100 Helmet- Red",
                "prd_cost": "13",
                "prd_line": "S",
                "prd_start_dt": "2013-07-01",
                "prd_end_dt": None,
            },
        ],
        "crm_sales_details": [
            {
                "sls_ord_num": "SO43697",
                "sls_prd_key": "FR-R92B-58",
                "sls_cust_id": "11000",
                "sls_order_dt": "20101229",
                "sls_ship_dt": "20110105",
                "sls_due_dt": "20110110",
                "sls_sales": "3578",
                "sls_quantity": "1",
                "sls_price": "3578",
            },
            {
                "sls_ord_num": "SO43698",
                "sls_prd_key": "HL-U509-R",
                "sls_cust_id": "11001",
                "sls_order_dt": "20101229",
                "sls_ship_dt": "20110105",
                "sls_due_dt": "20110110",
                "sls_sales": None,
                "sls_quantity": "2",
                "sls_price": "13",
            },
            {
                "sls_ord_num": "SO43699",
                "sls_prd_key": "HL-U509-R",
                "sls_cust_id": "11002",
                "sls_order_dt": "0",
                "sls_ship_dt": "20110105",
                "sls_due_dt": "20110110",
                "sls_sales": "26",
                "sls_quantity": "2",
                "sls_price": "-13",
            },
            {
                "sls_ord_num": "SO43700",
                "sls_prd_key": "HL-U509-R",
                "sls_cust_id": "99999",
                "sls_order_dt": "20101229",
                "sls_ship_dt": "20110105",
                "sls_due_dt": "20110110",
                "sls_sales": "0",
                "sls_quantity": "2",
                "sls_price": "0",
            },
        ],
        "erp_cust_az12": [
            {"cid": "NASAW00011000", "bdate": "1971-10-06", "gen": "Male"},
            {"cid": "AW00011001", "bdate": "1976-05-10", "gen": "F"},
            {"cid": "NASAW00011002", "bdate": "2099-01-01", "gen": " "},
        ],
        "erp_loc_a101": [
            {"cid": "AW-00011000", "cntry": "Australia"},
            {"cid": "AW-00011001", "cntry": "US"},
            {"cid": "AW-00011002", "cntry": "DE"},
        ],
        "erp_px_cat_g1v2": [
            {"id": "AC_HE", "cat": "Accessories", "subcat": "Helmets", "maintenance": "Yes"},
            {"id": "CO_RF", "cat": "Components", "subcat": "Road Frames", "maintenance": "No"},
        ],
    }


@pytest.fixture
def raw_frames(raw_tables: dict[str, list[dict]]) -> dict[str, pd.DataFrame]:
    """The same snapshot as DataFrames of text values."""
    return {table_id: pd.DataFrame.from_records(rows) for table_id, rows in raw_tables.items()}
