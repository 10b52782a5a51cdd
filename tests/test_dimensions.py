"""Tests for dimension assembly (dwh_core.marts.dimensions)."""

import pandas as pd
import pytest

from dwh_core.exceptions import DataQualityError
from dwh_core.marts import (
    DIM_CUSTOMER_COLUMNS,
    DIM_PRODUCT_COLUMNS,
    apply_precedence,
    assemble_customer,
    assemble_product,
    assign_surrogate_keys,
)
from dwh_core.staging import cleanse, derive


@pytest.fixture
def crm_customers() -> pd.DataFrame:
    """Derived crm_cust_info rows."""
    return pd.DataFrame({
        "cst_id": [11002, 11000, 11001],
        "cst_key": ["AW00011002", "AW00011000", "AW00011001"],
        "cst_firstname": ["Ruben", "Jon", "Eugene"],
        "cst_lastname": ["Torres", "Yang", "Huang"],
        "cst_marital_status": ["Married", "Married", "Single"],
        "cst_gndr": ["Male", "n/a", "n/a"],
        "cst_create_date": pd.to_datetime(["2025-10-06", "2025-10-06", None]),
    })


@pytest.fixture
def erp_demographics() -> pd.DataFrame:
    return pd.DataFrame({
        "cid": ["AW00011000", "AW00011002"],
        "bdate": pd.to_datetime(["1971-10-06", "1976-05-10"]),
        "gen": ["Female", "Female"],
    })


@pytest.fixture
def erp_locations() -> pd.DataFrame:
    return pd.DataFrame({"cid": ["AW00011000", "AW00011001"], "cntry": ["Australia", "United States"]})


class TestCustomerDimension:
    def test_schema_and_grain(self, crm_customers, erp_demographics, erp_locations) -> None:
        dim = assemble_customer(crm_customers, erp_demographics, erp_locations)

        assert list(dim.columns) == DIM_CUSTOMER_COLUMNS
        assert len(dim) == len(crm_customers)
        assert sorted(dim["customer_id"]) == [11000, 11001, 11002]

    def test_surrogate_keys_follow_create_date_then_id(self, crm_customers, erp_demographics, erp_locations) -> None:
        dim = assemble_customer(crm_customers, erp_demographics, erp_locations)

        keys = dict(zip(dim["customer_id"], dim["customer_key"]))
        # Undated customer 11001 sorts last
        assert keys == {11000: 1, 11002: 2, 11001: 3}

    def test_gender_precedence(self, crm_customers, erp_demographics, erp_locations) -> None:
        dim = assemble_customer(crm_customers, erp_demographics, erp_locations).set_index("customer_id")

        assert dim.loc[11002, "gender"] == "Male"  # CRM wins over ERP
        assert dim.loc[11000, "gender"] == "Female"  # CRM n/a, ERP fallback
        assert dim.loc[11001, "gender"] == "n/a"  # neither source knows

    def test_unmatched_secondary_fields(self, crm_customers, erp_demographics, erp_locations) -> None:
        dim = assemble_customer(crm_customers, erp_demographics, erp_locations).set_index("customer_id")

        assert dim.loc[11002, "country"] == "n/a"
        assert pd.isna(dim.loc[11001, "birthdate"])
        assert dim.loc[11000, "birthdate"] == pd.Timestamp("1971-10-06")
        assert dim.loc[11000, "country"] == "Australia"

    def test_assembly_is_reproducible(self, crm_customers, erp_demographics, erp_locations) -> None:
        first = assemble_customer(crm_customers, erp_demographics, erp_locations)
        second = assemble_customer(crm_customers, erp_demographics, erp_locations)

        pd.testing.assert_frame_equal(first, second)

    def test_surrogate_keys_ignore_input_order(self, crm_customers, erp_demographics, erp_locations) -> None:
        shuffled = crm_customers.iloc[[2, 0, 1]].reset_index(drop=True)

        first = assemble_customer(crm_customers, erp_demographics, erp_locations)
        second = assemble_customer(shuffled, erp_demographics, erp_locations)

        pd.testing.assert_frame_equal(first, second)

    def test_duplicate_secondary_key_is_rejected(self, crm_customers, erp_demographics, erp_locations) -> None:
        doubled = pd.concat([erp_locations, erp_locations], ignore_index=True)

        with pytest.raises(DataQualityError, match="erp_loc_a101"):
            assemble_customer(crm_customers, erp_demographics, doubled)

    def test_missing_column_is_rejected(self, crm_customers, erp_demographics, erp_locations) -> None:
        with pytest.raises(DataQualityError):
            assemble_customer(crm_customers.drop(columns="cst_gndr"), erp_demographics, erp_locations)


class TestProductDimension:
    @pytest.fixture
    def crm_products(self) -> pd.DataFrame:
        """Derived crm_prd_info rows: one product with three versions, one with one."""
        return pd.DataFrame({
            "prd_id": [212, 213, 214, 210],
            "cat_id": ["AC_HE", "AC_HE", "AC_HE", "XX_YY"],
            "prd_key": ["HL-U509-R", "HL-U509-R", "HL-U509-R", "FR-R92B-58"],
            "prd_nm": ["Helmet", "Helmet", "Helmet", "Road Frame"],
            "prd_cost": [12.0, 14.0, 13.0, 0.0],
            "prd_line": ["Other Sales", "Other Sales", "Other Sales", "Road"],
            "prd_start_dt": pd.to_datetime(["2011-07-01", "2012-07-01", "2013-07-01", "2003-07-01"]),
            "prd_end_dt": pd.to_datetime(["2012-06-30", "2013-06-30", None, None]),
        })

    @pytest.fixture
    def erp_categories(self) -> pd.DataFrame:
        return pd.DataFrame({
            "id": ["AC_HE", "CO_RF"],
            "cat": ["Accessories", "Components"],
            "subcat": ["Helmets", "Road Frames"],
            "maintenance": ["Yes", "No"],
        })

    def test_only_current_versions(self, crm_products, erp_categories) -> None:
        dim = assemble_product(crm_products, erp_categories)

        assert list(dim.columns) == DIM_PRODUCT_COLUMNS
        assert sorted(dim["product_id"]) == [210, 214]

    def test_category_enrichment(self, crm_products, erp_categories) -> None:
        dim = assemble_product(crm_products, erp_categories).set_index("product_id")

        assert dim.loc[214, "category"] == "Accessories"
        assert dim.loc[214, "subcategory"] == "Helmets"
        assert dim.loc[210, "category"] == "n/a"
        assert dim.loc[210, "maintenance"] == "n/a"

    def test_surrogate_keys_by_start_date(self, crm_products, erp_categories) -> None:
        dim = assemble_product(crm_products, erp_categories)

        assert dim["product_key"].tolist() == [1, 2]
        assert dim["product_id"].tolist() == [210, 214]

    def test_duplicate_category_is_rejected(self, crm_products, erp_categories) -> None:
        doubled = pd.concat([erp_categories, erp_categories.iloc[[0]]], ignore_index=True)

        with pytest.raises(DataQualityError):
            assemble_product(crm_products, doubled)


def test_apply_precedence_rule_table() -> None:
    df = pd.DataFrame({"a": ["x", "n/a", None], "b": ["y", "y", "n/a"]})

    out = apply_precedence(df, [("c", "a", "b")])

    assert out["c"].tolist() == ["x", "y", "n/a"]
    assert "c" not in df.columns


def test_assign_surrogate_keys_dense_from_one() -> None:
    df = pd.DataFrame({"d": pd.to_datetime([None, "2020-01-02", "2020-01-01"]), "id": [1, 2, 3]})

    out = assign_surrogate_keys(df, ["d", "id"], "sk")

    assert out["sk"].tolist() == [1, 2, 3]
    assert out["id"].tolist() == [3, 2, 1]
    assert list(out.columns) == ["sk", "d", "id"]


@pytest.mark.parametrize(
    "starts",
    [
        ["2011-07-01", None],
        [None, "2011-07-01", "2012-07-01"],
        [None, None],
    ],
)
def test_product_number_appears_once_in_dim_product(starts) -> None:
    rows = [
        {"prd_id": 300 + i, "prd_key": "CO-RF-FR-1", "prd_nm": "Frame", "prd_cost": "10",
         "prd_line": "R", "prd_start_dt": start, "prd_end_dt": None}
        for i, start in enumerate(starts)
    ]
    categories = pd.DataFrame({"id": ["CO_RF"], "cat": ["Components"], "subcat": ["Road Frames"], "maintenance": ["No"]})

    derived = derive("crm_prd_info", cleanse("crm_prd_info", rows).records).records
    dim = assemble_product(derived, categories)

    assert dim["product_number"].tolist() == ["FR-1"]
    assert dim["product_key"].tolist() == [1]
