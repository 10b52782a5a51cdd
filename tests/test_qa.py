"""Smoke tests for the gold-layer QA checks (dwh_core.qa)."""

import pandas as pd
import pytest

from dwh_core.exceptions import DataQualityError
from dwh_core.pipeline import run_pipeline
from dwh_core.qa import GoldQAResult, run_gold_qa

from conftest import REFERENCE_DATE

pytestmark = pytest.mark.filterwarnings("ignore::dwh_core.exceptions.ValidationWarning")


@pytest.fixture
def gold(raw_tables) -> dict[str, pd.DataFrame]:
    return run_pipeline(raw_tables, reference_date=REFERENCE_DATE).outputs


def test_qa_on_pipeline_output(gold) -> None:
    result = run_gold_qa(gold["dim_customer"], gold["dim_product"], gold["fact_sales"])

    assert isinstance(result, GoldQAResult)
    assert result.passed
    assert result.key_errors is None
    assert result.reconciliation_violations is None
    assert result.summary["customers"] == 3
    assert result.summary["products"] == 2
    assert result.summary["sales_rows"] == 4
    # SO43700 references an unknown customer and has no price
    assert result.summary["missing_customer_key_count"] == 1
    assert result.summary["missing_price_count"] == 1
    assert result.unresolved_facts["order_number"].tolist() == ["SO43700"]
    assert result.summary["min_order_date"] == "2010-12-29T00:00:00"


def test_key_problems_are_reported(gold) -> None:
    customers = gold["dim_customer"].copy()
    customers.loc[customers.index[-1], "customer_key"] = 7
    products = pd.concat([gold["dim_product"], gold["dim_product"].iloc[[0]]], ignore_index=True)

    result = run_gold_qa(customers, products, gold["fact_sales"])

    assert not result.passed
    problems = set(zip(result.key_errors["dimension"], result.key_errors["problem"]))
    assert ("dim_customer", "surrogate keys not dense from 1") in problems
    assert ("dim_product", "duplicate surrogate key") in problems
    assert ("dim_product", "duplicate business key") in problems


def test_reconciliation_violation_is_reported(gold) -> None:
    fact = gold["fact_sales"].copy()
    fact.loc[0, "sales_amount"] = fact.loc[0, "sales_amount"] + 1

    result = run_gold_qa(gold["dim_customer"], gold["dim_product"], fact)

    assert result.summary["reconciliation_violations_count"] == 1
    assert result.reconciliation_violations["order_number"].tolist() == [fact.loc[0, "order_number"]]


def test_missing_columns(gold) -> None:
    with pytest.raises(DataQualityError):
        run_gold_qa(gold["dim_customer"].drop(columns="gender"), gold["dim_product"], gold["fact_sales"])
