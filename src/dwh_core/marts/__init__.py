"""Marts (Gold) layer - Conformed dimensions and facts.

This layer joins the derived Silver tables of both source systems into a
star schema:

- ``dim_customer``: one row per CRM customer, enriched with ERP birthdate,
  gender fallback and country
- ``dim_product``: one row per current product version, enriched with the
  ERP category hierarchy
- ``fact_sales``: one row per order line, referencing both dimensions by
  surrogate key

Surrogate keys are dense integers from 1, reproducible for a given input
snapshot. Everything is recomputed on every run.
"""

from dwh_core.marts.dimensions import (
    CUSTOMER_PRECEDENCE,
    DIM_CUSTOMER_COLUMNS,
    DIM_PRODUCT_COLUMNS,
    apply_precedence,
    assemble_customer,
    assemble_product,
    assign_surrogate_keys,
)
from dwh_core.marts.facts import FACT_SALES_COLUMNS, assemble_sales_fact

__all__ = [
    "CUSTOMER_PRECEDENCE",
    "DIM_CUSTOMER_COLUMNS",
    "DIM_PRODUCT_COLUMNS",
    "FACT_SALES_COLUMNS",
    "apply_precedence",
    "assemble_customer",
    "assemble_product",
    "assemble_sales_fact",
    "assign_surrogate_keys",
]
