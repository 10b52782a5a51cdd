"""Source table registry.

Each of the six source tables is described once here: which system it comes
from, the extract file it is bulk-loaded from, its raw column schema, the
natural key used for deduplication and the recency column that decides which
duplicate survives.
"""

from __future__ import annotations

from dataclasses import dataclass

from dwh_core.exceptions import ConfigError


@dataclass(frozen=True)
class TableSpec:
    """Static description of one source table.

    Attributes:
        table_id: Identifier used throughout the pipeline (e.g. "crm_cust_info").
        source: Source system, "crm" or "erp".
        file_name: Extract file name inside the source directory.
        columns: Raw column schema, in extract order.
        optional: Columns that may be absent from the extract.
        natural_key: Columns identifying one business entity.
        recency_column: Timestamp deciding which duplicate is kept (latest wins).
            None means the first row seen wins.
    """

    table_id: str
    source: str
    file_name: str
    columns: tuple[str, ...]
    natural_key: tuple[str, ...]
    recency_column: str | None = None
    optional: tuple[str, ...] = ()

    @property
    def required_columns(self) -> list[str]:
        return [c for c in self.columns if c not in self.optional]


CRM_CUST_INFO = "crm_cust_info"
CRM_PRD_INFO = "crm_prd_info"
CRM_SALES_DETAILS = "crm_sales_details"
ERP_CUST_AZ12 = "erp_cust_az12"
ERP_LOC_A101 = "erp_loc_a101"
ERP_PX_CAT_G1V2 = "erp_px_cat_g1v2"

TABLES: dict[str, TableSpec] = {
    CRM_CUST_INFO: TableSpec(
        table_id=CRM_CUST_INFO,
        source="crm",
        file_name="cust_info.csv",
        columns=(
            "cst_id",
            "cst_key",
            "cst_firstname",
            "cst_lastname",
            "cst_marital_status",
            "cst_gndr",
            "cst_create_date",
        ),
        natural_key=("cst_id",),
        recency_column="cst_create_date",
    ),
    CRM_PRD_INFO: TableSpec(
        table_id=CRM_PRD_INFO,
        source="crm",
        file_name="prd_info.csv",
        columns=(
            "prd_id",
            "prd_key",
            "prd_nm",
            "prd_cost",
            "prd_line",
            "prd_start_dt",
            "prd_end_dt",
        ),
        natural_key=("prd_id",),
        recency_column="prd_start_dt",
        optional=("prd_end_dt",),
    ),
    CRM_SALES_DETAILS: TableSpec(
        table_id=CRM_SALES_DETAILS,
        source="crm",
        file_name="sales_details.csv",
        columns=(
            "sls_ord_num",
            "sls_prd_key",
            "sls_cust_id",
            "sls_order_dt",
            "sls_ship_dt",
            "sls_due_dt",
            "sls_sales",
            "sls_quantity",
            "sls_price",
        ),
        natural_key=("sls_ord_num", "sls_prd_key"),
    ),
    ERP_CUST_AZ12: TableSpec(
        table_id=ERP_CUST_AZ12,
        source="erp",
        file_name="cust_az12.csv",
        columns=("cid", "bdate", "gen"),
        natural_key=("cid",),
    ),
    ERP_LOC_A101: TableSpec(
        table_id=ERP_LOC_A101,
        source="erp",
        file_name="loc_a101.csv",
        columns=("cid", "cntry"),
        natural_key=("cid",),
    ),
    ERP_PX_CAT_G1V2: TableSpec(
        table_id=ERP_PX_CAT_G1V2,
        source="erp",
        file_name="px_cat_g1v2.csv",
        columns=("id", "cat", "subcat", "maintenance"),
        natural_key=("id",),
    ),
}

# Processing order used for reports and logs (CRM first, as in the source loads)
TABLE_ORDER = [
    CRM_CUST_INFO,
    CRM_PRD_INFO,
    CRM_SALES_DETAILS,
    ERP_CUST_AZ12,
    ERP_LOC_A101,
    ERP_PX_CAT_G1V2,
]


def get_table(table_id: str) -> TableSpec:
    """Look up a table spec by id.

    Raises:
        ConfigError: If the table id is unknown.
    """
    try:
        return TABLES[table_id]
    except KeyError:
        raise ConfigError(f"Unknown source table '{table_id}'. Known tables: {TABLE_ORDER}") from None
