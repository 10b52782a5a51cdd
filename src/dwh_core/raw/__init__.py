"""Raw (Bronze) layer - Source extracts as delivered.

Data directory mapping:
    data/datasets/source_crm/ → CRM extracts
    data/datasets/source_erp/ → ERP extracts

No transformation happens here: the loader only reads the CSV files into
DataFrames of text values.
"""

from dwh_core.raw.bronze import load_bronze, read_extract, source_path

__all__ = ["load_bronze", "read_extract", "source_path"]
