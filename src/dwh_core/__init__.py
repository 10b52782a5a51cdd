"""CRM/ERP warehouse core - bronze extracts to a conformed star schema.

This package transforms raw CRM and ERP extracts into a dimensional model
across three layers:

- **Bronze (raw)**: source CSV extracts, loaded as text
- **Silver (staging)**: cleansed, deduplicated and rule-derived tables
- **Gold (marts)**: ``dim_customer``, ``dim_product`` and ``fact_sales``

Module Structure:
    dwh_core.staging: Field normalizers, cleansing and derivation stages
    dwh_core.marts: Dimension and fact assembly with surrogate keys
    dwh_core.pipeline: Orchestration, per-table reports, CLI
    dwh_core.raw: Bronze CSV reader
    dwh_core.qa: Gold-layer quality checks
    dwh_core.config: DataPaths configuration

Quick Start:
    >>> from dwh_core import DataPaths
    >>> from dwh_core.pipeline import run_from_paths
    >>>
    >>> paths = DataPaths.from_root("data")
    >>> result = run_from_paths(paths, reference_date="2025-01-15")
    >>> result.status
    'ok'
    >>> result.outputs["fact_sales"].head()

Grain Reference:
    - dim_customer: one row per CRM customer
    - dim_product: one row per current product version
    - fact_sales: one row per order line
"""

__version__ = "0.1.0"

from dwh_core.config import DataPaths
from dwh_core.exceptions import (
    BatchFailure,
    ConfigError,
    DataQualityError,
    ETLError,
    MalformedKeyError,
    StageFailure,
    ValidationWarning,
    WarehouseError,
)

__all__ = [
    "BatchFailure",
    "ConfigError",
    "DataPaths",
    "DataQualityError",
    "ETLError",
    "MalformedKeyError",
    "StageFailure",
    "ValidationWarning",
    "WarehouseError",
    "__version__",
]
