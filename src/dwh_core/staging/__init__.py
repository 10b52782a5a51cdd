"""Staging (Silver) layer - Cleansing and rule derivation.

This layer turns raw source rows into validated, typed rows:

1. **Cleansing** (``cleanse``): schema check, trimming, code mapping, type
   parsing, null-key removal and deduplication on the natural key
2. **Derivation** (``derive``): product key decomposition, product lifecycle
   end dates, sales date decoding and measure reconciliation

Data directory mapping:
    data/silver/ → Staging (Silver) layer - one CSV per source table.

Both stages are pure: they copy their input, never perform I/O, and report
dropped and repaired rows in a ``StageResult``.
"""

from dwh_core.staging.cleaning_utils import (
    NOT_APPLICABLE,
    clean_text,
    map_code,
    normalize_country,
    parse_int_date,
    split_product_key,
    strip_invisibles,
    to_date,
    to_float,
)
from dwh_core.staging.cleanse import cleanse, deduplicate
from dwh_core.staging.derive import derive, derive_end_dates, reconcile_sales
from dwh_core.staging.types import StageResult

__all__ = [
    # Field normalizers
    "NOT_APPLICABLE",
    "clean_text",
    "map_code",
    "normalize_country",
    "parse_int_date",
    "split_product_key",
    "strip_invisibles",
    "to_date",
    "to_float",
    # Stages
    "StageResult",
    "cleanse",
    "deduplicate",
    "derive",
    "derive_end_dates",
    "reconcile_sales",
]
