"""Unified configuration for the warehouse core.

This module provides a single, simple configuration class describing where
the source extracts live and where silver and gold tables are written.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class DataPaths:
    """All filesystem paths used by the pipeline collaborators.

    The core itself never touches the filesystem; these paths are used by the
    bronze reader, the table writer and the run metadata.

    Attributes:
        data_root: Root directory for all data layers.

    Directory Structure:
        data_root/
        ├── datasets/
        │   ├── source_crm/   # Bronze: cust_info.csv, prd_info.csv, sales_details.csv
        │   └── source_erp/   # Bronze: cust_az12.csv, loc_a101.csv, px_cat_g1v2.csv
        ├── silver/           # Cleansed and derived tables, one CSV per source table
        └── gold/             # dim_customer.csv, dim_product.csv, fact_sales.csv
    """

    data_root: Path

    @classmethod
    def from_root(cls, data_root: str | Path) -> DataPaths:
        """Create DataPaths from a root directory.

        Args:
            data_root: Root directory for warehouse data.

        Returns:
            DataPaths instance.

        Examples:
            >>> paths = DataPaths.from_root("data")
            >>> paths.source_crm
            PosixPath('data/datasets/source_crm')
        """
        if isinstance(data_root, str):
            data_root = Path(data_root)
        return cls(data_root=data_root)

    @property
    def source_crm(self) -> Path:
        """Bronze layer: CRM extracts."""
        return self.data_root / "datasets" / "source_crm"

    @property
    def source_erp(self) -> Path:
        """Bronze layer: ERP extracts."""
        return self.data_root / "datasets" / "source_erp"

    @property
    def silver(self) -> Path:
        """Silver layer: cleansed and derived source tables."""
        return self.data_root / "silver"

    @property
    def gold(self) -> Path:
        """Gold layer: conformed dimensions and fact."""
        return self.data_root / "gold"

    def ensure_dirs(self) -> None:
        """Create the output directories (bronze directories are owned by the extract)."""
        for path in [self.silver, self.gold]:
            path.mkdir(parents=True, exist_ok=True)
