"""Metadata handling for pipeline runs.

This module stores and reads a summary of the last pipeline run. Metadata is
stored as a JSON file in the ``_meta/`` subdirectory of the gold layer, next to
the tables it describes.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path

META_DIR = "_meta"
LAST_RUN_FILE = "last_run.json"


@dataclass
class RunMetadata:
    """Metadata for one pipeline run.

    Attributes:
        last_run: ISO timestamp of when the run finished.
        reference_date: Reference date (YYYY-MM-DD) used for plausibility checks.
        status: Status of the run: "ok", "failed", or "partial".
        duration_seconds: Wall-clock duration of the whole batch.
        tables: Per-table summary (rows_in, rows_out, dropped, repaired,
            duration_seconds, status, error), keyed by table or output name.
        pipeline_version: Version of the package that produced the outputs.
    """

    last_run: str  # ISO timestamp
    reference_date: str
    status: str  # "ok" | "failed" | "partial"
    duration_seconds: float
    tables: dict[str, dict] = field(default_factory=dict)
    pipeline_version: str = ""

    def to_dict(self) -> dict:
        """Convert metadata to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> RunMetadata:
        """Create metadata from dictionary."""
        return cls(**data)


def metadata_path(stage_dir: Path) -> Path:
    """Path of the last-run metadata file for an output directory."""
    return stage_dir / META_DIR / LAST_RUN_FILE


def write_run_metadata(stage_dir: Path, metadata: RunMetadata) -> Path:
    """Write metadata JSON to the ``_meta/`` subdirectory, replacing any previous run.

    Args:
        stage_dir: Output directory (e.g. data/gold).
        metadata: Metadata to write.

    Returns:
        Path of the written file.

    Examples:
        >>> from pathlib import Path
        >>> meta = RunMetadata(
        ...     last_run="2025-01-15T12:00:00",
        ...     reference_date="2025-01-15",
        ...     status="ok",
        ...     duration_seconds=3.2,
        ... )
        >>> write_run_metadata(Path("data/gold"), meta)
        PosixPath('data/gold/_meta/last_run.json')
    """
    meta_path = metadata_path(stage_dir)
    meta_path.parent.mkdir(parents=True, exist_ok=True)

    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(metadata.to_dict(), f, indent=2, ensure_ascii=False)
    return meta_path


def read_run_metadata(stage_dir: Path) -> RunMetadata | None:
    """Read the last-run metadata if it exists.

    Returns:
        RunMetadata if the file exists and is readable, None otherwise.
    """
    meta_path = metadata_path(stage_dir)

    if not meta_path.exists():
        return None

    try:
        with open(meta_path, encoding="utf-8") as f:
            data = json.load(f)
        return RunMetadata.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError):
        # If metadata file is corrupted, treat as missing
        return None
