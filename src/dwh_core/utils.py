"""Shared utilities for the warehouse pipeline."""

from __future__ import annotations

from datetime import date, datetime

import pandas as pd

from dwh_core.exceptions import ConfigError


def parse_date(s: str) -> date:
    """Parse a date string in YYYY-MM-DD format.

    Args:
        s: Date string in ISO format (YYYY-MM-DD).

    Returns:
        Parsed date object.

    Raises:
        ConfigError: If the date string is not in YYYY-MM-DD format.

    Examples:
        >>> parse_date("2023-01-15")
        datetime.date(2023, 1, 15)
    """
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid date '{s}': expected YYYY-MM-DD") from e


def format_duration(seconds: float) -> str:
    """Format a duration in seconds as a human-readable string.

    Args:
        seconds: Duration in seconds (can be fractional).

    Returns:
        Formatted string like "5m 30.5s" or "45.2s".

    Examples:
        >>> format_duration(90.5)
        '1m 30.5s'
        >>> format_duration(45.2)
        '45.2s'
    """
    mins, secs = divmod(seconds, 60.0)
    if mins >= 1:
        return f"{int(mins)}m {secs:04.1f}s"
    else:
        return f"{secs:.1f}s"


def date_columns(df: pd.DataFrame) -> list[str]:
    """Names of the datetime64 columns of ``df``."""
    return [c for c in df.columns if pd.api.types.is_datetime64_any_dtype(df[c])]
