"""Domain-specific exceptions for the warehouse core.

This module defines custom exceptions that are part of the public API.
All exceptions inherit from WarehouseError for easy catching.
"""

from __future__ import annotations


class WarehouseError(Exception):
    """Base exception for all warehouse core errors.

    Users can catch this exception to handle any error raised by the
    cleansing, derivation or assembly stages.
    """

    pass


class ConfigError(WarehouseError):
    """Raised when there is a configuration error.

    This exception is raised when:
    - An unknown source table id is requested
    - Invalid configuration values are provided (e.g. a bad reference date)
    """

    pass


class DataQualityError(WarehouseError):
    """Raised when input data violates a structural precondition.

    This exception is raised when:
    - A secondary source is not unique on its join key
    - Gold inputs are missing required columns
    """

    pass


class MalformedKeyError(DataQualityError):
    """Raised when a composite key cannot be decomposed.

    Fatal to the row carrying the key: the derivation stage drops the row,
    counts it and continues with the rest of the table.
    """

    def __init__(self, key: object, min_width: int) -> None:
        self.key = key
        self.min_width = min_width
        super().__init__(f"Malformed composite key {key!r}: expected at least {min_width} characters")


class ETLError(WarehouseError):
    """Raised when a pipeline stage fails."""

    pass


class StageFailure(ETLError):
    """Raised when an entire table's cleansing or derivation fails.

    Fatal to that table only; other independent tables continue.
    """

    def __init__(self, table_id: str, message: str) -> None:
        self.table_id = table_id
        super().__init__(f"{table_id}: {message}")


class BatchFailure(ETLError):
    """Raised when an assembly dependency never completed.

    The affected dimension or fact is skipped, never partially computed.
    """

    def __init__(self, output: str, missing: list[str]) -> None:
        self.output = output
        self.missing = list(missing)
        super().__init__(f"{output}: upstream stage(s) not completed: {', '.join(self.missing)}")


class ValidationWarning(UserWarning):
    """Non-fatal data repair (invalid date, non-positive measure, unmapped code).

    Repairs never abort a row. They are counted per table and surfaced once
    per table by the pipeline through ``warnings.warn``.
    """
