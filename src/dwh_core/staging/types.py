"""Shared result type for the cleansing and derivation stages."""

from __future__ import annotations

from dataclasses import dataclass, field

import pandas as pd


@dataclass
class StageResult:
    """Output of one stage (cleanse or derive) for one source table.

    Attributes:
        table_id: Source table the records belong to.
        stage: "cleanse" or "derive".
        records: The stage output, one row per record.
        rows_in: Number of input rows the stage received.
        dropped: Rows removed by reason (e.g. {"null_key": 3, "duplicate": 2}).
        repaired: Non-fatal repairs by kind (e.g. {"sls_order_dt_invalid": 4}).
            A repaired row is still in ``records``.

    Every input row is either in ``records`` or counted in ``dropped``:
    ``rows_in == rows_out + rows_dropped``.
    """

    table_id: str
    stage: str
    records: pd.DataFrame
    rows_in: int
    dropped: dict[str, int] = field(default_factory=dict)
    repaired: dict[str, int] = field(default_factory=dict)

    @property
    def rows_out(self) -> int:
        return len(self.records)

    @property
    def rows_dropped(self) -> int:
        return sum(self.dropped.values())

    @property
    def rows_repaired(self) -> int:
        return sum(self.repaired.values())


def count_into(counter: dict[str, int], name: str, mask: pd.Series) -> None:
    """Add the number of True values in ``mask`` to ``counter[name]`` (zeros are not recorded)."""
    n = int(mask.sum())
    if n:
        counter[name] = counter.get(name, 0) + n
