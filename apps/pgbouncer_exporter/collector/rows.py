from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .coercion import ColumnValue
from .errors import RowReadError


class RowBuffer:
    """
    Column layout of one result set plus a slot list holding the current row.

    The slot list is allocated once per query and overwritten in place for
    every row.
    """

    __slots__ = ("namespace", "column_names", "column_index", "values")

    def __init__(self, namespace: str, column_names: Sequence[str]) -> None:
        self.namespace = namespace
        self.column_names: Tuple[str, ...] = tuple(column_names)
        self.column_index: Dict[str, int] = {name: idx for idx, name in enumerate(self.column_names)}
        self.values: List[ColumnValue] = [None] * len(self.column_names)

    def __len__(self) -> int:
        return len(self.column_names)

    def load(self, row: Sequence[ColumnValue]) -> None:
        if len(row) != len(self.values):
            raise RowReadError(
                f"{self.namespace}: row has {len(row)} values, expected {len(self.values)}"
            )
        self.values[:] = row

    def get(self, column: str) -> ColumnValue:
        """Value of ``column`` in the current row; None when the column is absent."""
        idx = self.column_index.get(column)
        if idx is None:
            return None
        return self.values[idx]

    def items(self):
        return zip(self.column_names, self.values)
