from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""RowData model (RawRow).

One decoded spreadsheet data row, keyed by header text. Produced by the
decoder and consumed immediately by the grouper.
"""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Logical representation of a single decoded data row.

    ``row_number`` is the 1-based spreadsheet row: the header is row 1, so the
    first data row is 2. Error records and validation messages refer to it.
    """
    row_number: int
    values: dict[str, Any]  # header -> scalar cell (str | int | float | date | None)

    def get(self, header: str) -> Any:
        return self.values.get(header)

    def is_blank(self) -> bool:
        for v in self.values.values():
            if v is None:
                continue
            if isinstance(v, str) and not v.strip():
                continue
            return False
        return True
