from __future__ import annotations

from dataclasses import dataclass

"""ColumnMapping model.

A mapping is created once per sheet by the Column Mapper and stays editable by
the operator until validation runs. ``canonical_field=None`` means the column
is ignored on import; ``group_index`` is set only for child (beneficiary)
fields.
"""

__all__ = [
    "ColumnMapping",
]


@dataclass
class ColumnMapping:
    source_header: str
    canonical_field: str | None
    group_index: int | None = None

    @property
    def is_ignored(self) -> bool:
        return self.canonical_field is None

    @property
    def is_grouped(self) -> bool:
        return self.group_index is not None
