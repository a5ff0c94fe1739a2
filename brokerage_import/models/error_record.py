from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the structured error log.

Each record is one JSON Lines entry. ``row`` is the 1-based spreadsheet row, or
-1 for file/sheet level errors where no single row is at fault. ``field`` is
empty when the error is not tied to one canonical field (store failures,
decode errors).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source spreadsheet file name
        sheet: sheet name within the file
        row: 1-based row number, -1 when unknown
        error_type: UPPER_SNAKE_CASE classification
        field: canonical field name, empty if not field-specific
        message: human readable description
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    field: str
    message: str

    @staticmethod
    def create(
        file: str, sheet: str, row: int, error_type: str, message: str, field: str = ""
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            field=field,
            message=message,
        )

    def to_json_line(self) -> str:
        # asdict keeps the key set fixed to the dataclass fields
        return json.dumps(asdict(self), ensure_ascii=False)
