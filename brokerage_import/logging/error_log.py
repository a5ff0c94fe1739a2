from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Error log buffering.

Records are buffered for the whole run and written once as JSON Lines to
``<logs_directory>/errors-YYYYMMDD-HHMMSS.log`` (UTC). The key set is fixed by
ErrorRecord. The file is only created when there is something to write.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
    "ERROR_TYPES",
    "VALIDATION_ERROR",
    "INSERT_ERROR",
    "UPDATE_ERROR",
    "PARENT_FAILED",
    "DECODE_ERROR",
    "MAPPING_INCOMPLETE",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"

VALIDATION_ERROR = "VALIDATION_ERROR"
INSERT_ERROR = "INSERT_ERROR"
UPDATE_ERROR = "UPDATE_ERROR"
PARENT_FAILED = "PARENT_FAILED"
DECODE_ERROR = "DECODE_ERROR"
MAPPING_INCOMPLETE = "MAPPING_INCOMPLETE"

ERROR_TYPES = frozenset(
    {VALIDATION_ERROR, INSERT_ERROR, UPDATE_ERROR, PARENT_FAILED, DECODE_ERROR, MAPPING_INCOMPLETE}
)


class ErrorLogBuffer:
    """In-memory buffer for error records. ``flush`` writes JSON Lines.

    Serial use only; the file path is fixed on first access.
    """

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = Path(logs_dir) if logs_dir is not None else LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; None when nothing was buffered."""
        if not self._records:
            return None
        fp = self.file_path
        fp.parent.mkdir(parents=True, exist_ok=True)
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
