from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

from ..models.row_data import RowData

"""Workbook decoder: spreadsheet file -> sheets of header + data rows.

Row 1 is the header row and every following non-empty row is a data row, so
``RowData.row_number`` equals the spreadsheet row an operator sees. Empty
header cells become ``Column<index>`` (1-based); duplicated headers get a
`` (n)`` suffix so every cell keeps its own key.

Supported inputs: ``.xlsx`` / ``.xlsm`` (openpyxl), ``.xls`` (xlrd engine, when
installed) and ``.csv``. Any failure to open or parse the file surfaces as
DecodeError so the caller can abort before mapping.
"""

__all__ = [
    "DecodeError",
    "SheetData",
    "SUPPORTED_SUFFIXES",
    "read_workbook",
    "normalize_sheet",
]

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".xlsx", ".xlsm", ".xls", ".csv")


class DecodeError(Exception):
    """Raised when a file cannot be decoded into sheets."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[RowData] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.columns and not self.rows


def _read_frames(path: Path) -> dict[str, pd.DataFrame]:
    suffix = path.suffix.lower()
    # keep_default_na=False: "NA"/"N/A" stay text; null_sentinels decide what is empty
    if suffix == ".csv":
        df = pd.read_csv(path, header=None, dtype=object, keep_default_na=False, encoding="utf-8-sig")
        return {path.stem: df}
    xls = pd.ExcelFile(path)
    frames: dict[str, pd.DataFrame] = {}
    for name in xls.sheet_names:
        frames[str(name)] = xls.parse(name, header=None, dtype=object, keep_default_na=False)
    return frames


def read_workbook(path: Path | str, null_sentinels: Iterable[str] | None = None) -> list[SheetData]:
    """Decode every sheet of ``path`` in workbook order.

    Parameters
    ----------
    path: spreadsheet file (.xlsx / .xls / .csv)
    null_sentinels: cell texts (case-insensitive) treated as empty cells
    """
    p = Path(path)
    if not p.exists():
        raise DecodeError(f"file not found: {p}")
    if p.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise DecodeError(f"unsupported file type '{p.suffix}' (expected one of {', '.join(SUPPORTED_SUFFIXES)})")
    try:
        frames = _read_frames(p)
    except Exception as e:  # pandas/openpyxl raise a wide range of types for corrupt input
        raise DecodeError(f"cannot read {p.name}: {e}") from e

    sentinels = {s.strip().upper() for s in (null_sentinels or [])}
    sheets = [normalize_sheet(df, name, sentinels) for name, df in frames.items()]
    logger.debug("decoded %s sheets=%s", p.name, [(s.sheet_name, len(s.rows)) for s in sheets])
    return sheets


def _header_names(raw: list[Any]) -> list[str]:
    names: list[str] = []
    seen: dict[str, int] = {}
    for idx, cell in enumerate(raw, start=1):
        value = _cell(cell, set())
        text = str(value).strip() if value is not None else ""
        if not text:
            text = f"Column{idx}"
        if text in seen:
            seen[text] += 1
            text = f"{text} ({seen[text]})"
        else:
            seen[text] = 1
        names.append(text)
    return names


def _cell(val: Any, sentinels: set[str]) -> Any:
    # NaT is a datetime subclass
    if val is None or val is pd.NaT:
        return None
    if isinstance(val, pd.Timestamp):
        return None if pd.isna(val) else val.to_pydatetime()
    if isinstance(val, (datetime, date)):
        return val
    if isinstance(val, str):
        stripped = val.replace("\xa0", " ").strip()
        if not stripped or stripped.upper() in sentinels:
            return None
        return stripped
    if pd.isna(val):
        return None
    if hasattr(val, "item"):  # numpy scalar
        return val.item()
    return val


def normalize_sheet(df: pd.DataFrame, sheet_name: str, null_sentinels: set[str] | None = None) -> SheetData:
    """Apply the first row as header and turn the rest into RowData.

    Fully empty rows are skipped but still advance the row counter.
    """
    sentinels = null_sentinels or set()
    if df.shape[0] == 0:
        return SheetData(sheet_name=sheet_name, columns=[])
    columns = _header_names(df.iloc[0].tolist())
    rows: list[RowData] = []
    for offset, raw in enumerate(df.iloc[1:].itertuples(index=False, name=None)):
        values = {col: _cell(v, sentinels) for col, v in zip(columns, raw, strict=False)}
        row = RowData(row_number=offset + 2, values=values)
        if row.is_blank():
            continue
        rows.append(row)
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)
