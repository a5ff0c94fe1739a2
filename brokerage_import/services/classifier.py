from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from enum import Enum

from ..excel.reader import SheetData
from ..models.field_definitions import ImportTarget
from .normalizer import fold

"""Sheet classifier: decide which entity each worksheet holds.

Sheet names are checked first, then headers. Header keyword sets are tried in
a fixed order (beneficiary, policy, client) because beneficiary sheets also
carry person-name columns and policy sheets also carry an identification
column.
"""

__all__ = [
    "SheetKind",
    "classify_sheet",
    "classify_workbook",
]

logger = logging.getLogger(__name__)


class SheetKind(Enum):
    CLIENT = "client"
    POLICY = "policy"
    BENEFICIARY = "beneficiary"
    UNKNOWN = "unknown"

    @property
    def target(self) -> ImportTarget | None:
        return _TARGETS.get(self)


_TARGETS = {
    SheetKind.CLIENT: ImportTarget.CLIENT,
    SheetKind.POLICY: ImportTarget.POLICY,
    SheetKind.BENEFICIARY: ImportTarget.BENEFICIARY,
}

_NAME_KEYWORDS: list[tuple[SheetKind, tuple[str, ...]]] = [
    (SheetKind.BENEFICIARY, ("beneficiario", "beneficiary")),
    (SheetKind.POLICY, ("poliza", "policy", "policies")),
    (SheetKind.CLIENT, ("tomador", "cliente", "client", "asegurado")),
]

_HEADER_KEYWORDS: list[tuple[SheetKind, tuple[str, ...]]] = [
    (SheetKind.BENEFICIARY, ("parentesco", "relacion", "relationship", "porcentaje")),
    (SheetKind.POLICY, ("prima", "premium", "aseguradora", "insurer", "poliza", "vencimiento", "renovacion")),
    (SheetKind.CLIENT, ("cedula", "identificacion", "nombre", "apellido", "first name", "last name")),
]


def _match(text: str, table: list[tuple[SheetKind, tuple[str, ...]]]) -> SheetKind | None:
    for kind, words in table:
        if any(w in text for w in words):
            return kind
    return None


def classify_sheet(name: str, headers: Iterable[str]) -> SheetKind:
    """Classify one sheet from its name, falling back to its headers."""
    kind = _match(fold(name), _NAME_KEYWORDS)
    if kind is not None:
        return kind
    folded = " | ".join(fold(h) for h in headers if h)
    return _match(folded, _HEADER_KEYWORDS) or SheetKind.UNKNOWN


def classify_workbook(sheets: Sequence[SheetData]) -> dict[SheetKind, SheetData]:
    """Pick at most one sheet per entity kind.

    Only the first sheet falls back to client when nothing matches it; it then
    claims that kind, so a later client sheet is ignored. Later duplicates of
    a kind and every other unknown sheet are dropped. Never raises.
    """
    chosen: dict[SheetKind, SheetData] = {}
    for position, sheet in enumerate(sheets):
        kind = classify_sheet(sheet.sheet_name, sheet.columns)
        if kind is SheetKind.UNKNOWN:
            if position > 0:
                logger.debug("sheet '%s' unclassified, ignored", sheet.sheet_name)
                continue
            kind = SheetKind.CLIENT
            logger.debug("sheet '%s' defaulted to client", sheet.sheet_name)
        if kind in chosen:
            logger.warning("sheet '%s' ignored: '%s' already used as %s", sheet.sheet_name, chosen[kind].sheet_name, kind.value)
            continue
        chosen[kind] = sheet
    return chosen
