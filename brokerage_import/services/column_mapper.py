from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence

from ..models.column_mapping import ColumnMapping
from ..models.field_definitions import FieldDefinition, ImportTarget, fields_for, required_fields
from .normalizer import fold

"""Column mapper: spreadsheet headers -> canonical fields.

Headers are folded (lower-case, accents stripped) and run through ordered
``(predicate, canonical_field)`` rule lists; the first matching rule wins.

For the unified layout the order is:

1. detect a beneficiary block index ("Beneficiario 2", "Ben. 3", trailing
   number), clamped to ``max_groups``;
2. entity-qualified headers: beneficiary words / relationship words, then
   "tomador" / "cliente", resolved by the sub-keyword rules of that entity;
3. root (policy) rules;
4. loose fallbacks for bare person columns;
5. otherwise the column is ignored (``canonical_field=None``).

Separate-sheet targets (client / policy / beneficiary) each have their own
flat rule list.
"""

__all__ = [
    "DEFAULT_MAX_GROUPS",
    "detect_group_index",
    "map_header",
    "auto_map_columns",
    "remap",
    "all_required_fields_mapped",
    "missing_required_fields",
    "detected_beneficiary_count",
    "MappingIncompleteError",
    "require_complete_mapping",
]

logger = logging.getLogger(__name__)

DEFAULT_MAX_GROUPS = 7

Predicate = Callable[[str], bool]
Rule = tuple[Predicate, str]


def _any(*words: str) -> Predicate:
    return lambda h: any(w in h for w in words)


def _eq(*values: str) -> Predicate:
    return lambda h: h in values


def _word(*words: str) -> Predicate:
    pattern = re.compile(r"\b(?:" + "|".join(re.escape(w) for w in words) + r")\b")
    return lambda h: pattern.search(h) is not None


def _all(*preds: Predicate) -> Predicate:
    return lambda h: all(p(h) for p in preds)


def _either(*preds: Predicate) -> Predicate:
    return lambda h: any(p(h) for p in preds)


def _none(*words: str) -> Predicate:
    return lambda h: not any(w in h for w in words)


_GROUP_INDEX_RE = re.compile(r"(?:beneficiario|\bben)\.?\s*(\d+)")
_TRAILING_NUMBER_RE = re.compile(r"(\d+)\s*$")

_is_beneficiary_qualified = _either(
    _any("beneficiario", "parentesco", "relacion", "relationship", "beneficiary"),
    _word("ben"),
)
_is_client_qualified = _any("tomador", "cliente", "asegurado titular")

# Sub-keyword rules shared by person-like entities. Keys are unprefixed; the
# unified layout prefixes them with client_ / beneficiary_.
_CLIENT_RULES: list[Rule] = [
    (_all(_any("tipo"), _any("id", "ident", "documento")), "identification_type"),
    (_either(_any("cedula", "identificacion", "documento", "rif", "c.i"), _eq("ci", "id")), "identification_number"),
    (_all(_any("numero", "nro"), _any("ident")), "identification_number"),
    (_all(_any("nombre", "first name", "first_name"), _none("apellido")), "first_name"),
    (_any("apellido", "last name", "last_name"), "last_name"),
    (_any("email", "correo", "mail"), "email"),
    (_any("movil", "celular", "mobile"), "mobile"),
    (_any("telefono", "phone", "tlf"), "phone"),
    (_any("direccion", "domicilio", "address"), "address"),
    (_any("ciudad", "city"), "city"),
    (_any("estado", "provincia", "province"), "province"),
    (_any("nacimiento", "birth", "f.nac", "f. nac", "fnac"), "birth_date"),
    (_any("ocupacion", "profesion", "occupation"), "occupation"),
    (_any("trabajo", "empresa", "workplace"), "workplace"),
]

_BENEFICIARY_RULES: list[Rule] = [
    (_all(_any("tipo"), _any("id", "ident", "documento")), "identification_type"),
    (_all(_any("nombre", "first name", "first_name"), _none("apellido")), "first_name"),
    (_any("apellido", "last name", "last_name"), "last_name"),
    (_any("cedula", "identificacion", "documento", "c.i"), "identification_number"),
    (_any("parentesco", "relacion", "relationship"), "relationship"),
    (_any("nacimiento", "birth", "f.nac", "f. nac", "fnac"), "birth_date"),
    (_either(_any("telefono", "phone", "movil", "celular"), _word("tel")), "phone"),
    (_any("email", "correo", "mail"), "email"),
]

_POLICY_RULES: list[Rule] = [
    (_all(_any("poliza", "policy"), _none("nota", "notes", "estado", "status", "fecha", "date", "tipo")), "policy_number"),
    (_any("aseguradora", "insurer", "compania"), "insurer_name"),
    (_either(_any("producto", "product"), _eq("plan")), "product_name"),
    (_any("inicio", "start", "desde", "emision"), "start_date"),
    (_either(_any("renovacion", "vencimiento", "hasta"), _word("fin", "end")), "end_date"),
    (_either(_eq("estado", "status", "estatus"), _any("estado poliza", "estado de la poliza", "status")), "status"),
    (_either(_all(_any("fecha", "date"), _any("pago", "payment")), _any("pago prima", "proximo pago")), "premium_payment_date"),
    (_any("prima", "premium"), "premium"),
    (_any("frecuencia", "frequency", "periodicidad", "forma de pago"), "payment_frequency"),
    (_any("suma", "cobertura", "coverage"), "coverage_amount"),
    (_any("deducible", "deductible"), "deductible"),
    (_all(_any("asesor", "advisor", "agente"), _either(_any("secundario", "secondary"), _word("2"))), "secondary_advisor_name"),
    (_any("asesor", "advisor", "agente"), "primary_advisor_name"),
]

_UNIFIED_ROOT_RULES: list[Rule] = _POLICY_RULES + [
    (_any("nota", "notes", "observacion"), "policy_notes"),
]

# bare columns with no entity qualifier default to the policy holder
_UNIFIED_FALLBACK_RULES: list[Rule] = [
    (_any("cedula", "identificacion"), "client_identification_number"),
    (_eq("nombre", "nombres"), "client_first_name"),
    (_eq("apellido", "apellidos"), "client_last_name"),
]

_CLIENT_SHEET_RULES: list[Rule] = _CLIENT_RULES + [
    (_any("nota", "notes", "observacion"), "notes"),
]

_POLICY_SHEET_RULES: list[Rule] = [
    (_any("cedula", "tomador", "cliente", "identificacion"), "client_identification"),
] + _POLICY_RULES + [
    (_any("nota", "notes", "observacion"), "notes"),
]

_BENEFICIARY_SHEET_RULES: list[Rule] = [
    (_any("poliza", "policy"), "policy_number"),
    (_any("porcentaje", "percentage", "%"), "percentage"),
] + _BENEFICIARY_RULES

_SHEET_RULES: dict[ImportTarget, list[Rule]] = {
    ImportTarget.CLIENT: _CLIENT_SHEET_RULES,
    ImportTarget.POLICY: _POLICY_SHEET_RULES,
    ImportTarget.BENEFICIARY: _BENEFICIARY_SHEET_RULES,
}


def _first_match(rules: Iterable[Rule], h: str) -> str | None:
    for predicate, field in rules:
        if predicate(h):
            return field
    return None


def _clamp(index: int, max_groups: int) -> int:
    return max(1, min(index, max_groups))


def detect_group_index(header: str, max_groups: int = DEFAULT_MAX_GROUPS) -> int | None:
    """Beneficiary block number embedded in a header, clamped to ``max_groups``.

    >>> detect_group_index("Nombre Ben. 2")
    2
    >>> detect_group_index("Parentesco 9")
    7
    """
    h = fold(header)
    m = _GROUP_INDEX_RE.search(h) or _TRAILING_NUMBER_RE.search(h)
    if not m:
        return None
    return _clamp(int(m.group(1)), max_groups)


def _map_unified(h: str, max_groups: int) -> tuple[str | None, int | None]:
    explicit = _GROUP_INDEX_RE.search(h)
    if explicit is not None or _is_beneficiary_qualified(h):
        sub = _first_match(_BENEFICIARY_RULES, h)
        if sub is not None:
            m = explicit or _TRAILING_NUMBER_RE.search(h)
            index = _clamp(int(m.group(1)), max_groups) if m else 1
            return f"beneficiary_{sub}", index
        return None, None

    if _is_client_qualified(h):
        sub = _first_match(_CLIENT_RULES, h)
        return (f"client_{sub}" if sub else None), None

    field = _first_match(_UNIFIED_ROOT_RULES, h) or _first_match(_UNIFIED_FALLBACK_RULES, h)
    return field, None


def map_header(
    header: str, target: ImportTarget = ImportTarget.UNIFIED, max_groups: int = DEFAULT_MAX_GROUPS
) -> ColumnMapping:
    """Propose a mapping for one header. Never raises."""
    source = "" if header is None else str(header)
    h = fold(source)
    if not h:
        return ColumnMapping(source_header=source, canonical_field=None)
    if target is ImportTarget.UNIFIED:
        field, index = _map_unified(h, max_groups)
    else:
        field, index = _first_match(_SHEET_RULES[target], h), None
    return ColumnMapping(source_header=source, canonical_field=field, group_index=index)


def auto_map_columns(
    headers: Sequence[str],
    target: ImportTarget = ImportTarget.UNIFIED,
    max_groups: int = DEFAULT_MAX_GROUPS,
) -> list[ColumnMapping]:
    """One ColumnMapping per header, in header order."""
    mappings = [map_header(h, target, max_groups) for h in headers]
    logger.debug(
        "auto_map target=%s mapped=%d ignored=%d",
        target.value,
        sum(1 for m in mappings if not m.is_ignored),
        sum(1 for m in mappings if m.is_ignored),
    )
    return mappings


def _definition(target: ImportTarget, key: str) -> FieldDefinition | None:
    for f in fields_for(target):
        if f.key == key:
            return f
    return None


def remap(
    mappings: list[ColumnMapping],
    source_header: str,
    canonical_field: str | None,
    group_index: int | None = None,
    target: ImportTarget = ImportTarget.UNIFIED,
    max_groups: int = DEFAULT_MAX_GROUPS,
) -> bool:
    """Operator override of one column (``canonical_field=None`` ignores it).

    Child fields get ``group_index`` clamped to ``1..max_groups`` (default 1);
    root fields always get ``None``. Returns False, leaving the mappings
    untouched, when the header is unknown or the field is not part of
    ``target``.
    """
    mapping = next((m for m in mappings if m.source_header == source_header), None)
    if mapping is None:
        return False
    if canonical_field is None:
        mapping.canonical_field = None
        mapping.group_index = None
        return True
    definition = _definition(target, canonical_field)
    if definition is None:
        return False
    mapping.canonical_field = canonical_field
    mapping.group_index = _clamp(group_index or 1, max_groups) if definition.is_grouped else None
    return True


def missing_required_fields(
    mappings: Iterable[ColumnMapping], target: ImportTarget = ImportTarget.UNIFIED
) -> list[FieldDefinition]:
    mapped = {m.canonical_field for m in mappings if m.canonical_field}
    return [f for f in required_fields(target) if f.key not in mapped]


def all_required_fields_mapped(
    mappings: Iterable[ColumnMapping], target: ImportTarget = ImportTarget.UNIFIED
) -> bool:
    """Precondition for validation: every required field has a column."""
    return not missing_required_fields(mappings, target)


def detected_beneficiary_count(mappings: Iterable[ColumnMapping]) -> int:
    return len({m.group_index for m in mappings if m.group_index is not None})


class MappingIncompleteError(Exception):
    """Required fields have no column; re-map and retry."""

    def __init__(self, sheet: str, missing: list[FieldDefinition]) -> None:
        self.sheet = sheet
        self.missing = missing
        labels = ", ".join(f.display_label for f in missing)
        super().__init__(f"sheet '{sheet}': campos requeridos sin columna: {labels}")


def require_complete_mapping(
    mappings: Iterable[ColumnMapping], target: ImportTarget, sheet: str = ""
) -> None:
    """Raise MappingIncompleteError when a required field is unmapped."""
    missing = missing_required_fields(mappings, target)
    if missing:
        raise MappingIncompleteError(sheet, missing)
