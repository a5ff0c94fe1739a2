from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from ..models.column_mapping import ColumnMapping
from ..models.entities import BeneficiaryEntity, ClientEntity, PolicyEntity
from ..models.row_data import RowData
from . import normalizer as norm

"""Row grouper / entity assembler.

Rows are folded into entities by natural key:

* unified layout: one PolicyEntity per normalized policy number; root fields
  (policy and holder data) come from the first row of the group, beneficiary
  blocks are collected from every row of the group;
* client sheet: one ClientEntity per normalized identification number;
* policy sheet: one PolicyEntity per normalized policy number;
* beneficiary sheet: one BeneficiaryEntity per row.

Rows without a natural key produce no entity. Field values are normalized
here; date cells that were filled in but did not parse are recorded in
``invalid_dates`` for the validator.
"""

__all__ = [
    "extract_row",
    "normalize_policy_fields",
    "normalize_client_fields",
    "normalize_beneficiary_fields",
    "group_unified",
    "group_clients",
    "group_policies",
    "group_beneficiaries",
]

logger = logging.getLogger(__name__)

_CLIENT_PREFIX = "client_"
_BENEFICIARY_PREFIX = "beneficiary_"

_TEXT = norm.clean_text


def _lower_text(value: Any) -> str | None:
    text = norm.clean_text(value)
    return text.lower() if text else None


_POLICY_NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "policy_number": _TEXT,
    "client_identification": _TEXT,
    "insurer_name": _TEXT,
    "product_name": _TEXT,
    "start_date": norm.parse_date,
    "end_date": norm.parse_date,
    "premium_payment_date": norm.parse_date,
    "status": norm.normalize_policy_status,
    "premium": norm.parse_money,
    "coverage_amount": norm.parse_money,
    "deductible": norm.parse_money,
    "payment_frequency": norm.normalize_payment_frequency,
    "primary_advisor_name": _TEXT,
    "secondary_advisor_name": _TEXT,
    "notes": _TEXT,
}

_CLIENT_NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "identification_type": norm.normalize_identification_type,
    "identification_number": _TEXT,
    "first_name": _TEXT,
    "last_name": _TEXT,
    "email": _lower_text,
    "phone": _TEXT,
    "mobile": _TEXT,
    "address": _TEXT,
    "city": _TEXT,
    "province": _TEXT,
    "birth_date": norm.parse_date,
    "occupation": _TEXT,
    "workplace": _TEXT,
    "notes": _TEXT,
}

_BENEFICIARY_NORMALIZERS: dict[str, Callable[[Any], Any]] = {
    "policy_number": _TEXT,
    "first_name": _TEXT,
    "last_name": _TEXT,
    "identification_type": norm.normalize_identification_type,
    "identification_number": _TEXT,
    "relationship": norm.normalize_relationship,
    "percentage": lambda v: norm.parse_number(v, default=None),
    "birth_date": norm.parse_date,
    "phone": _TEXT,
    "email": _lower_text,
}

# enum normalizers always yield a value; these keep their default even when absent
_ALWAYS_SET = {"identification_type", "relationship", "status", "payment_frequency"}


def _normalize(
    raw: dict[str, Any], table: dict[str, Callable[[Any], Any]]
) -> tuple[dict[str, Any], set[str]]:
    out: dict[str, Any] = {}
    invalid: set[str] = set()
    for key, fn in table.items():
        value = raw.get(key)
        if value is None and key not in _ALWAYS_SET:
            out[key] = None
            continue
        parsed = fn(value)
        if fn is norm.parse_date and parsed is None:
            invalid.add(key)
        out[key] = parsed
    return out, invalid


def normalize_policy_fields(raw: dict[str, Any]) -> tuple[dict[str, Any], set[str]]:
    return _normalize(raw, _POLICY_NORMALIZERS)


def normalize_client_fields(raw: dict[str, Any]) -> tuple[dict[str, Any], set[str]]:
    return _normalize(raw, _CLIENT_NORMALIZERS)


def normalize_beneficiary_fields(raw: dict[str, Any]) -> tuple[dict[str, Any], set[str]]:
    return _normalize(raw, _BENEFICIARY_NORMALIZERS)


def _present(value: Any) -> bool:
    return norm.clean_text(value) is not None


def extract_row(
    row: RowData, mappings: Iterable[ColumnMapping]
) -> tuple[dict[str, Any], dict[int, dict[str, Any]]]:
    """Split one row into root values and per-group child values.

    Returns ``(root, children)`` where ``root`` maps canonical field -> raw cell
    and ``children`` maps group index -> {canonical field -> raw cell}. When two
    columns map to the same field the first non-empty cell wins.
    """
    root: dict[str, Any] = {}
    children: dict[int, dict[str, Any]] = {}
    for m in mappings:
        if m.canonical_field is None:
            continue
        value = row.get(m.source_header)
        target = children.setdefault(m.group_index, {}) if m.group_index is not None else root
        if not _present(target.get(m.canonical_field)) and _present(value):
            target[m.canonical_field] = value
        else:
            target.setdefault(m.canonical_field, None)
    return root, children


def _split_unified_root(root: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
    policy_raw: dict[str, Any] = {}
    client_raw: dict[str, Any] = {}
    for key, value in root.items():
        if key.startswith(_CLIENT_PREFIX):
            client_raw[key[len(_CLIENT_PREFIX):]] = value
        elif key == "policy_notes":
            policy_raw["notes"] = value
        else:
            policy_raw[key] = value
    return policy_raw, client_raw


def _nested_beneficiaries(
    row: RowData, children: dict[int, dict[str, Any]], key: str
) -> list[BeneficiaryEntity]:
    out: list[BeneficiaryEntity] = []
    for index in sorted(children):
        raw = {
            k[len(_BENEFICIARY_PREFIX):] if k.startswith(_BENEFICIARY_PREFIX) else k: v
            for k, v in children[index].items()
        }
        if not (_present(raw.get("first_name")) or _present(raw.get("last_name"))):
            continue
        fields, invalid = normalize_beneficiary_fields(raw)
        fields.pop("policy_number", None)
        fields.pop("percentage", None)
        out.append(
            BeneficiaryEntity(
                fields=fields,
                row_number=row.row_number,
                group_index=index,
                policy_key=key,
                invalid_dates=frozenset(invalid),
            )
        )
    return out


def _group_rows(
    rows: Sequence[RowData], mappings: Sequence[ColumnMapping], key_field: str, key_fn: Callable[[Any], str]
) -> dict[str, list[tuple[RowData, dict[str, Any], dict[int, dict[str, Any]]]]]:
    groups: dict[str, list[tuple[RowData, dict[str, Any], dict[int, dict[str, Any]]]]] = {}
    for row in rows:
        root, children = extract_row(row, mappings)
        key = key_fn(root.get(key_field))
        if not key:
            logger.debug("row %d dropped: no %s", row.row_number, key_field)
            continue
        groups.setdefault(key, []).append((row, root, children))
    return groups


def group_unified(rows: Sequence[RowData], mappings: Sequence[ColumnMapping]) -> tuple[PolicyEntity, ...]:
    """Assemble policy-centric entities from a unified sheet."""
    entities: list[PolicyEntity] = []
    for key, members in _group_rows(rows, mappings, "policy_number", norm.policy_key).items():
        _, first_root, _ = members[0]
        policy_raw, client_raw = _split_unified_root(first_root)
        policy_fields, policy_invalid = normalize_policy_fields(policy_raw)
        policy_fields.pop("client_identification", None)
        client_fields, client_invalid = normalize_client_fields(client_raw)
        client_fields.pop("notes", None)

        beneficiaries: list[BeneficiaryEntity] = []
        for row, _, children in members:
            beneficiaries.extend(_nested_beneficiaries(row, children, key))

        invalid = set(policy_invalid) | {f"{_CLIENT_PREFIX}{k}" for k in client_invalid}
        entities.append(
            PolicyEntity(
                natural_key=key,
                fields=policy_fields,
                row_numbers=tuple(r.row_number for r, _, _ in members),
                client_key=norm.identification_key(client_fields.get("identification_number")),
                client=client_fields,
                beneficiaries=tuple(beneficiaries),
                invalid_dates=frozenset(invalid),
            )
        )
    logger.debug("grouped %d rows into %d policies", len(rows), len(entities))
    return tuple(entities)


def group_clients(rows: Sequence[RowData], mappings: Sequence[ColumnMapping]) -> tuple[ClientEntity, ...]:
    entities: list[ClientEntity] = []
    for key, members in _group_rows(rows, mappings, "identification_number", norm.identification_key).items():
        fields, invalid = normalize_client_fields(members[0][1])
        entities.append(
            ClientEntity(
                natural_key=key,
                fields=fields,
                row_numbers=tuple(r.row_number for r, _, _ in members),
                invalid_dates=frozenset(invalid),
            )
        )
    return tuple(entities)


def group_policies(rows: Sequence[RowData], mappings: Sequence[ColumnMapping]) -> tuple[PolicyEntity, ...]:
    entities: list[PolicyEntity] = []
    for key, members in _group_rows(rows, mappings, "policy_number", norm.policy_key).items():
        fields, invalid = normalize_policy_fields(members[0][1])
        entities.append(
            PolicyEntity(
                natural_key=key,
                fields=fields,
                row_numbers=tuple(r.row_number for r, _, _ in members),
                client_key=norm.identification_key(fields.get("client_identification")),
                invalid_dates=frozenset(invalid),
            )
        )
    return tuple(entities)


def group_beneficiaries(
    rows: Sequence[RowData], mappings: Sequence[ColumnMapping]
) -> tuple[BeneficiaryEntity, ...]:
    entities: list[BeneficiaryEntity] = []
    for row in rows:
        root, _ = extract_row(row, mappings)
        fields, invalid = normalize_beneficiary_fields(root)
        entities.append(
            BeneficiaryEntity(
                fields=fields,
                row_number=row.row_number,
                policy_key=norm.policy_key(fields.get("policy_number")) or None,
                invalid_dates=frozenset(invalid),
            )
        )
    return tuple(entities)
