from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from ..models.entities import (
    BeneficiaryEntity,
    ClientEntity,
    ImportBatch,
    PolicyEntity,
    ResolvedReference,
    ValidationIssue,
    ValidationVerdict,
)
from ..models.field_definitions import FieldDefinition, ImportTarget, field_label, required_fields

"""Validator: entity -> ValidationVerdict.

Checks, in order: required-field presence (one issue per missing field, the
message names the field), dates that were supplied but did not parse, e-mail
shape, and same-batch parent references for the separate-sheet layout.

Pure: verdicts depend only on the entity, so validating twice yields equal
verdicts and validating one entity never changes another's.
"""

__all__ = [
    "EMAIL_RE",
    "is_valid_email",
    "validate_policy",
    "validate_client",
    "validate_beneficiary",
    "validate_batch",
]

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_CLIENT_PREFIX = "client_"


def is_valid_email(value: Any) -> bool:
    return isinstance(value, str) and EMAIL_RE.match(value.strip()) is not None


def _missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _required(
    values: dict[str, Any], defs: Iterable[FieldDefinition], invalid_dates: frozenset[str], row: int
) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for f in defs:
        # a date that was filled in but unparseable is reported as a format error instead
        if f.key in invalid_dates:
            continue
        if _missing(values.get(f.key)):
            issues.append(ValidationIssue(f.key, f"{f.display_label} requerido", row))
    return issues


def _dates(target: ImportTarget, invalid_dates: frozenset[str], row: int, prefix: str = "") -> list[ValidationIssue]:
    return [
        ValidationIssue(key, f"{field_label(target, prefix + key)}: fecha inválida", row)
        for key in sorted(invalid_dates)
    ]


def _email(target: ImportTarget, key: str, value: Any, row: int, prefix: str = "") -> list[ValidationIssue]:
    if _missing(value) or is_valid_email(value):
        return []
    return [ValidationIssue(key, f"{field_label(target, prefix + key)} inválido: {value}", row)]


def _unresolved(ref: ResolvedReference | None, key: str, message: str, row: int) -> list[ValidationIssue]:
    if ref is None or ref.is_resolved:
        return []
    return [ValidationIssue(key, f"{message}: {ref.raw_label}", row)]


def _unified_values(policy: PolicyEntity) -> dict[str, Any]:
    values = dict(policy.fields)
    for k, v in (policy.client or {}).items():
        values[f"{_CLIENT_PREFIX}{k}"] = v
    return values


def validate_policy(policy: PolicyEntity, layout: str = "unified") -> PolicyEntity:
    """Return ``policy`` with a fresh verdict. Nested beneficiaries are validated separately."""
    row = policy.first_row
    if layout == "unified":
        target = ImportTarget.UNIFIED
        values = _unified_values(policy)
        email_key = "client_email"
    else:
        target = ImportTarget.POLICY
        values = policy.fields
        email_key = None

    issues = _required(values, required_fields(target), policy.invalid_dates, row)
    issues += _dates(target, policy.invalid_dates, row)
    if email_key:
        issues += _email(target, email_key, values.get(email_key), row)
    if layout != "unified":
        issues += _unresolved(policy.client_ref, "client_identification", "Cliente no encontrado", row)
    return replace(policy, verdict=ValidationVerdict(tuple(issues)))


def validate_client(client: ClientEntity) -> ClientEntity:
    target = ImportTarget.CLIENT
    row = client.first_row
    issues = _required(client.fields, required_fields(target), client.invalid_dates, row)
    issues += _dates(target, client.invalid_dates, row)
    issues += _email(target, "email", client.fields.get("email"), row)
    return replace(client, verdict=ValidationVerdict(tuple(issues)))


def validate_beneficiary(beneficiary: BeneficiaryEntity) -> BeneficiaryEntity:
    """Nested (unified) beneficiaries only carry format checks; sheet rows also need their policy."""
    row = beneficiary.row_number
    issues: list[ValidationIssue] = []
    if beneficiary.group_index is not None:
        target, prefix = ImportTarget.UNIFIED, "beneficiary_"
    else:
        target, prefix = ImportTarget.BENEFICIARY, ""
        issues += _required(beneficiary.fields, required_fields(target), beneficiary.invalid_dates, row)
        issues += _unresolved(beneficiary.policy_ref, "policy_number", "Póliza no encontrada", row)
        pct = beneficiary.fields.get("percentage")
        if pct is not None and not (0 <= pct <= 100):
            issues.append(ValidationIssue("percentage", f"{field_label(target, 'percentage')} fuera de rango: {pct}", row))
    issues += _dates(target, beneficiary.invalid_dates, row, prefix)
    issues += _email(target, "email", beneficiary.fields.get("email"), row, prefix)
    return replace(beneficiary, verdict=ValidationVerdict(tuple(issues)))


def validate_batch(batch: ImportBatch) -> ImportBatch:
    policies = tuple(
        replace(
            validate_policy(p, batch.layout),
            beneficiaries=tuple(validate_beneficiary(b) for b in p.beneficiaries),
        )
        for p in batch.policies
    )
    return replace(
        batch,
        policies=policies,
        clients=tuple(validate_client(c) for c in batch.clients),
        beneficiaries=tuple(validate_beneficiary(b) for b in batch.beneficiaries),
    )
