from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Canonical field schemas for every import target.

The Column Mapper proposes mappings onto these keys and the Validator reads the
``required`` flags. Tables are static; a sheet's import target decides which
table applies:

- UNIFIED_FIELDS: one policy-centric row carrying client (tomador) data and up
  to N repeated beneficiary blocks.
- CLIENT_FIELDS / POLICY_FIELDS / BENEFICIARY_FIELDS: the separate-sheet layout
  where each entity lives on its own worksheet.
"""

__all__ = [
    "FieldDefinition",
    "ImportTarget",
    "UNIFIED_FIELDS",
    "CLIENT_FIELDS",
    "POLICY_FIELDS",
    "BENEFICIARY_FIELDS",
    "fields_for",
    "required_fields",
    "field_label",
]


class ImportTarget(Enum):
    """Which field table a sheet is mapped against."""
    UNIFIED = "unified"
    CLIENT = "client"
    POLICY = "policy"
    BENEFICIARY = "beneficiary"


@dataclass(frozen=True)
class FieldDefinition:
    """One canonical field.

    Attributes:
        key: canonical identifier used by mappings and entity field dicts
        display_label: operator-facing label (Spanish, as shown in templates)
        required: must be mapped before validation and present per entity
        group: "root" for entity-level fields, "child" for fields repeated per
            beneficiary block (carry a group index in ColumnMapping)
        section: display grouping (policy / client / beneficiary)
    """
    key: str
    display_label: str
    required: bool
    group: str = "root"
    section: str = "policy"

    @property
    def is_grouped(self) -> bool:
        return self.group == "child"


def _f(key: str, label: str, required: bool = False, group: str = "root", section: str = "policy") -> FieldDefinition:
    return FieldDefinition(key=key, display_label=label, required=required, group=group, section=section)


UNIFIED_FIELDS: tuple[FieldDefinition, ...] = (
    # policy
    _f("policy_number", "Número de Póliza", True),
    _f("start_date", "Fecha Inicio", True),
    _f("end_date", "Fecha Renovación", True),
    _f("insurer_name", "Aseguradora"),
    _f("product_name", "Producto"),
    _f("status", "Estado Póliza"),
    _f("premium", "Prima (USD)"),
    _f("payment_frequency", "Frecuencia de Pago"),
    _f("coverage_amount", "Suma Asegurada"),
    _f("deductible", "Deducible"),
    _f("premium_payment_date", "Fecha Pago Prima"),
    _f("primary_advisor_name", "Asesor Principal"),
    _f("secondary_advisor_name", "Asesor Secundario"),
    _f("policy_notes", "Notas Póliza"),
    # client (tomador)
    _f("client_identification_type", "Tipo ID Tomador", section="client"),
    _f("client_identification_number", "Cédula Tomador", True, section="client"),
    _f("client_first_name", "Nombres Tomador", True, section="client"),
    _f("client_last_name", "Apellidos Tomador", True, section="client"),
    _f("client_email", "Email Tomador", section="client"),
    _f("client_phone", "Teléfono Tomador", section="client"),
    _f("client_mobile", "Móvil Tomador", section="client"),
    _f("client_address", "Dirección Tomador", section="client"),
    _f("client_city", "Ciudad Tomador", section="client"),
    _f("client_province", "Estado Tomador", section="client"),
    _f("client_birth_date", "F. Nacimiento Tomador", section="client"),
    _f("client_occupation", "Ocupación Tomador", section="client"),
    _f("client_workplace", "Trabajo Tomador", section="client"),
    # beneficiary blocks (group index 1..N)
    _f("beneficiary_first_name", "Nombres Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_last_name", "Apellidos Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_identification_type", "Tipo ID Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_identification_number", "Cédula Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_relationship", "Parentesco", group="child", section="beneficiary"),
    _f("beneficiary_birth_date", "F. Nacimiento Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_phone", "Teléfono Beneficiario", group="child", section="beneficiary"),
    _f("beneficiary_email", "Email Beneficiario", group="child", section="beneficiary"),
)

CLIENT_FIELDS: tuple[FieldDefinition, ...] = (
    _f("identification_type", "Tipo de identificación", True, section="client"),
    _f("identification_number", "Número de identificación", True, section="client"),
    _f("first_name", "Nombres", True, section="client"),
    _f("last_name", "Apellidos", True, section="client"),
    _f("email", "Correo electrónico", section="client"),
    _f("phone", "Teléfono fijo", section="client"),
    _f("mobile", "Teléfono móvil", section="client"),
    _f("address", "Dirección", section="client"),
    _f("city", "Ciudad", section="client"),
    _f("province", "Estado", section="client"),
    _f("birth_date", "Fecha de nacimiento", section="client"),
    _f("occupation", "Ocupación", section="client"),
    _f("workplace", "Lugar de trabajo", section="client"),
    _f("notes", "Notas", section="client"),
)

POLICY_FIELDS: tuple[FieldDefinition, ...] = (
    _f("client_identification", "Cédula del tomador", True),
    _f("policy_number", "Número de póliza", True),
    _f("insurer_name", "Aseguradora"),
    _f("product_name", "Producto"),
    _f("start_date", "Fecha de inicio", True),
    _f("end_date", "Fecha de renovación", True),
    _f("status", "Estado"),
    _f("premium", "Prima (USD)"),
    _f("payment_frequency", "Frecuencia de pago"),
    _f("coverage_amount", "Suma asegurada"),
    _f("deductible", "Deducible"),
    _f("premium_payment_date", "Fecha pago prima"),
    _f("primary_advisor_name", "Asesor Principal"),
    _f("secondary_advisor_name", "Asesor Secundario"),
    _f("notes", "Notas"),
)

BENEFICIARY_FIELDS: tuple[FieldDefinition, ...] = (
    _f("policy_number", "Número de póliza", True, section="beneficiary"),
    _f("first_name", "Nombres", True, section="beneficiary"),
    _f("last_name", "Apellidos", True, section="beneficiary"),
    _f("identification_type", "Tipo identificación", section="beneficiary"),
    _f("identification_number", "Número identificación", section="beneficiary"),
    _f("relationship", "Parentesco", True, section="beneficiary"),
    _f("percentage", "Porcentaje", section="beneficiary"),
    _f("birth_date", "Fecha nacimiento", section="beneficiary"),
    _f("phone", "Teléfono", section="beneficiary"),
    _f("email", "Correo", section="beneficiary"),
)

_TABLES: dict[ImportTarget, tuple[FieldDefinition, ...]] = {
    ImportTarget.UNIFIED: UNIFIED_FIELDS,
    ImportTarget.CLIENT: CLIENT_FIELDS,
    ImportTarget.POLICY: POLICY_FIELDS,
    ImportTarget.BENEFICIARY: BENEFICIARY_FIELDS,
}


def fields_for(target: ImportTarget) -> tuple[FieldDefinition, ...]:
    return _TABLES[target]


def required_fields(target: ImportTarget) -> list[FieldDefinition]:
    return [f for f in _TABLES[target] if f.required]


def field_label(target: ImportTarget, key: str) -> str:
    """Display label for ``key`` (falls back to the key itself)."""
    for f in _TABLES[target]:
        if f.key == key:
            return f.display_label
    return key
