from __future__ import annotations

import pytest

from brokerage_import.excel.template import unified_template
from brokerage_import.models import ColumnMapping, ImportTarget
from brokerage_import.services.column_mapper import (
    MappingIncompleteError,
    all_required_fields_mapped,
    auto_map_columns,
    detect_group_index,
    detected_beneficiary_count,
    map_header,
    missing_required_fields,
    remap,
    require_complete_mapping,
)


def _field(header: str, target: ImportTarget = ImportTarget.UNIFIED) -> tuple[str | None, int | None]:
    m = map_header(header, target)
    return m.canonical_field, m.group_index


def test_cedula_tomador_maps_to_client_identification():
    assert _field("Cédula Tomador") == ("client_identification_number", None)
    assert _field("CEDULA TOMADOR") == ("client_identification_number", None)


def test_nombre_ben_2_maps_to_beneficiary_block_two():
    assert _field("Nombre Ben. 2") == ("beneficiary_first_name", 2)
    assert _field("Apellido Beneficiario 3") == ("beneficiary_last_name", 3)


def test_relationship_word_qualifies_beneficiary_with_trailing_index():
    assert _field("Parentesco 4") == ("beneficiary_relationship", 4)
    assert _field("Parentesco") == ("beneficiary_relationship", 1)


def test_group_index_clamped_to_max():
    assert map_header("Nombre Ben. 12", max_groups=7).group_index == 7
    assert detect_group_index("Parentesco 9") == 7
    assert detect_group_index("Parentesco 9", max_groups=10) == 9
    assert detect_group_index("Nombre") is None


@pytest.mark.parametrize(
    "header, field",
    [
        ("Número Póliza", "policy_number"),
        ("Nro. Póliza", "policy_number"),
        ("Aseguradora", "insurer_name"),
        ("Producto", "product_name"),
        ("Fecha Inicio", "start_date"),
        ("Fecha Fin", "end_date"),
        ("Fecha Renovación", "end_date"),
        ("Estado", "status"),
        ("Prima", "premium"),
        ("Fecha Pago Prima", "premium_payment_date"),
        ("Frecuencia Pago", "payment_frequency"),
        ("Suma Asegurada", "coverage_amount"),
        ("Deducible", "deductible"),
        ("Asesor Principal", "primary_advisor_name"),
        ("Asesor Secundario", "secondary_advisor_name"),
        ("Notas Póliza", "policy_notes"),
        ("Estado Tomador", "client_province"),
        ("Móvil Tomador", "client_mobile"),
        ("F. Nacimiento Tomador", "client_birth_date"),
        ("Tipo ID Tomador", "client_identification_type"),
        ("Nombres", "client_first_name"),
        ("Cédula", "client_identification_number"),
    ],
)
def test_unified_root_and_holder_rules(header, field):
    assert _field(header) == (field, None)


def test_unknown_and_blank_headers_are_ignored():
    assert _field("Color favorito") == (None, None)
    assert _field("") == (None, None)
    assert map_header(None).is_ignored  # type: ignore[arg-type]


def test_every_template_header_is_recognized():
    headers = list(unified_template().columns)
    mappings = auto_map_columns(headers)
    assert [m.source_header for m in mappings] == headers
    assert all(not m.is_ignored for m in mappings), [m.source_header for m in mappings if m.is_ignored]
    assert detected_beneficiary_count(mappings) == 7
    assert all_required_fields_mapped(mappings, ImportTarget.UNIFIED)


@pytest.mark.parametrize(
    "target, header, field",
    [
        (ImportTarget.CLIENT, "Tipo Identificación", "identification_type"),
        (ImportTarget.CLIENT, "Número Identificación", "identification_number"),
        (ImportTarget.CLIENT, "Lugar de Trabajo", "workplace"),
        (ImportTarget.CLIENT, "Notas", "notes"),
        (ImportTarget.POLICY, "Cédula Tomador", "client_identification"),
        (ImportTarget.POLICY, "Número Póliza", "policy_number"),
        (ImportTarget.POLICY, "Notas", "notes"),
        (ImportTarget.BENEFICIARY, "Número Póliza", "policy_number"),
        (ImportTarget.BENEFICIARY, "Porcentaje", "percentage"),
        (ImportTarget.BENEFICIARY, "Parentesco", "relationship"),
        (ImportTarget.BENEFICIARY, "Número Identificación", "identification_number"),
    ],
)
def test_separate_sheet_rules(target, header, field):
    assert _field(header, target) == (field, None)


def test_missing_required_fields_names_the_gaps():
    mappings = auto_map_columns(["Número Póliza", "Fecha Inicio", "Cédula Tomador"])
    missing = {f.key for f in missing_required_fields(mappings)}
    assert missing == {"end_date", "client_first_name", "client_last_name"}
    assert not all_required_fields_mapped(mappings)
    with pytest.raises(MappingIncompleteError) as e:
        require_complete_mapping(mappings, ImportTarget.UNIFIED, "Hoja1")
    assert e.value.sheet == "Hoja1"
    assert {f.key for f in e.value.missing} == missing


def test_remap_override_and_ignore():
    mappings = auto_map_columns(["Columna X", "Nombre Ben. 1"])
    assert remap(mappings, "Columna X", "policy_notes") is True
    assert mappings[0] == ColumnMapping("Columna X", "policy_notes", None)

    assert remap(mappings, "Columna X", "beneficiary_phone", group_index=30) is True
    assert mappings[0].group_index == 7

    assert remap(mappings, "Nombre Ben. 1", None) is True
    assert mappings[1].is_ignored and mappings[1].group_index is None


def test_remap_rejects_unknown_header_or_field():
    mappings = auto_map_columns(["Prima"])
    assert remap(mappings, "No existe", "premium") is False
    assert remap(mappings, "Prima", "percentage") is False  # not a unified field
    assert mappings[0].canonical_field == "premium"


def test_mapping_is_case_and_accent_insensitive():
    a = auto_map_columns(["NÚMERO PÓLIZA", "cédula tomador", "nombre ben. 2"])
    b = auto_map_columns(["numero poliza", "CEDULA TOMADOR", "Nombre Ben. 2"])
    assert [(m.canonical_field, m.group_index) for m in a] == [(m.canonical_field, m.group_index) for m in b]
