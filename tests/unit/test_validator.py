from __future__ import annotations

from brokerage_import.models import (
    BeneficiaryEntity,
    ClientEntity,
    ImportBatch,
    PolicyEntity,
    ResolvedReference,
)
from brokerage_import.services.validator import (
    is_valid_email,
    validate_batch,
    validate_beneficiary,
    validate_client,
    validate_policy,
)

CLIENT = {"identification_number": "V-1", "first_name": "Juan", "last_name": "Pérez", "email": "juan@correo.com"}


def _unified(client=None, invalid=frozenset(), **fields) -> PolicyEntity:
    values = {"policy_number": "POL-1", "start_date": "2024-01-01", "end_date": "2025-01-01"}
    values.update(fields)
    return PolicyEntity(
        natural_key="pol-1",
        fields=values,
        row_numbers=(5, 6),
        client_key="v1",
        client=dict(CLIENT if client is None else client),
        invalid_dates=invalid,
    )


def _messages(entity) -> list[str]:
    return [i.message for i in entity.verdict.errors]


def test_valid_unified_policy():
    p = validate_policy(_unified())
    assert p.is_valid
    assert p.verdict.errors == ()


def test_missing_required_fields_named():
    p = validate_policy(_unified(client={"identification_number": "V-1"}, end_date=None))
    assert _messages(p) == [
        "Fecha Renovación requerido",
        "Nombres Tomador requerido",
        "Apellidos Tomador requerido",
    ]
    assert {i.row for i in p.verdict.errors} == {5}
    assert not p.is_valid


def test_unparseable_date_reported_as_format_error():
    p = validate_policy(_unified(end_date=None, invalid=frozenset({"end_date"})))
    assert _messages(p) == ["Fecha Renovación: fecha inválida"]


def test_client_birth_date_format_error_uses_holder_label():
    p = validate_policy(_unified(invalid=frozenset({"client_birth_date"})))
    assert _messages(p) == ["F. Nacimiento Tomador: fecha inválida"]


def test_bad_holder_email():
    p = validate_policy(_unified(client={**CLIENT, "email": "juan@"}))
    assert _messages(p) == ["Email Tomador inválido: juan@"]


def test_email_shape():
    assert is_valid_email("a@b.co")
    assert not is_valid_email("a b@c.d")
    assert not is_valid_email("a@b")
    assert not is_valid_email(None)


def test_multi_policy_needs_resolved_client():
    policy = PolicyEntity(
        natural_key="p-1",
        fields={"policy_number": "P-1", "client_identification": "V-404", "start_date": "2024-01-01", "end_date": "2025-01-01"},
        row_numbers=(3,),
        client_key="v404",
        client_ref=ResolvedReference("V-404"),
    )
    p = validate_policy(policy, "multi")
    assert _messages(p) == ["Cliente no encontrado: V-404"]


def test_client_sheet_rules():
    client = ClientEntity(
        natural_key="v1",
        fields={"identification_type": "cedula", "identification_number": "V-1", "first_name": "Ana", "last_name": None, "email": "nope"},
        row_numbers=(4,),
    )
    c = validate_client(client)
    assert _messages(c) == ["Apellidos requerido", "Correo electrónico inválido: nope"]


def test_nested_beneficiary_only_format_checks():
    b = BeneficiaryEntity(fields={"first_name": "Ana", "email": "x"}, row_number=2, group_index=3, policy_key="pol-1")
    assert _messages(validate_beneficiary(b)) == ["Email Beneficiario inválido: x"]
    ok = BeneficiaryEntity(fields={"last_name": "Ruiz"}, row_number=2, group_index=1, policy_key="pol-1")
    assert validate_beneficiary(ok).is_valid


def test_sheet_beneficiary_checks():
    b = BeneficiaryEntity(
        fields={"policy_number": "P-9", "first_name": "Ana", "last_name": "Ruiz", "relationship": "hijo", "percentage": 120.0},
        row_number=7,
        policy_key="p-9",
        policy_ref=ResolvedReference("P-9"),
    )
    assert _messages(validate_beneficiary(b)) == [
        "Póliza no encontrada: P-9",
        "Porcentaje fuera de rango: 120.0",
    ]


def test_validation_is_idempotent_and_isolated():
    good = _unified()
    bad = _unified(client={"identification_number": "V-2"})
    batch = ImportBatch(layout="unified", policies=(good, bad))
    once = validate_batch(batch)
    twice = validate_batch(once)
    assert once == twice
    assert once.policies[0].is_valid and not once.policies[1].is_valid
    assert validate_batch(ImportBatch(layout="unified", policies=(good,))).policies[0] == once.policies[0]
    assert once.invalid_count == 1 and once.valid_count == 1
