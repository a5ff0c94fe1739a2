from __future__ import annotations

from brokerage_import.models import (
    Advisor,
    BeneficiaryEntity,
    ClientEntity,
    ExistingClient,
    ExistingPolicy,
    ImportBatch,
    Insurer,
    PolicyEntity,
    Product,
    ReferenceData,
)
from brokerage_import.services.resolver import (
    client_lookup,
    match_label,
    resolve_advisor,
    resolve_batch,
    resolve_insurer,
    resolve_product,
)

INSURERS = (Insurer("ins-1", "Mercantil Seguros"), Insurer("ins-2", "BMI"), Insurer("ins-3", "BMI Plus"))
PRODUCTS = (
    Product("prd-1", "Global Benefits Premium", "ins-1"),
    Product("prd-2", "Azure", "ins-2"),
    Product("prd-3", "Azure Plus", "ins-1"),
)
ADVISORS = (
    Advisor("adv-1", "Maria Gabriela Estaba"),
    Advisor("adv-2", "Lorene Barani"),
    Advisor("adv-3", "Paola Barani", is_active=False),
)


def _refs(**kw) -> ReferenceData:
    return ReferenceData(insurers=INSURERS, products=PRODUCTS, advisors=ADVISORS, **kw)


def _policy(number: str, client_id: str = "V-1", *, embedded: bool = True, **fields) -> PolicyEntity:
    values = {"policy_number": number, "insurer_name": "Mercantil", "product_name": "Global Benefits"}
    values.update(fields)
    client = {"identification_number": client_id, "first_name": "Juan", "last_name": "Pérez"} if embedded else None
    if not embedded:
        values["client_identification"] = client_id
    return PolicyEntity(
        natural_key=number.lower(),
        fields=values,
        row_numbers=(2,),
        client_key=client_id.replace("-", "").lower(),
        client=client,
    )


def test_match_label_exact_beats_containment():
    assert match_label("bmi", ((i.id, i.name) for i in INSURERS)) == "ins-2"
    assert match_label("BMI Plus", ((i.id, i.name) for i in INSURERS)) == "ins-3"


def test_match_label_containment_both_directions():
    assert match_label("mercantil", ((i.id, i.name) for i in INSURERS)) == "ins-1"
    assert match_label("Seguros Mercantil Seguros C.A.", ((i.id, i.name) for i in INSURERS)) == "ins-1"
    assert match_label("Zurich", ((i.id, i.name) for i in INSURERS)) is None
    assert match_label("", ((i.id, i.name) for i in INSURERS)) is None


def test_resolve_insurer_keeps_label_when_unmatched():
    ref = resolve_insurer("Zurich", INSURERS)
    assert ref.raw_label == "Zurich" and not ref.is_resolved
    assert resolve_insurer(None, INSURERS) is None


def test_product_scoped_to_insurer():
    assert resolve_product("Azure", PRODUCTS, "ins-2").resolved_id == "prd-2"
    # same label under another insurer only sees that insurer's catalog
    assert resolve_product("Azure", PRODUCTS, "ins-1").resolved_id == "prd-3"
    assert resolve_product("Azure", PRODUCTS, None).resolved_id is None


def test_inactive_advisor_never_matches():
    assert resolve_advisor("maria gabriela", ADVISORS).resolved_id == "adv-1"
    assert resolve_advisor("Barani", ADVISORS).resolved_id == "adv-2"
    assert resolve_advisor("Paola Barani", ADVISORS).resolved_id is None


def test_client_lookup_ignores_separators():
    refs = ReferenceData(clients=(ExistingClient("c-1", "V-12345678"),))
    assert client_lookup(refs) == {"v12345678": "c-1"}


def test_existing_client_matched_by_identification():
    batch = ImportBatch(layout="unified", policies=(_policy("POL-1", "v12345678"),))
    refs = _refs(clients=(ExistingClient("c-1", "V-12345678"),))
    (p,) = resolve_batch(batch, refs).policies
    assert p.client_ref.resolved_id == "c-1"
    assert p.is_new_client is False
    assert p.insurer_ref.resolved_id == "ins-1"
    assert p.product_ref.resolved_id == "prd-1"


def test_new_holder_shared_placeholder_across_policies():
    batch = ImportBatch(layout="unified", policies=(_policy("POL-1", "V-9"), _policy("POL-2", "v9")))
    p1, p2 = resolve_batch(batch, _refs()).policies
    assert p1.is_new_client and p2.is_new_client
    assert p1.client_ref.resolved_id == p2.client_ref.resolved_id
    assert p1.client_ref.is_placeholder
    assert p1.placeholder_id != p2.placeholder_id
    assert p1.placeholder_id.startswith("new-")


def test_existing_policy_marked_as_update():
    batch = ImportBatch(layout="unified", policies=(_policy("POL-1"),))
    refs = _refs(policies=(ExistingPolicy("p-77", "pol-1 "),))
    (p,) = resolve_batch(batch, refs).policies
    assert p.is_update and p.existing_policy_id == "p-77"
    assert p.placeholder_id is None


def test_multi_sheet_references():
    client = ClientEntity(natural_key="v5", fields={"identification_number": "V-5"}, row_numbers=(2,))
    policy = _policy("P-1", "V-5", embedded=False)
    orphan = _policy("P-2", "V-404", embedded=False)
    ben = BeneficiaryEntity(fields={"policy_number": "P-1"}, row_number=2, policy_key="p-1")
    lost = BeneficiaryEntity(fields={"policy_number": "P-9"}, row_number=3, policy_key="p-9")
    batch = ImportBatch(layout="multi", clients=(client,), policies=(policy, orphan), beneficiaries=(ben, lost))

    resolved = resolve_batch(batch, _refs())
    (c,) = resolved.clients
    p, o = resolved.policies
    b, lb = resolved.beneficiaries

    assert c.placeholder_id and c.is_new
    assert p.client_ref.resolved_id == c.placeholder_id and p.is_new_client
    assert o.client_ref.raw_label == "V-404" and not o.client_ref.is_resolved
    assert b.policy_ref.resolved_id == p.placeholder_id
    assert lb.policy_ref.raw_label == "P-9" and not lb.policy_ref.is_resolved


def test_resolution_is_repeatable():
    batch = ImportBatch(layout="unified", policies=(_policy("POL-1"), _policy("POL-2", "V-2")))
    refs = _refs()
    assert resolve_batch(batch, refs) == resolve_batch(batch, refs)
