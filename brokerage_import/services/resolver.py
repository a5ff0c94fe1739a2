from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from ..models.entities import (
    BeneficiaryEntity,
    ClientEntity,
    ImportBatch,
    PolicyEntity,
    ResolvedReference,
    is_placeholder,
    make_placeholder,
)
from ..models.reference_data import Advisor, Insurer, Product, ReferenceData
from . import normalizer as norm

"""Reference resolver.

Matches entity references against the store's reference lists and against
parents created earlier in the same batch:

- clients by normalized identification number (alphanumerics, lower-case);
- existing policies by normalized policy number (marks the entity as update);
- insurers, products (restricted to the resolved insurer) and active advisors
  by case-insensitive containment in either direction. An exact match wins;
  otherwise the first containment match in provider order.

Parents that will only exist after the executor's earlier phases get a
placeholder id (``new-<n>``), which the executor swaps for the id of the
record it creates. An unmatched label is not an error here; it
leaves ``resolved_id`` as None.
"""

__all__ = [
    "match_label",
    "resolve_insurer",
    "resolve_product",
    "resolve_advisor",
    "client_lookup",
    "policy_lookup",
    "resolve_batch",
]

logger = logging.getLogger(__name__)


def match_label(label: str | None, candidates: Iterable[tuple[str, str]]) -> str | None:
    """Return the id of the candidate ``(id, name)`` whose name matches ``label``."""
    needle = norm.fold(label)
    if not needle:
        return None
    contained: str | None = None
    for cid, name in candidates:
        hay = norm.fold(name)
        if not hay:
            continue
        if hay == needle:
            return cid
        if contained is None and (needle in hay or hay in needle):
            contained = cid
    return contained


def _ref(label: str | None, resolved_id: str | None) -> ResolvedReference | None:
    if not label:
        return None
    return ResolvedReference(raw_label=label, resolved_id=resolved_id)


def resolve_insurer(label: str | None, insurers: Iterable[Insurer]) -> ResolvedReference | None:
    return _ref(label, match_label(label, ((i.id, i.name) for i in insurers)))


def resolve_product(
    label: str | None, products: Iterable[Product], insurer_id: str | None
) -> ResolvedReference | None:
    if insurer_id is None:
        return _ref(label, None)
    scoped = ((p.id, p.name) for p in products if p.insurer_id == insurer_id)
    return _ref(label, match_label(label, scoped))


def resolve_advisor(label: str | None, advisors: Iterable[Advisor]) -> ResolvedReference | None:
    active = ((a.id, a.full_name) for a in advisors if a.is_active)
    return _ref(label, match_label(label, active))


def client_lookup(refs: ReferenceData) -> dict[str, str]:
    """Normalized identification number -> client id (first wins)."""
    out: dict[str, str] = {}
    for c in refs.clients:
        key = norm.identification_key(c.identification_number)
        if key:
            out.setdefault(key, c.id)
    return out


def policy_lookup(refs: ReferenceData) -> dict[str, str]:
    """Normalized policy number -> policy id (first wins)."""
    out: dict[str, str] = {}
    for p in refs.policies:
        key = norm.policy_key(p.policy_number)
        if key:
            out.setdefault(key, p.id)
    return out


class _Placeholders:
    def __init__(self) -> None:
        self._n = 0

    def next(self) -> str:
        self._n += 1
        return make_placeholder(self._n)


def _resolve_policy_refs(policy: PolicyEntity, refs: ReferenceData, existing: dict[str, str]) -> PolicyEntity:
    insurer_ref = resolve_insurer(policy.fields.get("insurer_name"), refs.insurers)
    insurer_id = insurer_ref.resolved_id if insurer_ref else None
    existing_id = existing.get(policy.natural_key)
    return replace(
        policy,
        existing_policy_id=existing_id,
        is_update=existing_id is not None,
        insurer_ref=insurer_ref,
        product_ref=resolve_product(policy.fields.get("product_name"), refs.products, insurer_id),
        primary_advisor_ref=resolve_advisor(policy.fields.get("primary_advisor_name"), refs.advisors),
        secondary_advisor_ref=resolve_advisor(policy.fields.get("secondary_advisor_name"), refs.advisors),
    )


def _client_label(policy: PolicyEntity) -> str:
    if policy.client is not None:
        return str(policy.client.get("identification_number") or "")
    return str(policy.fields.get("client_identification") or "")


def resolve_batch(batch: ImportBatch, refs: ReferenceData) -> ImportBatch:
    """Return a copy of ``batch`` with every reference resolved.

    Pure with respect to its inputs: resolving the same batch against the
    same reference data twice gives equal results.
    """
    clients_by_key = client_lookup(refs)
    policies_by_key = policy_lookup(refs)
    placeholders = _Placeholders()

    # standalone clients (multi-sheet)
    clients: list[ClientEntity] = []
    batch_clients: dict[str, str] = {}
    for c in batch.clients:
        existing_id = clients_by_key.get(c.natural_key)
        placeholder = None if existing_id else placeholders.next()
        clients.append(replace(c, existing_id=existing_id, placeholder_id=placeholder))
        batch_clients.setdefault(c.natural_key, existing_id or placeholder)

    # holders embedded in unified rows, deduplicated by identification
    embedded_new: dict[str, str] = {}

    policies: list[PolicyEntity] = []
    batch_policies: dict[str, str] = {}
    for p in batch.policies:
        p = _resolve_policy_refs(p, refs, policies_by_key)
        label = _client_label(p)
        client_id: str | None = None
        is_new_client = False
        if p.client_key:
            client_id = clients_by_key.get(p.client_key)
            if client_id is None:
                if p.client is not None:
                    if p.client_key not in embedded_new:
                        embedded_new[p.client_key] = placeholders.next()
                    client_id = embedded_new[p.client_key]
                    is_new_client = True
                else:
                    client_id = batch_clients.get(p.client_key)
                    is_new_client = is_placeholder(client_id)
        placeholder = None if p.is_update else placeholders.next()
        p = replace(
            p,
            client_ref=_ref(label, client_id),
            is_new_client=is_new_client,
            placeholder_id=placeholder,
        )
        batch_policies.setdefault(p.natural_key, p.existing_policy_id or placeholder)
        policies.append(p)

    beneficiaries: list[BeneficiaryEntity] = []
    for b in batch.beneficiaries:
        label = b.fields.get("policy_number")
        policy_id = None
        if b.policy_key:
            policy_id = batch_policies.get(b.policy_key) or policies_by_key.get(b.policy_key)
        beneficiaries.append(replace(b, policy_ref=_ref(label, policy_id)))

    resolved = replace(
        batch,
        clients=tuple(clients),
        policies=tuple(policies),
        beneficiaries=tuple(beneficiaries),
    )
    logger.debug(
        "resolved policies=%d (updates=%d) new_clients=%d",
        len(policies),
        sum(1 for p in policies if p.is_update),
        len(embedded_new) + sum(1 for c in clients if c.is_new),
    )
    return resolved
