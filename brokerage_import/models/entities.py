from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Domain entities assembled from decoded rows.

All entities are frozen: the grouper creates them, and the resolver and
validator return updated copies (``dataclasses.replace``) instead of mutating,
so re-running either stage on the same input gives the same result.

Placeholder identifiers (``new-<index>``) stand in for parents that are created
earlier in the same batch; the executor swaps them for real identifiers.
"""

__all__ = [
    "PLACEHOLDER_PREFIX",
    "is_placeholder",
    "make_placeholder",
    "ValidationIssue",
    "ValidationVerdict",
    "ResolvedReference",
    "BeneficiaryEntity",
    "ClientEntity",
    "PolicyEntity",
    "ImportBatch",
]

PLACEHOLDER_PREFIX = "new-"


def make_placeholder(index: int) -> str:
    return f"{PLACEHOLDER_PREFIX}{index}"


def is_placeholder(identifier: str | None) -> bool:
    return bool(identifier) and str(identifier).startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str
    row: int | None = None


@dataclass(frozen=True)
class ValidationVerdict:
    """Outcome of validating one entity.

    ``is_valid`` is derived from ``errors`` so the two can never disagree.
    """
    errors: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0


@dataclass(frozen=True)
class ResolvedReference:
    """Free-text label matched against a reference list.

    ``resolved_id`` is None when nothing matched; the label is kept so an
    operator can still see what the sheet said.
    """
    raw_label: str
    resolved_id: str | None = None

    @property
    def is_resolved(self) -> bool:
        return self.resolved_id is not None

    @property
    def is_placeholder(self) -> bool:
        return is_placeholder(self.resolved_id)


@dataclass(frozen=True)
class BeneficiaryEntity:
    """Child record of a policy.

    Nested beneficiaries (unified layout) carry the ``group_index`` of the
    column block they came from. Rows from a separate beneficiary sheet carry
    ``policy_key`` and, after resolution, ``policy_ref``.
    """
    fields: dict[str, Any]
    row_number: int
    group_index: int | None = None
    policy_key: str | None = None
    policy_ref: ResolvedReference | None = None
    invalid_dates: frozenset[str] = frozenset()
    verdict: ValidationVerdict | None = None

    @property
    def is_valid(self) -> bool:
        return self.verdict is not None and self.verdict.is_valid

    @property
    def display_name(self) -> str:
        return " ".join(
            p for p in (self.fields.get("first_name"), self.fields.get("last_name")) if p
        )


@dataclass(frozen=True)
class ClientEntity:
    """Policy holder (tomador) from a separate client sheet."""
    natural_key: str  # normalized identification number
    fields: dict[str, Any]
    row_numbers: tuple[int, ...]
    existing_id: str | None = None
    placeholder_id: str | None = None
    invalid_dates: frozenset[str] = frozenset()
    verdict: ValidationVerdict | None = None

    @property
    def is_new(self) -> bool:
        return self.existing_id is None

    @property
    def is_valid(self) -> bool:
        return self.verdict is not None and self.verdict.is_valid

    @property
    def first_row(self) -> int:
        return self.row_numbers[0] if self.row_numbers else -1


@dataclass(frozen=True)
class PolicyEntity:
    """Policy-centric logical entity, keyed by normalized policy number.

    ``client`` holds the denormalized holder data when the sheet carries it
    (unified layout); ``client_key`` is the normalized identification number
    used to find or create that holder either way.
    """
    natural_key: str
    fields: dict[str, Any]
    row_numbers: tuple[int, ...]
    client_key: str = ""
    client: dict[str, Any] | None = None
    beneficiaries: tuple[BeneficiaryEntity, ...] = ()
    client_ref: ResolvedReference | None = None
    existing_policy_id: str | None = None
    placeholder_id: str | None = None
    insurer_ref: ResolvedReference | None = None
    product_ref: ResolvedReference | None = None
    primary_advisor_ref: ResolvedReference | None = None
    secondary_advisor_ref: ResolvedReference | None = None
    is_update: bool = False
    is_new_client: bool = False
    invalid_dates: frozenset[str] = frozenset()
    verdict: ValidationVerdict | None = None

    @property
    def policy_number(self) -> str:
        return str(self.fields.get("policy_number") or "")

    @property
    def is_valid(self) -> bool:
        return self.verdict is not None and self.verdict.is_valid

    @property
    def first_row(self) -> int:
        return self.row_numbers[0] if self.row_numbers else -1


@dataclass(frozen=True)
class ImportBatch:
    """Everything derived from one workbook, ready for validation/execution.

    ``layout`` is "unified" (one policy-centric sheet) or "multi" (separate
    client / policy / beneficiary sheets). ``sheet_names`` maps each entity kind
    to the sheet it came from, for error reporting.
    """
    layout: str
    policies: tuple[PolicyEntity, ...] = ()
    clients: tuple[ClientEntity, ...] = ()
    beneficiaries: tuple[BeneficiaryEntity, ...] = ()
    sheet_names: dict[str, str] = field(default_factory=dict)

    def sheet_for(self, kind: str) -> str:
        return self.sheet_names.get(kind, "<WORKBOOK>")

    @property
    def invalid_count(self) -> int:
        n = sum(1 for p in self.policies if not p.is_valid)
        n += sum(1 for c in self.clients if not c.is_valid)
        n += sum(1 for b in self.beneficiaries if not b.is_valid)
        return n

    @property
    def valid_count(self) -> int:
        n = sum(1 for p in self.policies if p.is_valid)
        n += sum(1 for c in self.clients if c.is_valid)
        n += sum(1 for b in self.beneficiaries if b.is_valid)
        return n
