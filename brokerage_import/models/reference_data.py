from __future__ import annotations

from dataclasses import dataclass

"""Read-only reference lists the resolver matches against.

These mirror the minimal projections the store exposes (id + natural key or
name). Identifiers are carried as strings regardless of the backing column
type.
"""

__all__ = [
    "ExistingClient",
    "ExistingPolicy",
    "Insurer",
    "Product",
    "Advisor",
    "ReferenceData",
]


@dataclass(frozen=True)
class ExistingClient:
    id: str
    identification_number: str


@dataclass(frozen=True)
class ExistingPolicy:
    id: str
    policy_number: str | None


@dataclass(frozen=True)
class Insurer:
    id: str
    name: str


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    insurer_id: str | None


@dataclass(frozen=True)
class Advisor:
    id: str
    full_name: str
    is_active: bool = True


@dataclass(frozen=True)
class ReferenceData:
    clients: tuple[ExistingClient, ...] = ()
    policies: tuple[ExistingPolicy, ...] = ()
    insurers: tuple[Insurer, ...] = ()
    products: tuple[Product, ...] = ()
    advisors: tuple[Advisor, ...] = ()

    @classmethod
    def from_store(cls, store) -> ReferenceData:
        """Snapshot every reference list from a RecordStore."""
        return cls(
            clients=tuple(store.fetch_clients()),
            policies=tuple(store.fetch_policies()),
            insurers=tuple(store.fetch_insurers()),
            products=tuple(store.fetch_products()),
            advisors=tuple(store.fetch_advisors()),
        )
