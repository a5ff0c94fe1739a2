from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..models.reference_data import Advisor, ExistingClient, ExistingPolicy, Insurer, Product
from .store import WRITABLE_TABLES, InsertError

"""In-memory RecordStore for dry runs and tests.

Records live in plain dicts keyed by table. ``fail_when`` lets a caller inject
per-row write failures, e.g. ``lambda table, values: values.get("policy_number")
== "POL-3"``.
"""

__all__ = [
    "MemoryStore",
]

FailPredicate = Callable[[str, Mapping[str, Any]], bool]


class MemoryStore:
    def __init__(
        self,
        insurers: Iterable[Insurer] = (),
        products: Iterable[Product] = (),
        advisors: Iterable[Advisor] = (),
        clients: Iterable[ExistingClient] = (),
        policies: Iterable[ExistingPolicy] = (),
        fail_when: FailPredicate | None = None,
    ) -> None:
        self.insurers = list(insurers)
        self.products = list(products)
        self.advisors = list(advisors)
        self.tables: dict[str, dict[str, dict[str, Any]]] = {t: {} for t in WRITABLE_TABLES}
        for c in clients:
            self.tables["clients"][c.id] = {"identification_number": c.identification_number}
        for p in policies:
            self.tables["policies"][p.id] = {"policy_number": p.policy_number}
        self.events: list[dict[str, Any]] = []
        self.fail_when = fail_when
        self.fetch_count = 0

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [{"id": rid, **values} for rid, values in self.tables[table].items()]

    def fetch_clients(self) -> list[ExistingClient]:
        self.fetch_count += 1
        return [
            ExistingClient(id=rid, identification_number=str(v.get("identification_number") or ""))
            for rid, v in self.tables["clients"].items()
        ]

    def fetch_policies(self) -> list[ExistingPolicy]:
        return [ExistingPolicy(id=rid, policy_number=v.get("policy_number")) for rid, v in self.tables["policies"].items()]

    def fetch_insurers(self) -> list[Insurer]:
        return list(self.insurers)

    def fetch_products(self) -> list[Product]:
        return list(self.products)

    def fetch_advisors(self) -> list[Advisor]:
        return list(self.advisors)

    def _check(self, table: str, values: Mapping[str, Any]) -> None:
        if table not in self.tables:
            raise InsertError(f"table '{table}' is not writable by the importer")
        if self.fail_when is not None and self.fail_when(table, values):
            raise InsertError(f"simulated failure writing {table}")

    def insert(self, table: str, values: Mapping[str, Any]) -> str:
        self._check(table, values)
        rid = str(uuid.uuid4())
        self.tables[table][rid] = dict(values)
        return rid

    def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> None:
        self._check(table, values)
        if record_id not in self.tables[table]:
            raise InsertError(f"update of {table} {record_id} matched no row")
        self.tables[table][record_id].update(values)

    def record_event(self, actor: str, action: str, module: str, details: Mapping[str, Any]) -> None:
        self.events.append({"actor": actor, "action": action, "module": module, "details": dict(details)})
