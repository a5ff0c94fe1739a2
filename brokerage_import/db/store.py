from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

import psycopg2
from psycopg2 import sql
from psycopg2.extras import Json

from ..models.reference_data import Advisor, ExistingClient, ExistingPolicy, Insurer, Product

"""Record store: the engine's only side-effecting boundary.

RecordStore is the protocol the resolver reads reference lists from and the
executor writes through. PostgresStore implements it over a psycopg2
connection; MemoryStore (``memory_store.py``) backs dry runs and tests.

Writes are single-row ``INSERT ... RETURNING id`` / ``UPDATE`` statements. The
connection is expected to run in autocommit mode so one failed row never rolls
back the rows written before it. Driver errors are wrapped in InsertError for
writes and StoreReadError for reads.
"""

__all__ = [
    "InsertError",
    "StoreReadError",
    "RecordStore",
    "PostgresStore",
    "WRITABLE_TABLES",
    "AUDIT_TABLE",
]

logger = logging.getLogger(__name__)

WRITABLE_TABLES = frozenset({"clients", "policies", "beneficiaries", "policy_advisors"})
AUDIT_TABLE = "audit_logs"


class InsertError(Exception):
    """A single row could not be written."""


class StoreReadError(Exception):
    """A reference or lookup query failed."""


class RecordStore(Protocol):
    def fetch_clients(self) -> list[ExistingClient]: ...

    def fetch_policies(self) -> list[ExistingPolicy]: ...

    def fetch_insurers(self) -> list[Insurer]: ...

    def fetch_products(self) -> list[Product]: ...

    def fetch_advisors(self) -> list[Advisor]: ...

    def insert(self, table: str, values: Mapping[str, Any]) -> str:
        """Create one record and return its id. Raises InsertError."""
        ...

    def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> None:
        """Update one record by id. Raises InsertError."""
        ...

    def record_event(self, actor: str, action: str, module: str, details: Mapping[str, Any]) -> None: ...


def _check_table(table: str) -> None:
    if table not in WRITABLE_TABLES:
        raise InsertError(f"table '{table}' is not writable by the importer")


class PostgresStore:
    """RecordStore over a psycopg2 connection (autocommit)."""

    def __init__(self, conn: Any) -> None:
        self._conn = conn

    def _select(self, query: str) -> list[tuple[Any, ...]]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(query)
                return cur.fetchall()
        except psycopg2.Error as e:
            raise StoreReadError(f"query failed: {query}: {e}") from e

    def fetch_clients(self) -> list[ExistingClient]:
        rows = self._select("SELECT id, identification_number FROM clients")
        return [ExistingClient(id=str(r[0]), identification_number=r[1] or "") for r in rows]

    def fetch_policies(self) -> list[ExistingPolicy]:
        rows = self._select("SELECT id, policy_number FROM policies")
        return [ExistingPolicy(id=str(r[0]), policy_number=r[1]) for r in rows]

    def fetch_insurers(self) -> list[Insurer]:
        rows = self._select("SELECT id, name FROM insurers ORDER BY name")
        return [Insurer(id=str(r[0]), name=r[1] or "") for r in rows]

    def fetch_products(self) -> list[Product]:
        rows = self._select("SELECT id, name, insurer_id FROM products ORDER BY name")
        return [
            Product(id=str(r[0]), name=r[1] or "", insurer_id=str(r[2]) if r[2] is not None else None)
            for r in rows
        ]

    def fetch_advisors(self) -> list[Advisor]:
        rows = self._select("SELECT id, full_name, is_active FROM advisors ORDER BY full_name")
        return [Advisor(id=str(r[0]), full_name=r[1] or "", is_active=bool(r[2])) for r in rows]

    def insert(self, table: str, values: Mapping[str, Any]) -> str:
        _check_table(table)
        cols = list(values)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING id").format(
            sql.Identifier(table),
            sql.SQL(",").join(sql.Identifier(c) for c in cols),
            sql.SQL(",").join(sql.Placeholder() for _ in cols),
        )
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, [values[c] for c in cols])
                row = cur.fetchone()
        except psycopg2.Error as e:
            raise InsertError(f"insert into {table} failed: {e}") from e
        if row is None:
            raise InsertError(f"insert into {table} returned no id")
        return str(row[0])

    def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> None:
        _check_table(table)
        cols = list(values)
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s").format(
            sql.Identifier(table),
            sql.SQL(",").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols),
        )
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, [values[c] for c in cols] + [record_id])
                count = cur.rowcount
        except psycopg2.Error as e:
            raise InsertError(f"update of {table} {record_id} failed: {e}") from e
        if count == 0:
            raise InsertError(f"update of {table} {record_id} matched no row")

    def record_event(self, actor: str, action: str, module: str, details: Mapping[str, Any]) -> None:
        query = sql.SQL("INSERT INTO {} (user_email, action, module, details) VALUES (%s, %s, %s, %s)").format(
            sql.Identifier(AUDIT_TABLE)
        )
        try:
            with self._conn.cursor() as cur:
                cur.execute(query, (actor, action, module, Json(dict(details))))
        except psycopg2.Error as e:
            raise InsertError(f"audit record failed: {e}") from e
