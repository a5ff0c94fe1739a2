from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from ..db.store import InsertError, RecordStore, StoreReadError
from ..logging.error_log import INSERT_ERROR, PARENT_FAILED, UPDATE_ERROR, ErrorLogBuffer
from ..models.entities import BeneficiaryEntity, ImportBatch, PolicyEntity, ResolvedReference
from ..models.error_record import ErrorRecord
from ..models.import_outcome import ExecutorState, ImportOutcome, PhaseCounter
from ..models.reference_data import ReferenceData
from .progress import PhaseProgress
from .resolver import client_lookup, policy_lookup

"""Phased import executor.

Writes a validated batch in three phases::

    IDLE -> IMPORTING_PARENTS -> IMPORTING_POLICIES -> IMPORTING_CHILDREN -> COMPLETE

1. parents: new clients (standalone client rows, or holders embedded in
   policy rows, one per identification number);
2. policies: inserts, or updates of policies that already exist
   (``existing_policy_mode="update"``) which keep their current holder;
3. children: beneficiaries and advisor links (``principal`` / ``secundario``).

Only valid entities are attempted, one row at a time. A failed row is counted,
logged with its row number and skipped. Between phases the persisted ids are
re-fetched from the store and every placeholder the resolver handed out for a
record created in this run is swapped for that record's real id; dependents
read their parent id through the swap. Dependents of a parent that failed (or
whose id could not be re-read) are counted as failures without being
attempted. The audit record is written once, after the last phase.
"""

__all__ = [
    "ExecutorStateError",
    "ImportExecutor",
    "CLIENT_COLUMNS",
    "POLICY_COLUMNS",
    "BENEFICIARY_COLUMNS",
]

logger = logging.getLogger(__name__)

CLIENT_COLUMNS = (
    "identification_type",
    "identification_number",
    "first_name",
    "last_name",
    "email",
    "phone",
    "mobile",
    "address",
    "city",
    "province",
    "birth_date",
    "occupation",
    "workplace",
)

POLICY_COLUMNS = (
    "policy_number",
    "start_date",
    "end_date",
    "status",
    "premium",
    "payment_frequency",
    "coverage_amount",
    "deductible",
    "premium_payment_date",
    "notes",
)

BENEFICIARY_COLUMNS = (
    "first_name",
    "last_name",
    "identification_type",
    "identification_number",
    "relationship",
    "birth_date",
    "phone",
    "email",
)

ADVISOR_ROLES = (("primary_advisor_ref", "principal"), ("secondary_advisor_ref", "secundario"))


class ExecutorStateError(Exception):
    """run() called on an executor that is not IDLE."""


def _client_payload(fields: dict[str, Any], with_notes: bool) -> dict[str, Any]:
    payload = {c: fields.get(c) for c in CLIENT_COLUMNS}
    if with_notes:
        payload["notes"] = fields.get("notes")
    return payload


def _ref_id(ref: ResolvedReference | None) -> str | None:
    return ref.resolved_id if ref is not None and ref.is_resolved else None


def _policy_payload(policy: PolicyEntity) -> dict[str, Any]:
    payload = {c: policy.fields.get(c) for c in POLICY_COLUMNS}
    payload["insurer_id"] = _ref_id(policy.insurer_ref)
    payload["product_id"] = _ref_id(policy.product_ref)
    return payload


def _beneficiary_payload(beneficiary: BeneficiaryEntity, policy_id: str) -> dict[str, Any]:
    payload: dict[str, Any] = {"policy_id": policy_id}
    payload.update({c: beneficiary.fields.get(c) for c in BENEFICIARY_COLUMNS})
    payload["first_name"] = payload["first_name"] or ""
    payload["last_name"] = payload["last_name"] or ""
    if beneficiary.fields.get("percentage") is not None:
        payload["percentage"] = beneficiary.fields["percentage"]
    return payload


class ImportExecutor:
    """Run one validated, resolved batch against a RecordStore.

    One executor per batch: after ``run()`` the executor is COMPLETE and a
    second call raises ExecutorStateError.
    """

    def __init__(
        self,
        store: RecordStore,
        batch: ImportBatch,
        *,
        file_name: str,
        error_log: ErrorLogBuffer | None = None,
        actor: str = "importer",
        module: str = "clients",
        existing_policy_mode: str = "update",
        on_state_change: Callable[[ExecutorState], None] | None = None,
    ) -> None:
        self.store = store
        self.batch = batch
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.actor = actor
        self.module = module
        self.existing_policy_mode = existing_policy_mode
        self.on_state_change = on_state_change
        self.outcome = ImportOutcome(file_name=file_name)
        self._clients_by_key: dict[str, str] = {}
        self._policies_by_key: dict[str, str] = {}
        # policies written (created or updated) in this run, by natural key
        self._written_policies: set[str] = set()
        # client natural key -> placeholder handed out by the resolver
        self._pending_clients: dict[str, str] = {}
        self._created_clients: set[str] = set()
        self._placeholder_ids: dict[str, str] = {}

    @property
    def state(self) -> ExecutorState:
        return self.outcome.state

    @property
    def placeholder_ids(self) -> dict[str, str]:
        """Placeholder -> real id for every record created so far."""
        return dict(self._placeholder_ids)

    def _enter(self, state: ExecutorState) -> None:
        self.outcome.state = state
        logger.debug("executor state -> %s", state.value)
        if self.on_state_change is not None:
            self.on_state_change(state)

    def _error(self, kind: str, row: int, error_type: str, message: str) -> None:
        self.error_log.append(
            ErrorRecord.create(
                file=self.outcome.file_name,
                sheet=self.batch.sheet_for(kind),
                row=row,
                error_type=error_type,
                message=message,
            )
        )

    def _refresh(self) -> None:
        """Re-read persisted ids and swap placeholders for the records created so far.

        A failed read keeps the previous lookups, so dependents of parents
        created in the phase just finished fail as PARENT_FAILED.
        """
        try:
            refs = ReferenceData(clients=tuple(self.store.fetch_clients()), policies=tuple(self.store.fetch_policies()))
        except StoreReadError as e:
            logger.error("re-fetch after %s failed, keeping previous ids: %s", self.state.value, e)
            return
        self._clients_by_key = client_lookup(refs)
        self._policies_by_key = policy_lookup(refs)

        for key, placeholder in self._pending_clients.items():
            if key in self._created_clients and key in self._clients_by_key:
                self._placeholder_ids[placeholder] = self._clients_by_key[key]
        for p in self.batch.policies:
            if p.placeholder_id and p.natural_key in self._written_policies and p.natural_key in self._policies_by_key:
                self._placeholder_ids[p.placeholder_id] = self._policies_by_key[p.natural_key]

    def _swap(self, ref: ResolvedReference | None) -> str | None:
        """Real id for a reference: existing ids pass through, placeholders go via the swap map."""
        if ref is None or not ref.is_resolved:
            return None
        if ref.is_placeholder:
            return self._placeholder_ids.get(str(ref.resolved_id))
        return ref.resolved_id

    def _count_invalid(self) -> int:
        nested = sum(1 for p in self.batch.policies if p.is_valid for b in p.beneficiaries if not b.is_valid)
        return self.batch.invalid_count + nested

    def run(self) -> ImportOutcome:
        if self.state is not ExecutorState.IDLE:
            raise ExecutorStateError(f"executor already {self.state.value}; create a new one per batch")
        self.outcome.start_time = datetime.now(UTC)
        self.outcome.invalid_entities = self._count_invalid()

        self._enter(ExecutorState.IMPORTING_PARENTS)
        try:
            self._import_parents()
            self._refresh()

            self._enter(ExecutorState.IMPORTING_POLICIES)
            self._import_policies()
            self._refresh()

            self._enter(ExecutorState.IMPORTING_CHILDREN)
            self._import_children()
        finally:
            self.outcome.end_time = datetime.now(UTC)
            self._record_audit()
            self._enter(ExecutorState.COMPLETE)
        return self.outcome

    # -- phase 1 ---------------------------------------------------------
    def _parent_rows(self) -> list[tuple[str, dict[str, Any], int, bool]]:
        """(natural key, fields, row, with_notes) for every client to create.

        Holders embedded in rows of policies that already exist are left out:
        an update keeps the stored holder and a skipped policy writes nothing.
        """
        rows: list[tuple[str, dict[str, Any], int, bool]] = []
        seen: set[str] = set()
        for c in self.batch.clients:
            if c.is_valid and c.is_new and c.natural_key not in seen:
                seen.add(c.natural_key)
                rows.append((c.natural_key, c.fields, c.first_row, True))
                self._pending_clients[c.natural_key] = str(c.placeholder_id)
        for p in self.batch.policies:
            if not (p.is_valid and p.is_new_client and p.client is not None) or p.is_update:
                continue
            if p.client_key not in seen:
                seen.add(p.client_key)
                rows.append((p.client_key, p.client, p.first_row, False))
                self._pending_clients[p.client_key] = str(p.client_ref.resolved_id)  # type: ignore[union-attr]
        return rows

    def _import_parents(self) -> None:
        rows = self._parent_rows()
        with PhaseProgress(len(rows), description="clients") as progress:
            for key, fields, row, with_notes in rows:
                try:
                    self.store.insert("clients", _client_payload(fields, with_notes))
                except InsertError as e:
                    self.outcome.clients.record_failure()
                    kind = "client" if with_notes else "policy"
                    self._error(kind, row, INSERT_ERROR, f"cliente {fields.get('identification_number')}: {e}")
                    logger.warning("row %d: client %s not created: %s", row, key, e)
                    progress.advance(failed=True)
                    continue
                self.outcome.clients.record_success()
                self._created_clients.add(key)
                progress.advance()

    # -- phase 2 ---------------------------------------------------------
    def _import_policies(self) -> None:
        policies = [p for p in self.batch.policies if p.is_valid]
        with PhaseProgress(len(policies), description="policies") as progress:
            for p in policies:
                failed_before = self.outcome.policies.failure_count
                self._import_policy(p)
                progress.advance(failed=self.outcome.policies.failure_count > failed_before)

    def _import_policy(self, p: PolicyEntity) -> None:
        counter = self.outcome.policies
        if p.is_update:
            if self.existing_policy_mode == "skip":
                self.outcome.policies_skipped += 1
                logger.debug("row %d: policy %s exists, skipped", p.first_row, p.policy_number)
                return
            try:
                self.store.update("policies", str(p.existing_policy_id), _policy_payload(p))
            except InsertError as e:
                counter.record_failure()
                self._error("policy", p.first_row, UPDATE_ERROR, f"póliza {p.policy_number}: {e}")
                logger.warning("row %d: policy %s not updated: %s", p.first_row, p.policy_number, e)
                return
            counter.record_success()
            self.outcome.policies_updated += 1
            self._written_policies.add(p.natural_key)
            return

        client_id = self._swap(p.client_ref)
        if client_id is None:
            counter.record_failure()
            self._error("policy", p.first_row, PARENT_FAILED, f"póliza {p.policy_number}: cliente {p.client_key} no disponible")
            logger.warning("row %d: policy %s skipped, client missing", p.first_row, p.policy_number)
            return
        payload = _policy_payload(p)
        payload["client_id"] = client_id
        try:
            self.store.insert("policies", payload)
        except InsertError as e:
            counter.record_failure()
            self._error("policy", p.first_row, INSERT_ERROR, f"póliza {p.policy_number}: {e}")
            logger.warning("row %d: policy %s not created: %s", p.first_row, p.policy_number, e)
            return
        counter.record_success()
        self._written_policies.add(p.natural_key)

    # -- phase 3 ---------------------------------------------------------
    def _children(self) -> list[tuple[str, BeneficiaryEntity | tuple[str, str], PolicyEntity | None]]:
        work: list[tuple[str, BeneficiaryEntity | tuple[str, str], PolicyEntity | None]] = []
        for p in self.batch.policies:
            if not p.is_valid:
                continue
            if p.is_update and self.existing_policy_mode == "skip":
                continue
            for b in p.beneficiaries:
                if b.is_valid:
                    work.append(("beneficiary", b, p))
            # advisor links only accompany newly created policies
            if not p.is_update:
                for attr, role in ADVISOR_ROLES:
                    advisor_id = _ref_id(getattr(p, attr))
                    if advisor_id is not None:
                        work.append(("advisor", (advisor_id, role), p))
        for b in self.batch.beneficiaries:
            if b.is_valid:
                work.append(("beneficiary", b, None))
        return work

    def _import_children(self) -> None:
        work = self._children()
        with PhaseProgress(len(work), description="children") as progress:
            for kind, item, parent in work:
                if kind == "beneficiary":
                    counter = self.outcome.beneficiaries
                    failed_before = counter.failure_count
                    self._import_beneficiary(item, parent)  # type: ignore[arg-type]
                else:
                    counter = self.outcome.policy_advisors
                    failed_before = counter.failure_count
                    self._import_advisor_link(item, parent)  # type: ignore[arg-type]
                progress.advance(failed=counter.failure_count > failed_before)

    def _parent_policy_id(self, b: BeneficiaryEntity | None, parent: PolicyEntity | None) -> str | None:
        if parent is None:
            return self._swap(b.policy_ref if b is not None else None)
        if parent.natural_key not in self._written_policies:
            return None
        if parent.is_update:
            return parent.existing_policy_id
        return self._placeholder_ids.get(str(parent.placeholder_id))

    def _import_beneficiary(self, b: BeneficiaryEntity, parent: PolicyEntity | None) -> None:
        counter = self.outcome.beneficiaries
        key = parent.natural_key if parent is not None else b.policy_key
        sheet_kind = "policy" if parent is not None else "beneficiary"
        policy_id = self._parent_policy_id(b, parent)
        if policy_id is None:
            self._fail(counter, sheet_kind, b.row_number, PARENT_FAILED, f"beneficiario {b.display_name}: póliza {key} no disponible")
            return
        try:
            self.store.insert("beneficiaries", _beneficiary_payload(b, policy_id))
        except InsertError as e:
            self._fail(counter, sheet_kind, b.row_number, INSERT_ERROR, f"beneficiario {b.display_name}: {e}")
            return
        counter.record_success()

    def _import_advisor_link(self, link: tuple[str, str], parent: PolicyEntity) -> None:
        counter = self.outcome.policy_advisors
        advisor_id, role = link
        policy_id = self._parent_policy_id(None, parent)
        if policy_id is None:
            self._fail(counter, "policy", parent.first_row, PARENT_FAILED, f"asesor {role}: póliza {parent.policy_number} no disponible")
            return
        try:
            self.store.insert("policy_advisors", {"policy_id": policy_id, "advisor_id": advisor_id, "advisor_role": role})
        except InsertError as e:
            self._fail(counter, "policy", parent.first_row, INSERT_ERROR, f"asesor {role}: {e}")
            return
        counter.record_success()

    def _fail(self, counter: PhaseCounter, kind: str, row: int, error_type: str, message: str) -> None:
        counter.record_failure()
        self._error(kind, row, error_type, message)
        logger.warning("row %d: %s", row, message)

    # -- audit -----------------------------------------------------------
    def _record_audit(self) -> None:
        try:
            self.store.record_event(self.actor, "import", self.module, self.outcome.as_details())
        except InsertError as e:
            logger.error("audit record not written: %s", e)
