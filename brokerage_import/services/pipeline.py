from __future__ import annotations

import logging
from collections.abc import Sequence

from ..db.store import RecordStore
from ..excel.reader import SheetData
from ..logging.error_log import ErrorLogBuffer
from ..models.column_mapping import ColumnMapping
from ..models.entities import ImportBatch
from ..models.field_definitions import FieldDefinition, ImportTarget
from ..models.import_outcome import ImportOutcome
from ..models.reference_data import ReferenceData
from . import column_mapper, grouper
from .classifier import SheetKind, classify_workbook
from .executor import ImportExecutor
from .resolver import resolve_batch
from .validator import validate_batch

"""Import session: the explicit pipeline object for one workbook.

Holds the state that flows between stages (sheet assignment, column
mappings, the assembled batch) so each stage is a plain function of its
inputs::

    session = ImportSession(sheets, file_name="cartera.xlsx")
    session.remap("unified", "Col X", "policy_notes")   # optional operator edits
    batch = session.prepare(ReferenceData.from_store(store))
    outcome = session.execute(store, batch)

``prepare`` raises MappingIncompleteError while a required field has no
column; mappings stay editable until it succeeds.
"""

__all__ = [
    "LAYOUT_UNIFIED",
    "LAYOUT_MULTI",
    "ImportSession",
]

logger = logging.getLogger(__name__)

LAYOUT_UNIFIED = "unified"
LAYOUT_MULTI = "multi"

# kinds in a unified session are keyed by this name instead of a SheetKind
UNIFIED_KEY = "unified"

_KIND_ORDER = (SheetKind.CLIENT, SheetKind.POLICY, SheetKind.BENEFICIARY)


class ImportSession:
    """Mapping state and stage wiring for one decoded workbook."""

    def __init__(
        self,
        sheets: Sequence[SheetData],
        *,
        file_name: str,
        mode: str = "auto",
        max_beneficiaries: int = column_mapper.DEFAULT_MAX_GROUPS,
    ) -> None:
        self.file_name = file_name
        self.max_beneficiaries = max_beneficiaries
        usable = [s for s in sheets if not s.is_empty]
        self.layout = self._pick_layout(usable, mode)

        self.sheets: dict[str, SheetData] = {}
        self.targets: dict[str, ImportTarget] = {}
        if self.layout == LAYOUT_UNIFIED:
            if usable:
                self.sheets[UNIFIED_KEY] = usable[0]
                self.targets[UNIFIED_KEY] = ImportTarget.UNIFIED
        else:
            chosen = classify_workbook(usable)
            for kind in _KIND_ORDER:
                if kind in chosen:
                    self.sheets[kind.value] = chosen[kind]
                    self.targets[kind.value] = kind.target  # type: ignore[assignment]

        self.mappings: dict[str, list[ColumnMapping]] = {
            key: column_mapper.auto_map_columns(sheet.columns, self.targets[key], max_beneficiaries)
            for key, sheet in self.sheets.items()
        }
        logger.debug("session %s layout=%s sheets=%s", file_name, self.layout, {k: s.sheet_name for k, s in self.sheets.items()})

    @staticmethod
    def _pick_layout(sheets: Sequence[SheetData], mode: str) -> str:
        if mode in (LAYOUT_UNIFIED, LAYOUT_MULTI):
            return mode
        return LAYOUT_UNIFIED if len(sheets) <= 1 else LAYOUT_MULTI

    # -- mapping ---------------------------------------------------------
    def remap(self, kind: str, source_header: str, canonical_field: str | None, group_index: int | None = None) -> bool:
        """Operator override for one column of sheet ``kind``."""
        if kind not in self.mappings:
            return False
        return column_mapper.remap(
            self.mappings[kind],
            source_header,
            canonical_field,
            group_index,
            target=self.targets[kind],
            max_groups=self.max_beneficiaries,
        )

    def missing_required(self) -> dict[str, list[FieldDefinition]]:
        gaps = {
            kind: column_mapper.missing_required_fields(maps, self.targets[kind])
            for kind, maps in self.mappings.items()
        }
        return {k: v for k, v in gaps.items() if v}

    def detected_beneficiary_count(self) -> int:
        maps = self.mappings.get(UNIFIED_KEY)
        return column_mapper.detected_beneficiary_count(maps) if maps else 0

    def sheet_names(self) -> dict[str, str]:
        names = {k: s.sheet_name for k, s in self.sheets.items()}
        if UNIFIED_KEY in names:
            # unified rows carry client, policy and beneficiary data alike
            return {"client": names[UNIFIED_KEY], "policy": names[UNIFIED_KEY], "beneficiary": names[UNIFIED_KEY]}
        return names

    # -- stages ----------------------------------------------------------
    def assemble(self) -> ImportBatch:
        """Group rows into entities. Requires complete mappings."""
        for kind, maps in self.mappings.items():
            column_mapper.require_complete_mapping(maps, self.targets[kind], self.sheets[kind].sheet_name)

        if self.layout == LAYOUT_UNIFIED:
            policies = ()
            if UNIFIED_KEY in self.sheets:
                policies = grouper.group_unified(self.sheets[UNIFIED_KEY].rows, self.mappings[UNIFIED_KEY])
            return ImportBatch(layout=self.layout, policies=policies, sheet_names=self.sheet_names())

        def rows(kind: SheetKind) -> tuple[Sequence, list[ColumnMapping]]:
            sheet = self.sheets.get(kind.value)
            return (sheet.rows, self.mappings[kind.value]) if sheet else ((), [])

        return ImportBatch(
            layout=self.layout,
            clients=grouper.group_clients(*rows(SheetKind.CLIENT)),
            policies=grouper.group_policies(*rows(SheetKind.POLICY)),
            beneficiaries=grouper.group_beneficiaries(*rows(SheetKind.BENEFICIARY)),
            sheet_names=self.sheet_names(),
        )

    def prepare(self, refs: ReferenceData) -> ImportBatch:
        """Assemble, resolve and validate."""
        return validate_batch(resolve_batch(self.assemble(), refs))

    def execute(
        self,
        store: RecordStore,
        batch: ImportBatch,
        *,
        error_log: ErrorLogBuffer | None = None,
        actor: str = "importer",
        module: str = "clients",
        existing_policy_mode: str = "update",
    ) -> ImportOutcome:
        executor = ImportExecutor(
            store,
            batch,
            file_name=self.file_name,
            error_log=error_log,
            actor=actor,
            module=module,
            existing_policy_mode=existing_policy_mode,
        )
        return executor.run()
