from __future__ import annotations

import logging
from pathlib import Path

from ..config.loader import ImportConfig
from ..db.store import RecordStore
from ..excel.reader import DecodeError, read_workbook
from ..logging.error_log import DECODE_ERROR, MAPPING_INCOMPLETE, VALIDATION_ERROR, ErrorLogBuffer
from ..models.entities import ImportBatch, ValidationVerdict
from ..models.error_record import ErrorRecord
from ..models.import_outcome import ImportOutcome
from ..models.reference_data import ReferenceData
from .column_mapper import MappingIncompleteError
from .pipeline import ImportSession

"""Non-interactive run of one spreadsheet: decode -> map -> prepare -> execute.

Fatal conditions (the file cannot be decoded, a required field has no column)
are written to the error log and re-raised as ProcessingError. Row-level
problems never abort the run: validation issues are logged here, write
failures by the executor, and both are reflected in the returned outcome.
"""

__all__ = [
    "ProcessingError",
    "process_file",
    "log_validation_errors",
]

logger = logging.getLogger(__name__)


class ProcessingError(Exception):
    """The file could not be imported at all."""


def _verdict_records(file_name: str, sheet: str, verdict: ValidationVerdict | None) -> list[ErrorRecord]:
    if verdict is None:
        return []
    return [
        ErrorRecord.create(
            file=file_name,
            sheet=sheet,
            row=issue.row if issue.row is not None else -1,
            error_type=VALIDATION_ERROR,
            message=issue.message,
            field=issue.field,
        )
        for issue in verdict.errors
    ]


def log_validation_errors(batch: ImportBatch, file_name: str, error_log: ErrorLogBuffer) -> int:
    """Append one record per validation issue; returns the number appended."""
    records: list[ErrorRecord] = []
    for c in batch.clients:
        records += _verdict_records(file_name, batch.sheet_for("client"), c.verdict)
    for p in batch.policies:
        records += _verdict_records(file_name, batch.sheet_for("policy"), p.verdict)
        for b in p.beneficiaries:
            records += _verdict_records(file_name, batch.sheet_for("policy"), b.verdict)
    for b in batch.beneficiaries:
        records += _verdict_records(file_name, batch.sheet_for("beneficiary"), b.verdict)
    for r in records:
        error_log.append(r)
    return len(records)


def process_file(
    path: Path,
    config: ImportConfig,
    store: RecordStore,
    *,
    mode: str | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportOutcome:
    """Import one spreadsheet file through ``store``.

    Args:
        path: spreadsheet to import
        config: loaded configuration
        store: RecordStore to read reference data from and write to
        mode: layout override (auto / unified / multi); defaults to ``config.mode``
        error_log: buffer to append to; a new one under ``config.logs_directory``
            is created (and flushed) when omitted

    Raises:
        ProcessingError: the file cannot be decoded or its mapping is incomplete
    """
    own_log = error_log is None
    log = error_log if error_log is not None else ErrorLogBuffer(config.logs_directory)
    try:
        return _process(path, config, store, mode or config.mode, log)
    finally:
        if own_log:
            written = log.flush()
            if written is not None:
                logger.info("error log written: %s", written)


def _process(path: Path, config: ImportConfig, store: RecordStore, mode: str, log: ErrorLogBuffer) -> ImportOutcome:
    file_name = path.name
    try:
        sheets = read_workbook(path, config.null_sentinels)
    except DecodeError as e:
        log.append(ErrorRecord.create(file=file_name, sheet="<FILE>", row=-1, error_type=DECODE_ERROR, message=str(e)))
        raise ProcessingError(str(e)) from e

    session = ImportSession(sheets, file_name=file_name, mode=mode, max_beneficiaries=config.max_beneficiaries)
    logger.info(
        "%s: layout=%s sheets=%s beneficiary_blocks=%d",
        file_name,
        session.layout,
        ",".join(f"{k}:{s.sheet_name}" for k, s in session.sheets.items()) or "-",
        session.detected_beneficiary_count(),
    )

    try:
        batch = session.prepare(ReferenceData.from_store(store))
    except MappingIncompleteError as e:
        for f in e.missing:
            log.append(
                ErrorRecord.create(
                    file=file_name, sheet=e.sheet, row=-1, error_type=MAPPING_INCOMPLETE, message=str(e), field=f.key
                )
            )
        raise ProcessingError(str(e)) from e

    issues = log_validation_errors(batch, file_name, log)
    if issues:
        logger.warning("%s: %d validation issue(s), %d entities excluded", file_name, issues, batch.invalid_count)

    return session.execute(
        store,
        batch,
        error_log=log,
        actor=config.audit.actor,
        module=config.audit.module,
        existing_policy_mode=config.existing_policy_mode,
    )
