from __future__ import annotations

import argparse
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, DatabaseConfig, ImportConfig, load_config
from ..db.memory_store import MemoryStore
from ..db.store import PostgresStore, RecordStore, StoreReadError
from ..excel.reader import DecodeError, read_workbook
from ..excel.template import write_template
from ..logging.init import log_summary, setup_logging
from ..models.import_outcome import ImportOutcome
from ..services.orchestrator import ProcessingError, process_file
from ..services.pipeline import ImportSession
from ..services.summary import render_summary_line

"""Command line entry point: ``python -m brokerage_import.cli``.

Subcommands:
- ``import FILE``: run the full pipeline against PostgreSQL (or an in-memory
  store with ``--dry-run`` / ``DISABLE_DB_CONNECT=1``) and print a SUMMARY line
- ``inspect FILE``: show sheet classification, proposed mappings and sample rows
- ``template OUT``: write a blank import template

Exit codes: 0 everything imported, 2 partial failure (invalid entities or
failed rows), 1 fatal (config, decode, incomplete mapping, database
unreachable).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _dsn(db_cfg: DatabaseConfig) -> str:
    """Connection string; environment wins over the config file.

    Order: DATABASE_URL / PGDSN, config ``dsn``, then the individual PG*
    variables falling back to the config's fields.
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def _db_store(cfg: ImportConfig) -> Iterator[RecordStore]:  # pragma: no cover (thin wrapper)
    """PostgresStore over an autocommit connection; each row commits on its own."""
    conn = psycopg2.connect(_dsn(cfg.database))
    try:
        conn.autocommit = True
        yield PostgresStore(conn)
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env with python-dotenv; its values override the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="brokerage_import", description="Brokerage spreadsheet importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import a spreadsheet")
    imp.add_argument("file", type=Path)
    imp.add_argument("--config", type=Path, default=None, help="YAML config (default config/import.yml)")
    imp.add_argument("--mode", choices=["auto", "unified", "multi"], default=None)
    imp.add_argument("--dry-run", action="store_true", help="Use an in-memory store; nothing is written")
    imp.add_argument("--debug", action="store_true", dest="debug_sub", help="Enable debug logging")

    ins = sub.add_parser("inspect", help="Show classification and proposed mappings")
    ins.add_argument("file", type=Path)
    ins.add_argument("--mode", choices=["auto", "unified", "multi"], default="auto")

    tpl = sub.add_parser("template", help="Write a blank import template")
    tpl.add_argument("out", type=Path)
    tpl.add_argument("--layout", choices=["unified", "multi"], default="unified")
    return p.parse_args(argv)


def _inspect(path: Path, mode: str) -> int:
    try:
        sheets = read_workbook(path)
    except DecodeError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    session = ImportSession(sheets, file_name=path.name, mode=mode)
    print(f"FILE: {path.name} layout={session.layout}")
    for kind, sheet in session.sheets.items():
        print(f"  SHEET: {sheet.sheet_name} kind={kind} rows={len(sheet.rows)}")
        for m in session.mappings[kind]:
            target = m.canonical_field or "-"
            if m.group_index is not None:
                target += f" [{m.group_index}]"
            print(f"    {m.source_header!r} -> {target}")
        for row in sheet.rows[:3]:
            safe = {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in row.values.items()}
            print(f"    row {row.row_number}: {safe}")
    if session.layout == "unified":
        print(f"  beneficiary_blocks={session.detected_beneficiary_count()}")
    for kind, fields in session.missing_required().items():
        print(f"  MISSING {kind}: {', '.join(f.display_label for f in fields)}")
    return EXIT_SUCCESS_ALL


def _exit_code(outcome: ImportOutcome) -> int:
    return EXIT_PARTIAL_FAILURE if outcome.has_failures else EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    # None only: an explicit [] must not fall back to sys.argv (pytest flags)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    debug = args.debug or getattr(args, "debug_sub", False)
    logger = setup_logging(debug=debug)
    if debug:
        logger.debug("debug mode enabled")

    if args.command == "template":
        out = write_template(args.out, args.layout)
        logger.info(f"template written: {out}")
        return EXIT_SUCCESS_ALL

    if args.command == "inspect":
        return _inspect(args.file, args.mode)

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    mock = args.dry_run or os.getenv("DISABLE_DB_CONNECT") == "1"
    try:
        if mock:
            logger.info("dry run: in-memory store, nothing is written")
            outcome = process_file(args.file, cfg, MemoryStore(), mode=args.mode)
        else:
            with _db_store(cfg) as store:
                outcome = process_file(args.file, cfg, store, mode=args.mode)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except (psycopg2.Error, StoreReadError) as e:
        # unreachable server or failing reference queries
        logger.error(f"database: {e}")
        return EXIT_FATAL

    logger.info(
        f"mode={'dry-run' if mock else 'live'} "
        f"policies_updated={outcome.policies_updated} policies_skipped={outcome.policies_skipped}"
    )
    # log_summary adds the "SUMMARY " label itself
    log_summary(render_summary_line(outcome)[len("SUMMARY "):])
    return _exit_code(outcome)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
