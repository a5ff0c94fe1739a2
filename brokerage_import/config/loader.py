from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

"""Configuration loader.

Responsibilities:
- Load the YAML config (default ``config/import.yml``)
- Validate it against ``config_schema.json`` (no unknown keys)
- Apply defaults for every optional key

Every key is optional, so an empty file is a valid configuration.
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "AuditConfig",
    "ImportConfig",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")

DEFAULT_NULL_SENTINELS = ("NULL", "N/A", "#N/A", "-")


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AuditConfig:
    actor: str = "importer"
    module: str = "clients"


@dataclass(frozen=True)
class ImportConfig:
    mode: str = "auto"
    max_beneficiaries: int = 7
    existing_policy_mode: str = "update"
    logs_directory: str = "./logs"
    null_sentinels: tuple[str, ...] = DEFAULT_NULL_SENTINELS
    audit: AuditConfig = field(default_factory=AuditConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: the schema file is missing or unreadable, or the data
            violates it (unknown keys, wrong types, out-of-range values).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path | None = None) -> ImportConfig:
    """Load and validate ``path``.

    With ``path=None`` the default location is used when it exists, and the
    built-in defaults otherwise. An explicit path that does not exist is an
    error.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return ImportConfig()
        path = DEFAULT_CONFIG_PATH
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    audit_raw = data.get("audit", {})
    db_raw = data.get("database", {})
    defaults = ImportConfig()
    return ImportConfig(
        mode=data.get("mode", defaults.mode),
        max_beneficiaries=data.get("max_beneficiaries", defaults.max_beneficiaries),
        existing_policy_mode=data.get("existing_policy_mode", defaults.existing_policy_mode),
        logs_directory=data.get("logs_directory", defaults.logs_directory),
        null_sentinels=tuple(data.get("null_sentinels", defaults.null_sentinels)),
        audit=AuditConfig(
            actor=audit_raw.get("actor", defaults.audit.actor),
            module=audit_raw.get("module", defaults.audit.module),
        ),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )
