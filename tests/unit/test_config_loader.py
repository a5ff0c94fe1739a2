from __future__ import annotations

from pathlib import Path

import pytest

from brokerage_import.config.loader import ConfigError, ImportConfig, load_config


def test_load_sample_config(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.mode == "auto"
    assert cfg.max_beneficiaries == 7
    assert cfg.existing_policy_mode == "update"
    assert cfg.null_sentinels == ("NULL", "N/A")
    assert cfg.audit.actor == "ops@corredora.test"
    assert cfg.audit.module == "clients"
    assert cfg.database.port == 5432
    assert cfg.database.dsn is None


def test_default_path_used_when_present(write_config: Path):
    # temp_workdir is the cwd, so config/import.yml resolves
    assert load_config().audit.actor == "ops@corredora.test"


def test_defaults_when_default_file_missing(temp_workdir: Path):
    assert load_config() == ImportConfig()


def test_empty_file_is_all_defaults(temp_workdir: Path):
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text("", encoding="utf-8")
    assert load_config(cfg) == ImportConfig()


def test_explicit_missing_file(temp_workdir: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(temp_workdir / "nope.yml")


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("mode: sideways\n", "config validation failed"),
        ("max_beneficiaries: 0\n", "config validation failed"),
        ("existing_policy_mode: merge\n", "config validation failed"),
        ("unknown_key: 1\n", "config validation failed"),
        ("audit:\n  actor: ''\n", "config validation failed"),
        ("- a\n- b\n", "mapping"),
        ("mode: [unclosed\n", "invalid yaml"),
    ],
)
def test_invalid_configs(temp_workdir: Path, text: str, fragment: str):
    cfg = temp_workdir / "config" / "bad.yml"
    cfg.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match=fragment):
        load_config(cfg)
