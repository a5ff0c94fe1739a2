# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

import pandas as pd
import pytest

from brokerage_import.db.memory_store import MemoryStore
from brokerage_import.logging.init import reset_logging
from brokerage_import.models import Advisor, Insurer, Product


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """mode: auto
max_beneficiaries: 7
existing_policy_mode: update
logs_directory: ./logs
null_sentinels: ["NULL", "N/A"]
audit:
  actor: ops@corredora.test
  module: clients
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_excel(temp_workdir: Path) -> Callable[..., Path]:
    """Write a real .xlsx: ``make_excel("f.xlsx", {"Sheet": [[header...], [row...]]})``."""

    def _make(name: str, sheets: dict[str, list[list[object]]]) -> Path:
        path = temp_workdir / "data" / name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return path

    return _make


@pytest.fixture()
def reference_store() -> MemoryStore:
    """Store pre-loaded with insurers, products and advisors."""
    return MemoryStore(
        insurers=[Insurer("ins-1", "Mercantil Seguros"), Insurer("ins-2", "BMI")],
        products=[
            Product("prd-1", "Global Benefits Premium", "ins-1"),
            Product("prd-2", "Azure", "ins-2"),
            Product("prd-3", "Azure Plus", "ins-1"),
        ],
        advisors=[
            Advisor("adv-1", "Maria Gabriela Estaba"),
            Advisor("adv-2", "Lorene Barani"),
            Advisor("adv-3", "Paola Barani", is_active=False),
        ],
    )


UNIFIED_HEADERS = [
    "Número Póliza", "Aseguradora", "Producto", "Fecha Inicio", "Fecha Fin", "Prima",
    "Asesor Principal", "Cédula Tomador", "Nombres Tomador", "Apellidos Tomador", "Email Tomador",
    "Nombre Ben. 1", "Apellido Ben. 1", "Parentesco 1",
    "Nombre Ben. 2", "Apellido Ben. 2", "Parentesco 2",
]


def _unified_row(policy, cedula, first="Juan", last="Pérez", email="juan@correo.com", bens=(), **over):
    """One unified-layout row in UNIFIED_HEADERS order."""
    values = {
        "Número Póliza": policy,
        "Aseguradora": "Mercantil",
        "Producto": "Global Benefits",
        "Fecha Inicio": "2024-01-01",
        "Fecha Fin": "2025-01-01",
        "Prima": "1.500,00",
        "Asesor Principal": "maria gabriela",
        "Cédula Tomador": cedula,
        "Nombres Tomador": first,
        "Apellidos Tomador": last,
        "Email Tomador": email,
    }
    for i, (bf, bl, rel) in enumerate(bens, start=1):
        values[f"Nombre Ben. {i}"] = bf
        values[f"Apellido Ben. {i}"] = bl
        values[f"Parentesco {i}"] = rel
    values.update(over)
    return [values.get(h) for h in UNIFIED_HEADERS]


@pytest.fixture()
def unified_headers() -> list[str]:
    return list(UNIFIED_HEADERS)


@pytest.fixture()
def unified_row() -> Callable[..., list[object]]:
    return _unified_row
