from __future__ import annotations

from pathlib import Path

import pandas as pd

"""Blank import templates.

``unified``: one sheet ("Importación") with policy, holder and seven
beneficiary blocks plus two example rows.
``multi``: three sheets (Tomadores, Pólizas, Beneficiarios), one example row
each. Every header is recognized by the column mapper as-is.
"""

__all__ = [
    "TEMPLATE_BENEFICIARY_BLOCKS",
    "unified_template",
    "multi_template",
    "write_template",
]

TEMPLATE_BENEFICIARY_BLOCKS = 7

_POLICY_HEADERS = [
    "Número Póliza", "Aseguradora", "Producto", "Fecha Inicio", "Fecha Fin",
    "Prima", "Suma Asegurada", "Deducible", "Estado", "Frecuencia Pago", "Fecha Pago Prima",
    "Asesor Principal", "Asesor Secundario", "Notas Póliza",
]

_HOLDER_HEADERS = [
    "Tipo ID Tomador", "Cédula Tomador", "Nombres Tomador", "Apellidos Tomador",
    "Email Tomador", "Teléfono Tomador", "Móvil Tomador",
    "Dirección Tomador", "Ciudad Tomador", "Estado Tomador",
    "F. Nacimiento Tomador", "Ocupación Tomador", "Trabajo Tomador",
]

_BENEFICIARY_BLOCK = [
    "Nombre Ben. {i}", "Apellido Ben. {i}", "Parentesco {i}", "Tipo ID Ben. {i}",
    "Cédula Ben. {i}", "F.Nac Ben. {i}", "Tel Ben. {i}", "Email Ben. {i}",
]

_UNIFIED_ROWS = [
    [
        "POL-2024-001", "Mercantil Venezuela", "GLOBAL BENEFITS PREMIUM", "2024-01-01", "2025-01-01",
        "1500", "50000", "500", "vigente", "mensual", "2024-02-01",
        "MARIA GABRIELA ESTABA", "", "Cliente corporativo",
        "cedula", "V-12345678", "Juan", "Pérez",
        "juan@email.com", "0212-1234567", "0412-1234567",
        "Av. Principal, Edificio 123", "Caracas", "Distrito Capital",
        "1985-06-15", "Gerente", "Empresa ABC",
        "María", "Pérez", "conyuge", "cedula", "V-87654321", "1985-05-15", "0414-1111111", "maria@email.com",
        "Carlos", "Pérez", "hijo", "cedula", "V-11111111", "2010-03-20", "0412-2222222", "",
    ],
    [
        "POL-2024-002", "BMI", "AZURE", "2024-02-01", "2025-02-01",
        "2000", "100000", "1000", "vigente", "anual", "2024-03-01",
        "LORENE BARANI", "PAOLA BARANI", "",
        "cedula", "V-22222222", "Ana", "García",
        "ana@email.com", "0212-9876543", "0414-9876543",
        "Calle 45, Qta. Azul", "Valencia", "Carabobo",
        "1990-11-20", "Ingeniero", "Constructora XYZ",
        "Pedro", "García", "conyuge", "cedula", "V-33333333", "1980-11-10", "0424-3333333", "pedro@email.com",
    ],
]

_MULTI_SHEETS: dict[str, tuple[list[str], list[str]]] = {
    "Tomadores": (
        ["Tipo Identificación", "Número Identificación", "Nombres", "Apellidos", "Correo", "Teléfono", "Móvil",
         "Dirección", "Ciudad", "Estado", "Fecha Nacimiento", "Ocupación", "Lugar de Trabajo", "Notas"],
        ["cedula", "V-12345678", "Juan", "Pérez", "juan@ejemplo.com", "0212-1234567", "0412-1234567",
         "Av. Principal 123", "Caracas", "Distrito Capital", "1990-01-15", "Ingeniero", "Empresa XYZ", "Cliente VIP"],
    ),
    "Pólizas": (
        ["Cédula Tomador", "Aseguradora", "Producto", "Número Póliza", "Fecha Inicio", "Fecha Renovación", "Estado",
         "Prima", "Frecuencia Pago", "Suma Asegurada", "Deducible", "Fecha Pago Prima", "Asesor Principal",
         "Asesor Secundario", "Notas"],
        ["V-12345678", "Mercantil Venezuela", "GLOBAL BENEFITS PREMIUM", "POL-2024-001", "2024-01-01", "2025-01-01",
         "vigente", "1500.00", "mensual", "100000.00", "500.00", "2024-02-01", "", "", "Póliza familiar"],
    ),
    "Beneficiarios": (
        ["Número Póliza", "Nombres", "Apellidos", "Tipo Identificación", "Número Identificación", "Parentesco",
         "Porcentaje", "Fecha Nacimiento", "Teléfono", "Correo"],
        ["POL-2024-001", "María", "Pérez", "cedula", "V-87654321", "conyuge", "50", "1992-05-20", "0414-9876543",
         "maria@ejemplo.com"],
    ),
}


def unified_template(blocks: int = TEMPLATE_BENEFICIARY_BLOCKS) -> pd.DataFrame:
    headers = list(_POLICY_HEADERS) + list(_HOLDER_HEADERS)
    for i in range(1, blocks + 1):
        headers += [h.format(i=i) for h in _BENEFICIARY_BLOCK]
    rows = [(r + [""] * len(headers))[: len(headers)] for r in _UNIFIED_ROWS]
    return pd.DataFrame(rows, columns=headers)


def multi_template() -> dict[str, pd.DataFrame]:
    return {name: pd.DataFrame([row], columns=headers) for name, (headers, row) in _MULTI_SHEETS.items()}


def write_template(path: Path | str, layout: str = "unified") -> Path:
    """Write the template workbook for ``layout`` ("unified" or "multi") to ``path``."""
    if layout == "unified":
        frames = {"Importación": unified_template()}
    elif layout == "multi":
        frames = multi_template()
    else:
        raise ValueError(f"unknown layout: {layout}")
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        for name, df in frames.items():
            df.to_excel(writer, sheet_name=name, index=False)
    return out
