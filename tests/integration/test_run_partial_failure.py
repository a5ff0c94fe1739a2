from __future__ import annotations

import json
from pathlib import Path

from brokerage_import.config.loader import load_config
from brokerage_import.services.orchestrator import process_file

"""End-to-end partial failure: invalid rows plus one rejected policy write.

Five policies: three valid, two invalid. The store rejects POL-3, so its
beneficiaries are counted as failed without being attempted while the rest
of the file is still imported.
"""


def test_partial_failure(write_config, make_excel, unified_headers, unified_row, reference_store, temp_workdir: Path):
    reference_store.fail_when = lambda table, values: table == "policies" and values.get("policy_number") == "POL-3"
    path = make_excel(
        "cartera.xlsx",
        {
            "Importación": [
                unified_headers,
                unified_row("POL-1", "V-1", bens=[("Ana", "Pérez", "Hija")]),
                unified_row("POL-2", "V-2"),
                unified_row("POL-3", "V-3", bens=[("Eva", "Gil", "Esposa"), ("Leo", "Gil", "Hijo")]),
                unified_row("POL-4", "V-4", last=None),
                unified_row("POL-5", "V-5", **{"Fecha Inicio": "32/13/2024"}),
            ]
        },
    )
    outcome = process_file(path, load_config(write_config), reference_store)

    assert (outcome.policies.success_count, outcome.policies.failure_count) == (2, 1)
    assert (outcome.beneficiaries.success_count, outcome.beneficiaries.failure_count) == (1, 2)
    assert outcome.invalid_entities == 2
    assert outcome.has_failures

    (log_file,) = (temp_workdir / "logs").glob("errors-*.log")
    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    by_type: dict[str, list[dict]] = {}
    for r in records:
        by_type.setdefault(r["error_type"], []).append(r)

    assert [(r["row"], r["message"]) for r in by_type["VALIDATION_ERROR"]] == [
        (5, "Apellidos Tomador requerido"),
        (6, "Fecha Inicio: fecha inválida"),
    ]
    assert [r["row"] for r in by_type["INSERT_ERROR"]] == [4]
    assert len(by_type["PARENT_FAILED"]) == 3
    assert {r["sheet"] for r in records} == {"Importación"}

    # audit record still reflects the partial result
    (event,) = reference_store.events
    assert event["details"]["policies_failed"] == 1
    assert event["details"]["beneficiaries_failed"] == 2
