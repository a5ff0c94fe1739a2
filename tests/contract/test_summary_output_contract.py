from __future__ import annotations

import re

from brokerage_import.cli.__main__ import main as cli_main
from brokerage_import.excel.template import write_template

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+file=(\S+)\s+clients=([0-9]+)/([0-9]+)\s+policies=([0-9]+)/([0-9]+)\s+"
    r"beneficiaries=([0-9]+)/([0-9]+)\s+advisors=([0-9]+)/([0-9]+)\s+invalid=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY file=cartera.xlsx clients=3/0 policies=2/1 beneficiaries=1/2 "
        "advisors=2/1 invalid=2 elapsed_sec=0.84"
    )
    assert SUMMARY_PATTERN.match(line), "SUMMARY line should match contract regex"


def test_cli_emits_exactly_one_summary_line(write_config, temp_workdir, capsys):
    path = write_template(temp_workdir / "data" / "plantilla enero.xlsx")
    assert cli_main(["import", str(path), "--dry-run"]) == 0
    lines = [ln for ln in capsys.readouterr().out.splitlines() if ln.startswith("SUMMARY")]
    assert len(lines) == 1
    m = SUMMARY_PATTERN.match(lines[0])
    assert m
    assert m.group(1) == "plantilla_enero.xlsx"
