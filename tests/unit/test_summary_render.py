from __future__ import annotations

from datetime import UTC, datetime, timedelta

from brokerage_import.models import ImportOutcome
from brokerage_import.services.summary import format_elapsed, render_summary_line


def test_empty_outcome():
    line = render_summary_line(ImportOutcome(file_name="cartera.xlsx"))
    assert line == "SUMMARY file=cartera.xlsx clients=0/0 policies=0/0 beneficiaries=0/0 advisors=0/0 invalid=0 elapsed_sec=0"


def test_counts_and_elapsed():
    outcome = ImportOutcome(file_name="cartera enero.xlsx")
    for _ in range(3):
        outcome.clients.record_success()
    outcome.policies.record_success()
    outcome.policies.record_failure()
    outcome.beneficiaries.record_failure()
    outcome.policy_advisors.record_success()
    outcome.invalid_entities = 2
    start = datetime(2024, 1, 1, tzinfo=UTC)
    outcome.start_time, outcome.end_time = start, start + timedelta(seconds=1.25)

    assert render_summary_line(outcome) == (
        "SUMMARY file=cartera_enero.xlsx clients=3/0 policies=1/1 beneficiaries=0/1 "
        "advisors=1/0 invalid=2 elapsed_sec=1.25"
    )


def test_format_elapsed():
    assert format_elapsed(0) == "0"
    assert format_elapsed(3.0) == "3"
    assert format_elapsed(0.5) == "0.5"
    assert format_elapsed(0.0001234) == "0.000123"
    assert "e" not in format_elapsed(1e-7)
