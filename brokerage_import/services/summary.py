from __future__ import annotations

from ..models.import_outcome import ImportOutcome, PhaseCounter

"""SUMMARY line rendering.

Format (one line, space separated)::

    SUMMARY file=<name> clients=<ok>/<failed> policies=<ok>/<failed>
    beneficiaries=<ok>/<failed> advisors=<ok>/<failed> invalid=<n> elapsed_sec=<x>
"""

__all__ = [
    "render_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Seconds without scientific notation or trailing zeros."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def _pair(counter: PhaseCounter) -> str:
    return f"{counter.success_count}/{counter.failure_count}"


def render_summary_line(outcome: ImportOutcome) -> str:
    """Render the SUMMARY line for one import run.

    >>> from brokerage_import.models import ImportOutcome
    >>> render_summary_line(ImportOutcome(file_name="cartera.xlsx"))
    'SUMMARY file=cartera.xlsx clients=0/0 policies=0/0 beneficiaries=0/0 advisors=0/0 invalid=0 elapsed_sec=0'
    """
    # file names may contain spaces; keep the line splittable on whitespace
    name = outcome.file_name.replace(" ", "_") or "-"
    return (
        f"SUMMARY file={name} "
        f"clients={_pair(outcome.clients)} "
        f"policies={_pair(outcome.policies)} "
        f"beneficiaries={_pair(outcome.beneficiaries)} "
        f"advisors={_pair(outcome.policy_advisors)} "
        f"invalid={outcome.invalid_entities} "
        f"elapsed_sec={format_elapsed(outcome.elapsed_seconds)}"
    )
