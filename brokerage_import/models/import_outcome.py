from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

"""Import outcome models.

PhaseCounter only ever increments, so ``success_count + failure_count`` is
monotonic over an executor run. ImportOutcome aggregates one counter per
entity type plus the bookkeeping needed for the audit record and the SUMMARY
line.
"""

__all__ = [
    "ExecutorState",
    "PhaseCounter",
    "ImportOutcome",
]


class ExecutorState(Enum):
    """Executor lifecycle.

    IDLE -> IMPORTING_PARENTS -> IMPORTING_POLICIES -> IMPORTING_CHILDREN -> COMPLETE
    COMPLETE is terminal.
    """
    IDLE = "idle"
    IMPORTING_PARENTS = "importing_parents"
    IMPORTING_POLICIES = "importing_policies"
    IMPORTING_CHILDREN = "importing_children"
    COMPLETE = "complete"


class PhaseCounter:
    """Success/failure counter for one entity type."""

    def __init__(self) -> None:
        self._success = 0
        self._failure = 0

    @property
    def success_count(self) -> int:
        return self._success

    @property
    def failure_count(self) -> int:
        return self._failure

    @property
    def attempted(self) -> int:
        return self._success + self._failure

    def record_success(self) -> None:
        self._success += 1

    def record_failure(self) -> None:
        self._failure += 1

    def as_dict(self) -> dict[str, int]:
        return {"success": self._success, "failure": self._failure}

    def __repr__(self) -> str:  # pragma: no cover (debug aid)
        return f"PhaseCounter(success={self._success}, failure={self._failure})"


@dataclass
class ImportOutcome:
    """Per-entity counters accumulated by the executor for one file."""
    file_name: str
    clients: PhaseCounter = field(default_factory=PhaseCounter)
    policies: PhaseCounter = field(default_factory=PhaseCounter)
    beneficiaries: PhaseCounter = field(default_factory=PhaseCounter)
    policy_advisors: PhaseCounter = field(default_factory=PhaseCounter)
    policies_updated: int = 0  # subset of policies.success_count
    policies_skipped: int = 0  # existing policies left untouched (skip mode)
    invalid_entities: int = 0  # excluded before execution, never attempted
    state: ExecutorState = ExecutorState.IDLE
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def counters(self) -> dict[str, PhaseCounter]:
        return {
            "clients": self.clients,
            "policies": self.policies,
            "beneficiaries": self.beneficiaries,
            "policy_advisors": self.policy_advisors,
        }

    @property
    def total_success(self) -> int:
        return sum(c.success_count for c in self.counters.values())

    @property
    def total_failure(self) -> int:
        return sum(c.failure_count for c in self.counters.values())

    @property
    def elapsed_seconds(self) -> float:
        if self.start_time is None or self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def has_failures(self) -> bool:
        return self.total_failure > 0 or self.invalid_entities > 0

    def as_details(self) -> dict[str, Any]:
        """Audit-record payload (file name + per-entity counts)."""
        return {
            "file_name": self.file_name,
            "clients_created": self.clients.success_count,
            "clients_failed": self.clients.failure_count,
            "policies_created": self.policies.success_count - self.policies_updated,
            "policies_updated": self.policies_updated,
            "policies_skipped": self.policies_skipped,
            "policies_failed": self.policies.failure_count,
            "beneficiaries_created": self.beneficiaries.success_count,
            "beneficiaries_failed": self.beneficiaries.failure_count,
            "advisor_links_created": self.policy_advisors.success_count,
            "advisor_links_failed": self.policy_advisors.failure_count,
            "invalid_entities": self.invalid_entities,
            "failed": self.total_failure,
        }
