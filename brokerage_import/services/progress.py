from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress display with tqdm (TTY only).

One bar per executor phase, advanced after each attempted row, with a running
failure count as postfix. Outside a TTY (CI, redirected output) no bar is
created so logs stay free of control sequences.
"""

__all__ = [
    "PhaseProgress",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """True when stdout is a TTY and progress should be displayed."""
    return sys.stdout.isatty()


class PhaseProgress:
    """Progress bar for one executor phase."""

    def __init__(self, total: int, *, description: str, unit: str = "row") -> None:
        """Initialize the bar.

        Args:
            total: Number of rows the phase will attempt
            description: Label shown left of the bar (phase name)
            unit: Unit label for the counter
        """
        self.total = total
        self.description = description
        self.done = 0
        self.failed = 0

        self.enabled = is_tty_enabled() and total > 0
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total,
                desc=description,
                unit=unit,
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def advance(self, failed: bool = False) -> None:
        """Count one attempted row; failures show up as a postfix on the bar."""
        self.done += 1
        if failed:
            self.failed += 1
        if self.enabled and self.pbar is not None:
            if failed:
                self.pbar.set_postfix(failed=self.failed)
            self.pbar.update(1)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> PhaseProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
