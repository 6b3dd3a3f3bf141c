"""Progress bars for long-running backup and restore steps."""

from __future__ import annotations

import contextlib
from typing import Any

import click

# Labels shown next to each engine step
STEP_LABELS = {
    "fetch_contacts": "Fetching contacts",
    "delete_contacts": "Deleting contacts",
    "delete_groups": "Deleting labels",
    "create_groups": "Creating labels",
    "create_contacts": "Creating contacts",
}


class ProgressDisplay:
    """
    Renders (step, current, total) reports as one click progress bar per step.

    A new bar starts whenever the step changes. When the total is unknown
    (reported as 0) the bar grows with the count.

    Usage:
        with ProgressDisplay() as progress:
            engine.restore(path, on_progress=progress)
    """

    def __init__(self) -> None:
        self._stack = contextlib.ExitStack()
        self._bar: Any = None
        self._step: str | None = None
        self._position = 0

    def __enter__(self) -> ProgressDisplay:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __call__(self, step: str, current: int, total: int) -> None:
        if step != self._step:
            self.close()
            self._step = step
            self._bar = self._stack.enter_context(
                click.progressbar(
                    length=max(total, current, 1),
                    label=STEP_LABELS.get(step, step),
                    show_pos=True,
                )
            )

        self._bar.length = max(total, current, 1)
        self._bar.update(current - self._position)
        self._position = current

    def close(self) -> None:
        """Finish the current bar, if any."""
        self._stack.close()
        self._bar = None
        self._step = None
        self._position = 0
