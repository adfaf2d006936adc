from __future__ import annotations

import sys
from typing import Any, Protocol

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Progress observer interface and implementations.

The pipeline calls the observer synchronously at fixed checkpoints
(per ``TRANSFORM_CHECKPOINT`` transformed rows, per inserted batch); an
observer must return quickly and never raise.

TqdmProgress: single tqdm instance, disabled in non-TTY environments (CI) to
avoid ANSI control sequence spam.
"""

__all__ = [
    "TRANSFORM_CHECKPOINT",
    "ProgressObserver",
    "NullProgress",
    "TqdmProgress",
    "is_tty_enabled",
]

TRANSFORM_CHECKPOINT = 1000


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressObserver(Protocol):
    def phase_started(self, phase: str, total: int | None) -> None: ...

    def advance(self, count: int) -> None: ...

    def phase_finished(self, phase: str) -> None: ...


class NullProgress:
    """Observer that ignores every event."""

    def phase_started(self, phase: str, total: int | None) -> None:
        pass

    def advance(self, count: int) -> None:
        pass

    def phase_finished(self, phase: str) -> None:
        pass


class TqdmProgress:
    """One tqdm bar per phase (``transform``, ``load``).

    Args:
        enabled: force on/off; None -> TTY detection
    """

    def __init__(self, *, enabled: bool | None = None) -> None:
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None = None

    def phase_started(self, phase: str, total: int | None) -> None:
        self.close()
        if not self.enabled:
            return
        self.pbar = tqdm(
            total=total,
            desc=phase,
            unit="row",
            leave=True,
            position=0,
            ncols=80,
            ascii=True,
        )

    def advance(self, count: int) -> None:
        if self.pbar is not None:
            self.pbar.update(count)

    def phase_finished(self, phase: str) -> None:
        self.close()

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> TqdmProgress:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
