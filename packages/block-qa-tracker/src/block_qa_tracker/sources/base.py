"""Capability interfaces for block sources.

The comparator only depends on these two narrow protocols, so test doubles
or additional sources can be substituted without touching it.
"""

from __future__ import annotations

import time
from typing import Protocol

from block_qa_tracker.errors import DeadlineExceededError
from block_qa_tracker.records import BlockRecord


class LatestBlockSource(Protocol):
    """A source that can report its most recent block (the head)."""

    label: str

    def fetch_latest(self) -> tuple[BlockRecord, int]:
        """Return the head block and its sequence.

        Raises:
            CycleError: On any recoverable failure
        """
        ...


class SequencedBlockSource(Protocol):
    """A source that can return the block at a given sequence."""

    label: str

    def fetch_by_sequence(self, sequence: int) -> BlockRecord:
        """Return the block at sequence.

        Raises:
            SkippedPositionError: If the position has no record
            CycleError: On any other recoverable failure
        """
        ...


class Deadline:
    """Monotonic per-call deadline shared by the adapters."""

    def __init__(self, seconds: float, source: str, sequence: int | None = None) -> None:
        self.seconds = seconds
        self.source = source
        self.sequence = sequence
        self._start = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Seconds since the deadline started."""
        return time.monotonic() - self._start

    @property
    def remaining(self) -> float:
        """Seconds left, never negative."""
        return max(0.0, self.seconds - self.elapsed)

    def expired(self) -> bool:
        return self.elapsed >= self.seconds

    def check(self) -> None:
        """Raise DeadlineExceededError once the deadline has passed."""
        if self.expired():
            raise self.exceeded()

    def exceeded(self, cause: BaseException | None = None) -> DeadlineExceededError:
        """Build the error reported when this deadline is missed."""
        detail = f"deadline of {self.seconds:g}s exceeded after {self.elapsed:.2f}s"
        if cause is not None:
            detail = f"{detail} ({cause})"
        return DeadlineExceededError(self.source, self.sequence, detail)
