"""Comparator: one fetch-canonicalize-compare-report cycle.

Cycle steps, always in this order:
1. Source A returns its head block and sequence S
2. Source B is asked for exactly S (never for its own head)
3. Both records are canonicalized and fingerprinted; originals untouched
4. Fingerprints are compared
5. Match: log and finish
6. Mismatch: hand both original records to the DivergenceReporter

Any CycleError aborts the cycle. It is logged here with its source,
sequence and cause, then re-raised for the scheduler to count and move on.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from block_qa_tracker.errors import CycleError
from block_qa_tracker.fingerprint import Fingerprint, compute_fingerprint
from block_qa_tracker.ndjson_logger import (
    clear_provenance_context,
    new_cycle_trace_id,
    set_provenance_context,
)
from block_qa_tracker.records import BlockRecord, ComparisonOutcome
from block_qa_tracker.reporter import DivergenceReporter
from block_qa_tracker.sources.base import LatestBlockSource, SequencedBlockSource
from block_qa_tracker.telemetry import (
    log_block_fetched,
    log_comparison_result,
    log_cycle_failed,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CycleStats:
    """Running totals across cycles."""

    cycles: int = 0
    matched: int = 0
    diverged: int = 0
    failed: int = 0
    stale: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycles": self.cycles,
            "matched": self.matched,
            "diverged": self.diverged,
            "failed": self.failed,
            "stale": self.stale,
        }


class Comparator:
    """Drives one comparison cycle against two sources.

    Args:
        source_a: Streaming source; authoritative for the sequence
        source_b: Point-fetch source, queried with source A's sequence
        reporter: Receives mismatches
        advance_only: Skip the cycle when source A's head has not moved
            past the last compared sequence
        clock: Returns the outcome timestamp (UTC)
    """

    def __init__(
        self,
        source_a: LatestBlockSource,
        source_b: SequencedBlockSource,
        reporter: DivergenceReporter,
        advance_only: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.source_a = source_a
        self.source_b = source_b
        self.reporter = reporter
        self.advance_only = advance_only
        self.clock = clock
        self.last_sequence: int | None = None
        self.stats = CycleStats()

    def _fingerprint(self, record: BlockRecord, label: str, elapsed_ms: float) -> Fingerprint:
        set_provenance_context(record.sequence, label)
        fp = compute_fingerprint(record, source=label)
        log_block_fetched(
            source=label,
            sequence=record.sequence,
            content_hash=record.content_hash,
            fingerprint=fp.sha256,
            transaction_count=fp.transaction_count,
            log_message_count=record.log_message_count(),
            elapsed_ms=elapsed_ms,
        )
        return fp

    def run_cycle(self) -> ComparisonOutcome | None:
        """Run one cycle.

        Returns:
            The ComparisonOutcome, or None if the cycle was skipped because
            source A's head has not advanced

        Raises:
            CycleError: If any step fails; nothing is compared or reported
        """
        new_cycle_trace_id()
        self.stats.cycles += 1
        label_a, label_b = self.source_a.label, self.source_b.label
        try:
            set_provenance_context(None, label_a)
            logger.info(f"Fetching latest block from {label_a}")
            t0 = time.perf_counter()
            record_a, sequence = self.source_a.fetch_latest()
            elapsed_a = (time.perf_counter() - t0) * 1000
            logger.info(f"Successfully fetched {label_a} block at slot {sequence}")

            if self.advance_only and self.last_sequence is not None and sequence <= self.last_sequence:
                self.stats.stale += 1
                stale = {"reason": "stale_head", "sequence": sequence, "last_sequence": self.last_sequence}
                logger.bind(context=stale).info(
                    f"Head has not advanced past slot {self.last_sequence}, skipping comparison"
                )
                return None

            set_provenance_context(sequence, label_b)
            logger.info(f"Fetching block {sequence} from {label_b}")
            t0 = time.perf_counter()
            record_b = self.source_b.fetch_by_sequence(sequence)
            elapsed_b = (time.perf_counter() - t0) * 1000
            logger.info(f"Successfully fetched {label_b} block {sequence} (hash {record_b.content_hash})")

            fp_a = self._fingerprint(record_a, label_a, elapsed_a)
            fp_b = self._fingerprint(record_b, label_b, elapsed_b)
            set_provenance_context(sequence, None)

            outcome = ComparisonOutcome(
                sequence=sequence,
                fingerprint_a=fp_a.sha256,
                fingerprint_b=fp_b.sha256,
                matched=fp_a == fp_b,
                timestamp=self.clock(),
            )
            log_comparison_result(sequence, fp_a.sha256, fp_b.sha256, outcome.matched)

            if outcome.matched:
                self.stats.matched += 1
                logger.success(f"Checksums are equal for slot {sequence} ({fp_a.short})")
            else:
                logger.warning(
                    f"Checksums differ for slot {sequence}: "
                    f"{label_a}={fp_a.short} {label_b}={fp_b.short}"
                )
                self.reporter.report(outcome, record_a, record_b)
                self.stats.diverged += 1

            self.last_sequence = sequence
            return outcome

        except CycleError as e:
            self.stats.failed += 1
            log_cycle_failed(e.kind, e.source, e.sequence, str(e.cause))
            raise
        finally:
            clear_provenance_context()
