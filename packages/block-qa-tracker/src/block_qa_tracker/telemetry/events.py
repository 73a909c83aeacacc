"""Telemetry event definitions for comparison cycles.

This module defines structured event types for:
- cycle.start: A comparison cycle began
- block.fetched: One source returned a block (with its fingerprint)
- comparison.result: Both fingerprints were compared
- divergence.reported: Artifacts were written and an alert attempted
- cycle.failed: A cycle aborted with a recoverable error

Events are logged as NDJSON so that every cycle outcome can be
reconstructed from the log alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from loguru import logger

from block_qa_tracker.ndjson_logger import get_trace_id


@dataclass
class CycleStartEvent:
    """Event logged when a comparison cycle begins."""

    cycle_index: int
    trigger: str  # "initial" or "periodic"
    event_type: str = "cycle.start"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "event_type": self.event_type,
            "cycle_index": self.cycle_index,
            "trigger": self.trigger,
        }


@dataclass
class BlockFetchedEvent:
    """Event logged when a source returns a block.

    Captures the fingerprint so two sources' lines can be matched up.
    """

    source: str
    sequence: int
    content_hash: str
    fingerprint: str
    transaction_count: int
    log_message_count: int
    elapsed_ms: float
    event_type: str = "block.fetched"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "event_type": self.event_type,
            "source": self.source,
            "sequence": self.sequence,
            "content_hash": self.content_hash,
            "fingerprint": self.fingerprint,
            "transaction_count": self.transaction_count,
            "log_message_count": self.log_message_count,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


@dataclass
class ComparisonResultEvent:
    """Event logged after both fingerprints are compared."""

    sequence: int
    fingerprint_a: str
    fingerprint_b: str
    matched: bool
    event_type: str = "comparison.result"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "event_type": self.event_type,
            "sequence": self.sequence,
            "fingerprint_a": self.fingerprint_a,
            "fingerprint_b": self.fingerprint_b,
            "matched": self.matched,
        }


@dataclass
class DivergenceReportedEvent:
    """Event logged when divergence evidence has been persisted."""

    sequence: int
    path_a: str
    path_b: str
    discrepancy_count: int
    notified: bool
    event_type: str = "divergence.reported"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "event_type": self.event_type,
            "sequence": self.sequence,
            "path_a": self.path_a,
            "path_b": self.path_b,
            "discrepancy_count": self.discrepancy_count,
            "notified": self.notified,
        }


@dataclass
class CycleFailedEvent:
    """Event logged when a cycle aborts with a recoverable error."""

    kind: str
    source: str
    sequence: int | None
    cause: str
    context: dict[str, Any] = field(default_factory=dict)
    event_type: str = "cycle.failed"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "event_type": self.event_type,
            "kind": self.kind,
            "source": self.source,
            "sequence": self.sequence,
            "cause": self.cause,
            "context": self.context,
        }


def _emit_event(event_dict: dict[str, Any], level: str = "INFO") -> None:
    """Emit event to loguru with proper formatting.

    Args:
        event_dict: Event data to log
        level: Log level (DEBUG, INFO, WARNING, ERROR)
    """
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")

    log_entry = {
        "ts": ts,
        "trace_id": get_trace_id(),
        **event_dict,
    }

    bound_logger = logger.bind(context=log_entry)
    msg = f"[{event_dict.get('event_type', 'event')}]"
    bound_logger.log(level, msg)


def log_cycle_start(cycle_index: int, trigger: str) -> CycleStartEvent:
    """Log the start of a comparison cycle."""
    event = CycleStartEvent(cycle_index=cycle_index, trigger=trigger)
    _emit_event(event.to_dict(), level="DEBUG")
    return event


def log_block_fetched(
    source: str,
    sequence: int,
    content_hash: str,
    fingerprint: str,
    transaction_count: int,
    log_message_count: int,
    elapsed_ms: float,
) -> BlockFetchedEvent:
    """Log a block fetched from one source.

    Args:
        source: Source label
        sequence: Block sequence
        content_hash: Source-supplied block hash
        fingerprint: Hex digest of the canonical record
        transaction_count: Number of transactions
        log_message_count: Diagnostic log lines stripped by canonicalization
        elapsed_ms: Time spent in the adapter call

    Returns:
        BlockFetchedEvent instance
    """
    event = BlockFetchedEvent(
        source=source,
        sequence=sequence,
        content_hash=content_hash,
        fingerprint=fingerprint,
        transaction_count=transaction_count,
        log_message_count=log_message_count,
        elapsed_ms=elapsed_ms,
    )
    _emit_event(event.to_dict())
    return event


def log_comparison_result(
    sequence: int,
    fingerprint_a: str,
    fingerprint_b: str,
    matched: bool,
) -> ComparisonResultEvent:
    """Log the comparison decision; mismatches are logged at WARNING."""
    event = ComparisonResultEvent(
        sequence=sequence,
        fingerprint_a=fingerprint_a,
        fingerprint_b=fingerprint_b,
        matched=matched,
    )
    _emit_event(event.to_dict(), level="INFO" if matched else "WARNING")
    return event


def log_divergence_reported(
    sequence: int,
    path_a: str,
    path_b: str,
    discrepancy_count: int,
    notified: bool,
) -> DivergenceReportedEvent:
    """Log persisted divergence evidence."""
    event = DivergenceReportedEvent(
        sequence=sequence,
        path_a=path_a,
        path_b=path_b,
        discrepancy_count=discrepancy_count,
        notified=notified,
    )
    _emit_event(event.to_dict(), level="WARNING")
    return event


def log_cycle_failed(
    kind: str,
    source: str,
    sequence: int | None,
    cause: str,
    context: dict[str, Any] | None = None,
) -> CycleFailedEvent:
    """Log a recoverable cycle failure."""
    event = CycleFailedEvent(
        kind=kind,
        source=source,
        sequence=sequence,
        cause=cause,
        context=context or {},
    )
    _emit_event(event.to_dict(), level="ERROR")
    return event
