"""Telemetry module for comparison cycle forensics.

This module provides event types for structured NDJSON telemetry, one per
step of the fetch-compare-report cycle.
"""

from block_qa_tracker.telemetry.events import (
    BlockFetchedEvent,
    ComparisonResultEvent,
    CycleFailedEvent,
    CycleStartEvent,
    DivergenceReportedEvent,
    log_block_fetched,
    log_comparison_result,
    log_cycle_failed,
    log_cycle_start,
    log_divergence_reported,
)

__all__ = [
    "BlockFetchedEvent",
    "ComparisonResultEvent",
    "CycleFailedEvent",
    "CycleStartEvent",
    "DivergenceReportedEvent",
    "log_block_fetched",
    "log_comparison_result",
    "log_cycle_failed",
    "log_cycle_start",
    "log_divergence_reported",
]
