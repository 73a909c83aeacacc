"""Tests for NDJSON logging and cycle telemetry events."""

from __future__ import annotations

import json
import sys

import pytest
from loguru import logger

from block_qa_tracker.ndjson_logger import (
    clear_provenance_context,
    get_provenance,
    get_trace_id,
    new_cycle_trace_id,
    set_provenance_context,
    setup_ndjson_logger,
)
from block_qa_tracker.telemetry import (
    log_block_fetched,
    log_comparison_result,
    log_cycle_failed,
    log_cycle_start,
    log_divergence_reported,
)


@pytest.fixture
def ndjson_dir(temp_dir):
    """NDJSON file logging into temp_dir; default stderr sink restored afterwards."""
    setup_ndjson_logger(log_dir=temp_dir, env="test", console_level=None)
    yield temp_dir
    logger.remove()
    logger.add(sys.stderr)


def _read_lines(log_dir) -> list[dict]:
    logger.complete()
    text = (log_dir / "block_qa_tracker.jsonl").read_text(encoding="utf-8")
    return [json.loads(line) for line in text.splitlines() if line]


class TestNDJSONLogger:
    """Tests for setup_ndjson_logger() output schema."""

    def test_core_schema(self, ndjson_dir):
        new_cycle_trace_id()
        set_provenance_context(42, "firehose")
        try:
            logger.bind(context={"k": 1}).info("hello")
        finally:
            clear_provenance_context()

        entry = _read_lines(ndjson_dir)[-1]
        assert entry["msg"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["component"] == "block_qa_tracker"
        assert entry["env"] == "test"
        assert entry["trace_id"] == get_trace_id()
        assert entry["provenance"]["sequence"] == 42
        assert entry["provenance"]["source"] == "firehose"
        assert entry["context"] == {"k": 1}

    def test_event_type_lifted(self, ndjson_dir):
        log_cycle_start(3, "periodic")
        entry = _read_lines(ndjson_dir)[-1]
        assert entry["event"] == "cycle.start"
        assert entry["context"]["cycle_index"] == 3

    def test_plain_line_has_no_event(self, ndjson_dir):
        logger.info("plain")
        assert "event" not in _read_lines(ndjson_dir)[-1]

    def test_braces_in_message(self, ndjson_dir):
        logger.info("payload {not a field}")
        assert _read_lines(ndjson_dir)[-1]["msg"] == "payload {not a field}"

    def test_exception_recorded(self, ndjson_dir):
        try:
            raise ValueError("bad block")
        except ValueError as e:
            logger.opt(exception=e).error("failed")
        entry = _read_lines(ndjson_dir)[-1]
        assert entry["exception"] == {"type": "ValueError", "value": "bad block"}


class TestTraceAndProvenance:
    def test_new_trace_per_cycle(self):
        first = new_cycle_trace_id()
        second = new_cycle_trace_id()
        assert first != second
        assert get_trace_id() == second
        assert len(second) == 16

    def test_clear_provenance(self):
        set_provenance_context(7, "rpc_fetcher")
        clear_provenance_context()
        provenance = get_provenance()
        assert provenance["sequence"] is None
        assert provenance["source"] is None
        assert provenance["session_id"].startswith("sess_")


class TestEvents:
    """Tests for the cycle event helpers."""

    def _events(self, log_records) -> dict[str, tuple[str, dict]]:
        return {
            r["extra"]["context"]["event_type"]: (r["level"].name, r["extra"]["context"])
            for r in log_records
            if "event_type" in r["extra"].get("context", {})
        }

    def test_levels_and_payloads(self, log_records):
        log_cycle_start(1, "initial")
        log_block_fetched("firehose", 42, "Hash42", "ab" * 32, 3, 7, 12.34567)
        log_comparison_result(42, "aa", "bb", matched=False)
        log_divergence_reported(42, "a.json", "b.json", 2, notified=True)
        log_cycle_failed("skipped_position", "rpc_fetcher", 43, "position has no record")

        events = self._events(log_records)
        assert events["cycle.start"][0] == "DEBUG"
        assert events["block.fetched"][1]["elapsed_ms"] == 12.346
        assert events["block.fetched"][1]["log_message_count"] == 7
        assert events["comparison.result"][0] == "WARNING"
        assert events["divergence.reported"][1]["notified"] is True
        assert events["cycle.failed"][0] == "ERROR"
        assert events["cycle.failed"][1]["kind"] == "skipped_position"
        assert all("trace_id" in payload for _, payload in events.values())

    def test_match_logged_at_info(self, log_records):
        log_comparison_result(42, "aa", "aa", matched=True)
        assert self._events(log_records)["comparison.result"][0] == "INFO"
