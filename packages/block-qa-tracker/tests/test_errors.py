"""Tests for the error hierarchy."""

from __future__ import annotations

import pytest

from block_qa_tracker.errors import (
    ArtifactWriteError,
    ConfigError,
    ConfigValueError,
    ConnectionSetupError,
    CycleError,
    DeadlineExceededError,
    DecodeError,
    FetchError,
    NotificationError,
    SerializationError,
    SkippedPositionError,
    StartupError,
    TrackerError,
)


class TestCycleErrors:
    @pytest.mark.parametrize(
        "cls,kind",
        [
            (FetchError, "fetch_error"),
            (DecodeError, "decode_error"),
            (DeadlineExceededError, "deadline_exceeded"),
            (SerializationError, "serialization_error"),
            (ArtifactWriteError, "artifact_write_error"),
        ],
    )
    def test_kind_and_context(self, cls, kind):
        err = cls("firehose", 42, "boom")
        assert isinstance(err, CycleError)
        assert err.to_dict() == {"kind": kind, "source": "firehose", "sequence": 42, "cause": "boom"}
        assert str(err) == f"{kind} from firehose at sequence 42: boom"

    def test_unknown_sequence_reads_head(self):
        assert "at head" in str(FetchError("firehose", None, "reset"))

    def test_skipped_position(self):
        err = SkippedPositionError("rpc_fetcher", 42)
        assert err.kind == "skipped_position"
        assert str(err) == "block 42 was skipped (rpc_fetcher)"


class TestFamilies:
    def test_startup_and_notification_are_not_cycle_errors(self):
        """Only CycleError is caught per cycle; the others have their own handling."""
        assert not issubclass(StartupError, CycleError)
        assert not issubclass(NotificationError, CycleError)
        assert issubclass(ConnectionSetupError, StartupError)
        assert issubclass(ConfigValueError, ConfigError)
        assert issubclass(CycleError, TrackerError)

    def test_connection_setup_error(self):
        err = ConnectionSetupError("https://fh.test", "refused")
        assert err.endpoint == "https://fh.test"
        assert "refused" in str(err)
