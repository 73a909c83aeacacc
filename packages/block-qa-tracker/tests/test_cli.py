"""Tests for the command-line entry points."""

from __future__ import annotations

import sys

import pytest
import requests
from fixtures.doubles import FakeLatestSource, FakeSequencedSource, FakeSession, RecordingSink, make_record
from loguru import logger

from block_qa_tracker import cli
from block_qa_tracker.config import TrackerConfig
from block_qa_tracker.reporter import render_record


@pytest.fixture
def restore_logger():
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestArguments:
    """Tests for build_parser() and apply_overrides()."""

    def test_flags_override_config(self, temp_dir):
        args = cli.build_parser().parse_args([
            "30s",
            "--firehose-endpoint", "https://fh.test",
            "--solana-rpc-endpoint", "https://rpc.test",
            "--slack-webhook-url", "https://hooks.test/x",
            "--slack-channel", "alerts",
            "--artifacts-dir", str(temp_dir),
            "--deadline", "15",
            "--log-level", "debug",
            "--recheck-head",
        ])
        config = cli.apply_overrides(TrackerConfig(), args)

        assert args.interval == "30s"
        assert config.stream.endpoint == "https://fh.test"
        assert config.rpc.endpoint == "https://rpc.test"
        assert config.notify.webhook_url == "https://hooks.test/x"
        assert config.notify.channel == "alerts"
        assert config.artifacts_dir == temp_dir
        assert config.stream.deadline_seconds == config.rpc.deadline_seconds == 15.0
        assert config.logging.console_level == "DEBUG"
        assert config.schedule.advance_only is False

    def test_defaults_untouched_without_flags(self):
        args = cli.build_parser().parse_args(["5m"])
        config = cli.apply_overrides(TrackerConfig(), args)
        assert config == TrackerConfig()


class TestMain:
    """Tests for main() exit codes and wiring."""

    @pytest.mark.parametrize("interval", ["abc", "5x", "0s"])
    def test_invalid_interval_exits_2(self, interval, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([interval])
        assert exc_info.value.code == 2
        assert "invalid interval format" in capsys.readouterr().err

    def test_missing_interval_exits_2(self):
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2

    def test_missing_config_file_exits_1(self, temp_dir):
        assert cli.main(["30s", "--config", str(temp_dir / "nope.toml")]) == 1

    def test_config_directory_exits_1(self, temp_dir):
        assert cli.main(["30s", "--config", str(temp_dir)]) == 1

    @pytest.mark.parametrize(
        "text",
        ['[stream]\ndeadline_seconds = "soon"', "stream = 5", "[logging]\nlevel = 5"],
    )
    def test_malformed_config_values_exit_2(self, temp_dir, text, capsys):
        path = temp_dir / "tracker.toml"
        path.write_text(text)
        assert cli.main(["30s", "--config", str(path)]) == 2
        assert "Configuration errors" in capsys.readouterr().err

    def test_unreachable_firehose_exits_1(self, temp_dir, monkeypatch, restore_logger):
        from block_qa_tracker.sources import stream

        monkeypatch.setattr(stream.requests, "Session", lambda: FakeSession(requests.ConnectionError("refused")))
        assert cli.main(["30s", "--log-dir", str(temp_dir / "logs")]) == 1

    def test_invalid_endpoint_exits_2(self):
        assert cli.main(["30s", "--firehose-endpoint", "mainnet.sol.streamingfast.io:443"]) == 2

    def test_connection_failure_exits_1(self, temp_dir, monkeypatch, restore_logger):
        from block_qa_tracker.errors import ConnectionSetupError

        def failing_build(config, credentials):
            raise ConnectionSetupError(config.stream.endpoint, "refused")

        monkeypatch.setattr(cli, "build_comparator", failing_build)
        assert cli.main(["30s", "--log-dir", str(temp_dir / "logs")]) == 1

    def test_runs_until_stopped(self, temp_dir, monkeypatch, restore_logger):
        """One divergent cycle, then a stop request: artifacts written, exit 0."""
        captured = {}
        sink = RecordingSink()
        real_build = cli.build_comparator

        def fake_build(config, credentials):
            comparator = real_build(
                config,
                credentials,
                source_a=FakeLatestSource(make_record(42, fee=1)),
                source_b=FakeSequencedSource({42: make_record(42, fee=2)}),
                sink=sink,
            )
            run = comparator.run_cycle

            def run_then_stop():
                try:
                    return run()
                finally:
                    captured["stop"].set()

            comparator.run_cycle = run_then_stop
            return comparator

        monkeypatch.setattr(cli, "build_comparator", fake_build)
        monkeypatch.setattr(cli, "install_signal_handlers", lambda event: captured.setdefault("stop", event))

        artifacts = temp_dir / "artifacts"
        code = cli.main(["1h", "--artifacts-dir", str(artifacts), "--log-dir", str(temp_dir / "logs")])

        assert code == 0
        assert (artifacts / "firehose_block_42.json").exists()
        assert (artifacts / "rpc_fetcher_block_42.json").exists()
        assert len(sink.messages) == 1
        assert (temp_dir / "logs" / "block_qa_tracker.jsonl").exists()


class TestDiffMain:
    """Tests for the block-qa-diff entry point."""

    def _write(self, path, record):
        path.write_text(render_record(record), encoding="utf-8")
        return str(path)

    def test_identical_exits_0(self, temp_dir):
        a = self._write(temp_dir / "a.json", make_record(42, logs=("Program log: A",)))
        b = self._write(temp_dir / "b.json", make_record(42, logs=("Program log: B",)))
        assert cli.diff_main([a, b]) == 0

    def test_logs_compared_on_request(self, temp_dir):
        a = self._write(temp_dir / "a.json", make_record(42, logs=("Program log: A",)))
        b = self._write(temp_dir / "b.json", make_record(42, logs=("Program log: B",)))
        assert cli.diff_main([a, b, "--with-logs"]) == 1

    def test_different_exits_1(self, temp_dir, capsys):
        a = self._write(temp_dir / "a.json", make_record(42, fee=1))
        b = self._write(temp_dir / "b.json", make_record(42, fee=2))
        assert cli.diff_main([a, b]) == 1
        assert "transactions[0].meta.fee" in capsys.readouterr().out

    def test_missing_file_exits_2(self, temp_dir):
        a = self._write(temp_dir / "a.json", make_record(42))
        assert cli.diff_main([a, str(temp_dir / "missing.json")]) == 2
