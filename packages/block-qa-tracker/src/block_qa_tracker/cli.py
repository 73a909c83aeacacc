"""Command-line entry points.

    block-qa-tracker INTERVAL [options]     run the periodic comparison
    block-qa-diff A.json B.json             diff two divergence artifacts

Exit codes for block-qa-tracker:
    0  graceful shutdown (SIGINT/SIGTERM honoured between cycles)
    1  startup failure (Firehose endpoint unreachable, unreadable config file)
    2  invalid arguments or configuration values (including the interval)
"""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.traceback import install

from block_qa_tracker import __version__
from block_qa_tracker.comparator import Comparator
from block_qa_tracker.config import (
    API_KEY_ENV_VAR,
    TOKEN_ENV_VAR,
    Credentials,
    TrackerConfig,
    credentials_from_env,
    load_tracker_config,
    print_config_summary,
    validate_tracker_config,
)
from block_qa_tracker.diff import diff_records, load_artifact
from block_qa_tracker.errors import ConfigError, ConfigValueError, ConnectionSetupError, InvalidIntervalError
from block_qa_tracker.fingerprint import compute_fingerprint
from block_qa_tracker.interval import parse_interval
from block_qa_tracker.ndjson_logger import setup_ndjson_logger
from block_qa_tracker.notify import NotificationSink, WebhookNotifier
from block_qa_tracker.reporter import DivergenceReporter
from block_qa_tracker.scheduler import Scheduler, install_signal_handlers
from block_qa_tracker.sources import (
    LatestBlockSource,
    PointFetchSourceAdapter,
    SequencedBlockSource,
    StreamSourceAdapter,
)

console = Console(stderr=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="block-qa-tracker",
        description=(
            "Compare Solana blocks between StreamingFast Firehose and an RPC fetcher "
            "to ensure data consistency. Runs periodic comparisons at the given interval."
        ),
        epilog=f"Credentials: set {TOKEN_ENV_VAR} (bearer token) or {API_KEY_ENV_VAR}; the token wins if both are set.",
    )
    parser.add_argument(
        "interval",
        nargs="?",
        help="Comparison interval (examples: 30s, 5m, 1h, 1h30m); falls back to [schedule] interval",
    )
    parser.add_argument("--firehose-endpoint", help="StreamingFast Solana Firehose endpoint URL")
    parser.add_argument("--solana-rpc-endpoint", help="Solana RPC endpoint URL")
    parser.add_argument("--slack-webhook-url", help="Slack webhook URL for notifications")
    parser.add_argument("--slack-channel", help="Slack channel for notifications (default: solana)")
    parser.add_argument("--config", "-c", type=Path, help="TOML configuration file")
    parser.add_argument("--artifacts-dir", type=Path, help="Directory for divergence JSON files (default: cwd)")
    parser.add_argument("--log-dir", type=Path, help="Directory for NDJSON logs (default: logs/ndjson)")
    parser.add_argument("--log-level", help="Console log level (default: INFO)")
    parser.add_argument("--deadline", type=float, help="Per-call deadline in seconds for both sources")
    parser.add_argument(
        "--recheck-head",
        action="store_true",
        help="Compare the head block again even if it has not advanced since the last cycle",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_overrides(config: TrackerConfig, args: argparse.Namespace) -> TrackerConfig:
    """Apply command-line flags on top of file configuration."""
    if args.firehose_endpoint:
        config.stream.endpoint = args.firehose_endpoint
    if args.solana_rpc_endpoint:
        config.rpc.endpoint = args.solana_rpc_endpoint
    if args.slack_webhook_url is not None:
        config.notify.webhook_url = args.slack_webhook_url
    if args.slack_channel:
        config.notify.channel = args.slack_channel
    if args.artifacts_dir is not None:
        config.artifacts.directory = str(args.artifacts_dir)
    if args.log_dir is not None:
        config.logging.log_dir = str(args.log_dir)
    if args.log_level:
        config.logging.console_level = args.log_level.upper()
    if args.deadline is not None:
        config.stream.deadline_seconds = args.deadline
        config.rpc.deadline_seconds = args.deadline
    if args.recheck_head:
        config.schedule.advance_only = False
    return config


def build_comparator(
    config: TrackerConfig,
    credentials: Credentials,
    source_a: LatestBlockSource | None = None,
    source_b: SequencedBlockSource | None = None,
    sink: NotificationSink | None = None,
) -> Comparator:
    """Wire sources, reporter and sink into a Comparator.

    Raises:
        ConnectionSetupError: If the streaming endpoint is malformed or unreachable
    """
    if source_a is None:
        source_a = StreamSourceAdapter.from_config(config.stream, credentials, check_reachable=True)
    if source_b is None:
        source_b = PointFetchSourceAdapter.from_config(config.rpc)
    if sink is None:
        sink = WebhookNotifier.from_config(config.notify)
    reporter = DivergenceReporter(
        sink,
        config.artifacts_dir,
        label_a=source_a.label,
        label_b=source_b.label,
        indent=config.artifacts.indent,
    )
    return Comparator(source_a, source_b, reporter, advance_only=config.schedule.advance_only)


def _close(*resources: object) -> None:
    for resource in resources:
        close = getattr(resource, "close", None)
        if callable(close):
            close()


def main(argv: list[str] | None = None) -> int:
    install(show_locals=False)
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = apply_overrides(load_tracker_config(args.config), args)
    except ConfigValueError as e:
        console.print(f"[red]❌ Configuration errors:[/red]\n  - {escape(str(e))}")
        return 2
    except ConfigError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        return 1

    interval_text = args.interval or config.schedule.interval
    if not interval_text:
        parser.error("the interval argument is required (or set [schedule] interval in the config file)")
    try:
        interval_seconds = parse_interval(interval_text)
    except InvalidIntervalError as e:
        parser.error(str(e))

    is_valid, errors = validate_tracker_config(config)
    if not is_valid:
        console.print("[red]❌ Configuration errors:[/red]")
        for err in errors:
            console.print(f"  - {escape(err)}")
        return 2

    setup_ndjson_logger(
        log_dir=config.logging.log_dir,
        env=config.logging.env,
        level=config.logging.level,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
        console_level=config.logging.console_level,
    )

    credentials = credentials_from_env()
    print_config_summary(config, credentials, interval_seconds, console=console)
    if not config.notify.enabled:
        logger.warning("Slack webhook not configured; divergences will only be written to disk")

    try:
        comparator = build_comparator(config, credentials)
    except ConnectionSetupError as e:
        logger.critical(f"Failed to connect to Firehose: {e}")
        logger.complete()
        return 1

    stop_event = threading.Event()
    install_signal_handlers(stop_event)
    scheduler = Scheduler(interval_seconds, comparator.run_cycle, stop_event)
    logger.info("Press Ctrl+C to stop the tracker")
    try:
        scheduler.run()
    finally:
        _close(comparator.source_a, comparator.source_b, comparator.reporter.sink)
        logger.bind(context=comparator.stats.to_dict()).info("Tracker shut down gracefully")
        logger.complete()
    return 0


def diff_main(argv: list[str] | None = None) -> int:
    """Print field-level differences between two artifact files.

    Returns 0 when the records are canonically equal, 1 otherwise.
    """
    parser = argparse.ArgumentParser(
        prog="block-qa-diff",
        description="Diff two divergence artifact files (diagnostic logs ignored unless --with-logs)",
    )
    parser.add_argument("file_a", type=Path)
    parser.add_argument("file_b", type=Path)
    parser.add_argument("--with-logs", action="store_true", help="Include transaction logs in the diff")
    parser.add_argument("--limit", type=int, default=50, help="Maximum rows to print (default: 50)")
    args = parser.parse_args(argv)

    out = Console()
    try:
        record_a = load_artifact(args.file_a)
        record_b = load_artifact(args.file_b)
    except (OSError, ValueError, TypeError, KeyError) as e:
        out.print(f"[red]❌ Cannot load artifact: {e}[/red]")
        return 2

    result = diff_records(record_a, record_b, canonical=not args.with_logs)
    out.print(f"A: {args.file_a}  sha256={compute_fingerprint(record_a).sha256}")
    out.print(f"B: {args.file_b}  sha256={compute_fingerprint(record_b).sha256}")

    if result["aligned"]:
        out.print("[green]✅ Records are identical[/green]")
        return 0

    table = Table(title=f"{result['discrepancy_count']} differing field(s)")
    table.add_column("path", style="cyan", no_wrap=True)
    table.add_column("kind")
    table.add_column("A")
    table.add_column("B")
    for d in result["discrepancies"][: args.limit]:
        table.add_row(escape(d["path"] or "<root>"), d["kind"], escape(repr(d["a"])[:80]), escape(repr(d["b"])[:80]))
    out.print(table)
    return 1


if __name__ == "__main__":
    sys.exit(main())
