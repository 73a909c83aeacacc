"""NDJSON structured logging for the block QA tracker.

Every line written to logs/ndjson/block_qa_tracker.jsonl is one JSON object:

{
    "ts": "2026-01-20T00:00:00.000000Z",   # UTC ISO 8601
    "level": "INFO",
    "msg": "Checksums are equal for slot 312345678 (3f2a9c...)",
    "component": "block_qa_tracker",
    "env": "production",
    "pid": 12345,
    "tid": 67890,
    "trace_id": "9b1c0d2e4f6a8b0c",        # one per comparison cycle
    "event": "comparison.result",          # only on telemetry lines
    "provenance": {
        "session_id": "sess_20260120_000000",
        "git_sha": "0dc100c1",
        "sequence": 312345678,             # slot under comparison, if known
        "source": "rpc_fetcher"            # adapter being queried, if any
    },
    "context": {...}                       # logger.bind(context=...) payload
}

The console sink keeps a short human format; the file sink is the one meant
for grep/jq. A broken record never takes the tracker down: the formatter
falls back to a minimal error line and loguru is configured with catch=True.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> <level>{level: <8}</level> <level>{message}</level>"
)

# Per-thread cycle state: trace id plus the sequence/source being worked on
_cycle = threading.local()

_session_id: str | None = None
_git_sha: str | None = None


def get_trace_id() -> str:
    """Trace ID of the current cycle (one is created on first use)."""
    trace_id = getattr(_cycle, "trace_id", None)
    if trace_id is None:
        trace_id = new_cycle_trace_id()
    return trace_id


def set_trace_id(trace_id: str) -> None:
    """Pin the trace ID, e.g. to correlate with an external run."""
    _cycle.trace_id = trace_id


def new_cycle_trace_id() -> str:
    """Start a fresh trace ID for a comparison cycle and return it."""
    trace_id = uuid.uuid4().hex[:16]
    set_trace_id(trace_id)
    return trace_id


def get_session_id() -> str:
    """Process-wide session ID, fixed at first use."""
    global _session_id
    if _session_id is None:
        _session_id = f"sess_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}"
    return _session_id


def get_git_sha() -> str:
    """Short git SHA of the working directory, or "unknown" outside a checkout."""
    global _git_sha
    if _git_sha is None:
        try:
            out = subprocess.run(
                ["git", "rev-parse", "--short=8", "HEAD"],
                capture_output=True,
                text=True,
                check=True,
                timeout=5,
            )
            _git_sha = out.stdout.strip() or "unknown"
        except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError):
            _git_sha = "unknown"
    return _git_sha


def set_provenance_context(sequence: int | None = None, source: str | None = None) -> None:
    """Record which slot and which source the current thread is working on."""
    _cycle.sequence = sequence
    _cycle.source = source


def clear_provenance_context() -> None:
    set_provenance_context(None, None)


def get_provenance() -> dict:
    """Provenance block attached to every NDJSON line."""
    return {
        "session_id": get_session_id(),
        "git_sha": get_git_sha(),
        "sequence": getattr(_cycle, "sequence", None),
        "source": getattr(_cycle, "source", None),
    }


def _jsonable(value):
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


def _escape(text: str) -> str:
    # loguru runs format_map() over whatever a format callable returns
    return text.replace("{", "{{").replace("}", "}}")


class NDJSONFormatter:
    """Turn a loguru record into one NDJSON line.

    Bound "context" becomes the "context" object; any other bound extras
    are folded into it. An "event_type" key in the context is also lifted
    to the top-level "event" field.
    """

    def __init__(self, component: str, env: str = "production"):
        self.component = component
        self.env = env

    def _context(self, extra: dict) -> dict:
        bound = extra.get("context")
        context = dict(bound) if isinstance(bound, dict) else {}
        for key, value in extra.items():
            if key == "context" or key.startswith("_"):
                continue
            context[key] = _jsonable(value)
        return context

    def format(self, record: dict) -> str:
        try:
            context = self._context(record.get("extra", {}))
            entry = {
                "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
                "level": record["level"].name,
                "msg": record["message"],
                "component": self.component,
                "env": self.env,
                "pid": os.getpid(),
                "tid": threading.get_ident(),
                "trace_id": get_trace_id(),
            }
            if "event_type" in context:
                entry["event"] = context["event_type"]
            entry["provenance"] = get_provenance()
            if context:
                entry["context"] = context

            exc = record.get("exception")
            if exc:
                entry["exception"] = {
                    "type": exc.type.__name__ if exc.type else None,
                    "value": str(exc.value) if exc.value else None,
                }
            return _escape(json.dumps(entry, default=str)) + "\n"

        except (TypeError, ValueError, KeyError, AttributeError) as e:
            fallback = {
                "ts": datetime.now(timezone.utc).isoformat(),
                "level": "ERROR",
                "msg": f"Logging format error ({type(e).__name__}): {e}",
                "component": self.component,
                "trace_id": get_trace_id(),
            }
            return _escape(json.dumps(fallback)) + "\n"


def setup_ndjson_logger(
    component: str = "block_qa_tracker",
    log_dir: Path | str | None = None,
    env: str = "production",
    level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    console_level: str | None = "INFO",
):
    """Replace loguru's sinks with an NDJSON file sink and a console sink.

    Args:
        component: Component name, also the log file stem
        log_dir: Directory for log files (default: logs/ndjson/ under cwd)
        env: Environment name written to every line
        level: Minimum level for the file sink
        rotation: Rotation policy for the file sink (e.g. "10 MB", "1 day")
        retention: Retention policy for rotated files (e.g. "7 days")
        console_level: Minimum level for stderr, None for no console sink

    Returns:
        The configured loguru logger
    """
    from block_qa_tracker.paths import ensure_dirs, get_ndjson_log_dir

    log_dir = get_ndjson_log_dir() if log_dir is None else Path(log_dir)
    ensure_dirs(log_dir)

    formatter = NDJSONFormatter(component=component, env=env)
    logger.remove()
    logger.add(
        str(log_dir / f"{component}.jsonl"),
        format=formatter.format,
        level=level,
        rotation=rotation,
        retention=retention,
        compression="gz",
        enqueue=True,
        catch=True,
    )
    if console_level:
        logger.add(sys.stderr, format=CONSOLE_FORMAT, level=console_level, catch=True)
    return logger
