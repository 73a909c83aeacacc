"""Tracker Configuration Loader and Validator.

Loads an optional TOML file (e.g. config/tracker.toml) and provides typed
access to configuration. Command-line flags override file values; the
credentials for the streaming source only ever come from the environment.

Example file:

    [stream]
    endpoint = "https://mainnet.sol.streamingfast.io"
    deadline_seconds = 60

    [rpc]
    endpoint = "https://api.mainnet-beta.solana.com"

    [notify]
    webhook_url = "https://hooks.slack.com/services/..."
    channel = "solana"

    [schedule]
    interval = "5m"
    advance_only = true
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from rich.console import Console
from rich.table import Table

from block_qa_tracker.errors import ConfigError, ConfigValueError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

TOKEN_ENV_VAR = "FIREHOSE_API_TOKEN"
API_KEY_ENV_VAR = "FIREHOSE_API_KEY"

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


@dataclass
class StreamConfig:
    """Streaming source (Firehose) configuration."""

    endpoint: str = "https://mainnet.sol.streamingfast.io"
    blocks_path: str = "/sf.firehose.v2.Stream/Blocks"
    final_blocks_only: bool = False
    deadline_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0
    verify_tls: bool = True


@dataclass
class RpcConfig:
    """Point-fetch source (JSON-RPC) configuration."""

    endpoint: str = "https://api.mainnet-beta.solana.com"
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    max_supported_transaction_version: int = 0
    deadline_seconds: float = 60.0
    connect_timeout_seconds: float = 10.0


@dataclass
class NotifyConfig:
    """Notification sink configuration."""

    webhook_url: str = ""
    channel: str = "solana"
    username: str = "Solana Block QA Tracker"
    icon_emoji: str = ":warning:"
    timeout_seconds: float = 10.0

    @property
    def enabled(self) -> bool:
        """Whether alerts will actually be delivered."""
        return bool(self.webhook_url)


@dataclass
class ArtifactConfig:
    """Divergence artifact output configuration."""

    directory: str | None = None  # None means the working directory
    indent: int = 2


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_dir: str | None = None  # None means logs/ndjson under cwd
    level: str = "DEBUG"
    console_level: str = "INFO"
    rotation: str = "10 MB"
    retention: str = "7 days"
    env: str = "production"


@dataclass
class ScheduleConfig:
    """Scheduling configuration."""

    interval: str | None = None
    advance_only: bool = True


@dataclass
class Credentials:
    """Streaming source credentials; token and API key are mutually exclusive."""

    api_token: str = ""
    api_key: str = ""

    @property
    def scheme(self) -> Literal["bearer", "api_key", "none"]:
        """Auth scheme in effect; the bearer token wins when both are set."""
        if self.api_token:
            return "bearer"
        if self.api_key:
            return "api_key"
        return "none"

    def headers(self) -> dict[str, str]:
        """Request headers for the scheme in effect."""
        if self.scheme == "bearer":
            return {"Authorization": f"Bearer {self.api_token}"}
        if self.scheme == "api_key":
            return {"x-api-key": self.api_key}
        return {}


@dataclass
class TrackerConfig:
    """Complete tracker configuration."""

    stream: StreamConfig = field(default_factory=StreamConfig)
    rpc: RpcConfig = field(default_factory=RpcConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)

    @property
    def artifacts_dir(self) -> Path:
        """Resolved artifact directory."""
        if self.artifacts.directory:
            return Path(self.artifacts.directory)
        from block_qa_tracker.paths import get_artifacts_dir

        return get_artifacts_dir()


def credentials_from_env(environ: dict[str, str] | None = None) -> Credentials:
    """Read streaming source credentials from the environment.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Credentials; both fields empty if neither variable is set
    """
    env = os.environ if environ is None else environ
    return Credentials(
        api_token=env.get(TOKEN_ENV_VAR, "").strip(),
        api_key=env.get(API_KEY_ENV_VAR, "").strip(),
    )


_TYPE_NAMES = {str: "a string", bool: "a boolean", int: "an integer", float: "a number"}


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name, {})
    if not isinstance(section, dict):
        raise ConfigValueError(f"[{name}] must be a table, got {type(section).__name__}")
    return section


def _get(section: dict, where: str, key: str, default, kind: type, optional: bool = False):
    """Read one value, checking its TOML type; integers are accepted as floats."""
    value = section.get(key, default)
    if value is None and optional:
        return None
    if isinstance(value, bool) and kind is not bool:
        value = None
    elif kind is float and isinstance(value, int):
        value = float(value)
    if not isinstance(value, kind):
        raise ConfigValueError(f"{where}.{key} must be {_TYPE_NAMES[kind]}, got {section.get(key)!r}")
    return value


def load_tracker_config(config_path: Path | str | None = None) -> TrackerConfig:
    """Load tracker configuration from a TOML file.

    Args:
        config_path: Path to config file. None returns the defaults.

    Returns:
        TrackerConfig with all settings loaded.

    Raises:
        ConfigError: If the file doesn't exist, can't be read or is not valid TOML.
        ConfigValueError: If a section or value has the wrong type.
    """
    if config_path is None:
        return TrackerConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    s = _section(raw, "stream")
    stream = StreamConfig(
        endpoint=_get(s, "stream", "endpoint", StreamConfig.endpoint, str),
        blocks_path=_get(s, "stream", "blocks_path", StreamConfig.blocks_path, str),
        final_blocks_only=_get(s, "stream", "final_blocks_only", False, bool),
        deadline_seconds=_get(s, "stream", "deadline_seconds", 60.0, float),
        connect_timeout_seconds=_get(s, "stream", "connect_timeout_seconds", 10.0, float),
        verify_tls=_get(s, "stream", "verify_tls", True, bool),
    )

    r = _section(raw, "rpc")
    rpc = RpcConfig(
        endpoint=_get(r, "rpc", "endpoint", RpcConfig.endpoint, str),
        commitment=_get(r, "rpc", "commitment", "confirmed", str),
        max_supported_transaction_version=_get(r, "rpc", "max_supported_transaction_version", 0, int),
        deadline_seconds=_get(r, "rpc", "deadline_seconds", 60.0, float),
        connect_timeout_seconds=_get(r, "rpc", "connect_timeout_seconds", 10.0, float),
    )

    n = _section(raw, "notify")
    notify = NotifyConfig(
        webhook_url=_get(n, "notify", "webhook_url", "", str),
        channel=_get(n, "notify", "channel", "solana", str),
        username=_get(n, "notify", "username", NotifyConfig.username, str),
        icon_emoji=_get(n, "notify", "icon_emoji", ":warning:", str),
        timeout_seconds=_get(n, "notify", "timeout_seconds", 10.0, float),
    )

    a = _section(raw, "artifacts")
    artifacts = ArtifactConfig(
        directory=_get(a, "artifacts", "directory", None, str, optional=True),
        indent=_get(a, "artifacts", "indent", 2, int),
    )

    lg = _section(raw, "logging")
    logging_cfg = LoggingConfig(
        log_dir=_get(lg, "logging", "log_dir", None, str, optional=True),
        level=_get(lg, "logging", "level", "DEBUG", str),
        console_level=_get(lg, "logging", "console_level", "INFO", str),
        rotation=_get(lg, "logging", "rotation", "10 MB", str),
        retention=_get(lg, "logging", "retention", "7 days", str),
        env=_get(lg, "logging", "env", "production", str),
    )

    sc = _section(raw, "schedule")
    schedule = ScheduleConfig(
        interval=_get(sc, "schedule", "interval", None, str, optional=True),
        advance_only=_get(sc, "schedule", "advance_only", True, bool),
    )

    return TrackerConfig(
        stream=stream,
        rpc=rpc,
        notify=notify,
        artifacts=artifacts,
        logging=logging_cfg,
        schedule=schedule,
    )


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_tracker_config(config: TrackerConfig) -> tuple[bool, list[str]]:
    """Validate tracker configuration.

    Args:
        config: TrackerConfig to validate.

    Returns:
        Tuple of (is_valid, list of error messages).
    """
    errors = []

    if not _is_http_url(config.stream.endpoint):
        errors.append(f"Invalid stream endpoint: {config.stream.endpoint!r} (expected http(s)://host[:port])")
    if not config.stream.blocks_path.startswith("/"):
        errors.append(f"stream.blocks_path must start with '/': {config.stream.blocks_path!r}")
    if not _is_http_url(config.rpc.endpoint):
        errors.append(f"Invalid RPC endpoint: {config.rpc.endpoint!r} (expected http(s)://host[:port])")
    if config.rpc.commitment not in ("processed", "confirmed", "finalized"):
        errors.append(f"Unknown RPC commitment: {config.rpc.commitment}")

    for name, value in (
        ("stream.deadline_seconds", config.stream.deadline_seconds),
        ("stream.connect_timeout_seconds", config.stream.connect_timeout_seconds),
        ("rpc.deadline_seconds", config.rpc.deadline_seconds),
        ("rpc.connect_timeout_seconds", config.rpc.connect_timeout_seconds),
        ("notify.timeout_seconds", config.notify.timeout_seconds),
    ):
        if value <= 0:
            errors.append(f"{name} must be positive")

    if config.notify.webhook_url and not _is_http_url(config.notify.webhook_url):
        errors.append("notify.webhook_url must be an http(s) URL")
    if not config.notify.channel:
        errors.append("notify.channel must not be empty")

    if config.artifacts.indent < 0:
        errors.append("artifacts.indent must be >= 0")

    for name, level in (
        ("logging.level", config.logging.level),
        ("logging.console_level", config.logging.console_level),
    ):
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            errors.append(f"Unknown {name}: {level}")

    return len(errors) == 0, errors


def print_config_summary(
    config: TrackerConfig,
    credentials: Credentials,
    interval_seconds: float,
    console: Console | None = None,
) -> None:
    """Print configuration summary to the console."""
    console = console or Console(stderr=True)
    table = Table(title="Solana Block QA Tracker", show_header=False)
    table.add_column("setting", style="cyan")
    table.add_column("value")
    table.add_row("Interval", f"{interval_seconds:g}s")
    table.add_row("Firehose endpoint", config.stream.endpoint)
    table.add_row("Firehose auth", credentials.scheme)
    table.add_row("RPC endpoint", config.rpc.endpoint)
    table.add_row("RPC commitment", config.rpc.commitment)
    table.add_row("Call deadline", f"{config.stream.deadline_seconds:g}s / {config.rpc.deadline_seconds:g}s")
    table.add_row("Artifacts", str(config.artifacts_dir))
    table.add_row(
        "Alerts",
        f"#{config.notify.channel}" if config.notify.enabled else "[yellow]disabled (no webhook)[/yellow]",
    )
    table.add_row("Advance only", str(config.schedule.advance_only))
    console.print(table)
