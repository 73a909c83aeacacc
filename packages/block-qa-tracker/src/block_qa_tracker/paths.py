"""Working-directory path configuration.

Divergence artifacts land in the working directory by default, next to
wherever the tracker was started; logs go under logs/ in the same place.
"""
from pathlib import Path


def get_artifacts_dir() -> Path:
    """Return the default directory for divergence artifacts."""
    return Path.cwd()


def get_log_dir() -> Path:
    """Return the logs directory."""
    return Path.cwd() / "logs"


def get_ndjson_log_dir() -> Path:
    """Return the NDJSON log directory."""
    return get_log_dir() / "ndjson"


def artifact_filename(source: str, sequence: int) -> str:
    """Return the artifact file name for one source's copy of a block."""
    return f"{source}_block_{sequence}.json"


def ensure_dirs(*dirs: Path) -> None:
    """Create the given directories (default: the log directories) if missing."""
    for d in dirs or (get_log_dir(), get_ndjson_log_dir()):
        d.mkdir(parents=True, exist_ok=True)
