"""Exception hierarchy for the block QA tracker.

Three families, matching how far an error is allowed to propagate:

- StartupError: fatal, raised before the schedule starts. The CLI turns
  these into a non-zero exit code.
- CycleError: recoverable, aborts the current fetch-compare-report cycle
  only. Carries the source label, the sequence (when known) and the
  underlying cause so the log line is enough to diagnose the failure.
- NotificationError: reported only. The divergence artifacts on disk are
  the durable record even when an alert is lost.
"""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracker errors."""


# =============================================================================
# Fatal (process-terminating)
# =============================================================================


class StartupError(TrackerError):
    """Raised when the tracker cannot start."""


class InvalidIntervalError(StartupError):
    """Raised when the interval argument is not a valid duration."""

    def __init__(self, text: str, reason: str) -> None:
        self.text = text
        self.reason = reason
        super().__init__(
            f"invalid interval format {text!r}: {reason} (examples: 30s, 5m, 1h, 1h30m)"
        )


class ConnectionSetupError(StartupError):
    """Raised when the streaming source connection cannot be established."""

    def __init__(self, endpoint: str, cause: BaseException | str) -> None:
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"failed to connect to streaming source {endpoint}: {cause}")


class ConfigError(StartupError):
    """Raised when the configuration file is missing or cannot be read."""


class ConfigValueError(ConfigError):
    """Raised when a configuration value has the wrong type or shape."""


# =============================================================================
# Recoverable, cycle-scoped
# =============================================================================


class CycleError(TrackerError):
    """Raised when one fetch-compare-report cycle cannot complete.

    Attributes:
        source: Source label the failure belongs to (e.g. "firehose")
        sequence: Block sequence involved, or None if not yet known
        cause: Underlying exception or description
    """

    kind = "cycle_error"

    def __init__(
        self,
        source: str,
        sequence: int | None,
        cause: BaseException | str,
        message: str | None = None,
    ) -> None:
        self.source = source
        self.sequence = sequence
        self.cause = cause

        if message is None:
            where = f"sequence {sequence}" if sequence is not None else "head"
            message = f"{self.kind} from {source} at {where}: {cause}"
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Structured context for log lines."""
        return {
            "kind": self.kind,
            "source": self.source,
            "sequence": self.sequence,
            "cause": str(self.cause),
        }


class FetchError(CycleError):
    """Transport or protocol failure while retrieving a block."""

    kind = "fetch_error"


class DecodeError(CycleError):
    """A payload was received but could not be decoded into a BlockRecord."""

    kind = "decode_error"


class SkippedPositionError(CycleError):
    """The point-fetch source has no block at the requested sequence."""

    kind = "skipped_position"

    def __init__(self, source: str, sequence: int) -> None:
        super().__init__(
            source,
            sequence,
            "position has no record",
            message=f"block {sequence} was skipped ({source})",
        )


class DeadlineExceededError(CycleError):
    """An adapter call did not finish within its deadline."""

    kind = "deadline_exceeded"


class SerializationError(CycleError):
    """A record could not be serialized for fingerprinting or persisting."""

    kind = "serialization_error"


class ArtifactWriteError(CycleError):
    """A divergence artifact could not be written to disk."""

    kind = "artifact_write_error"


# =============================================================================
# Reported only
# =============================================================================


class NotificationError(TrackerError):
    """Raised by a notification sink when delivery fails."""

    def __init__(self, destination: str, cause: BaseException | str) -> None:
        self.destination = destination
        self.cause = cause
        super().__init__(f"failed to deliver notification to {destination}: {cause}")
