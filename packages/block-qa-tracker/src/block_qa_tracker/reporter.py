"""Divergence reporter: persist evidence and announce it.

On mismatch the reporter writes both sources' *original* records (logs
included) to the artifact directory, then hands an alert to the
notification sink. Artifacts are named by source label and sequence:

    firehose_block_<sequence>.json
    rpc_fetcher_block_<sequence>.json

Both files are staged under temporary names and only renamed into place once
both are written; a write that fails while staging leaves neither file
behind and aborts the cycle (ArtifactWriteError). A failed notification is
logged and otherwise ignored, since the files are already on disk.
"""

from __future__ import annotations

import json
from pathlib import Path

from loguru import logger

from block_qa_tracker.diff import diff_records
from block_qa_tracker.errors import ArtifactWriteError, NotificationError
from block_qa_tracker.notify import NotificationSink, build_alert_message
from block_qa_tracker.paths import artifact_filename
from block_qa_tracker.records import BlockRecord, ComparisonOutcome, DivergenceArtifact
from block_qa_tracker.telemetry import log_divergence_reported

# Discrepancies echoed into the log per divergence
MAX_LOGGED_DISCREPANCIES = 10


def render_record(record: BlockRecord, indent: int = 2) -> str:
    """Pretty-print a record as JSON with unset fields omitted."""
    return json.dumps(record.to_dict(), indent=indent, ensure_ascii=False) + "\n"


class DivergenceReporter:
    """Owns all filesystem and notification side effects of a divergence.

    Args:
        sink: Notification sink for the alert
        artifacts_dir: Directory for artifact files (created if missing)
        label_a: Source label used in file names for record A
        label_b: Source label used in file names for record B
        indent: JSON indent for artifact files
    """

    def __init__(
        self,
        sink: NotificationSink,
        artifacts_dir: Path | str,
        label_a: str = "firehose",
        label_b: str = "rpc_fetcher",
        indent: int = 2,
    ) -> None:
        self.sink = sink
        self.artifacts_dir = Path(artifacts_dir)
        self.label_a = label_a
        self.label_b = label_b
        self.indent = indent

    def artifact_paths(self, sequence: int) -> tuple[Path, Path]:
        """Paths both artifacts for sequence are written to."""
        return (
            self.artifacts_dir / artifact_filename(self.label_a, sequence),
            self.artifacts_dir / artifact_filename(self.label_b, sequence),
        )

    def _stage(self, record: BlockRecord, path: Path, label: str) -> Path:
        """Write record next to path under a temporary name."""
        try:
            text = render_record(record, indent=self.indent)
        except (TypeError, ValueError) as e:
            raise ArtifactWriteError(label, record.sequence, f"failed to marshal block to JSON: {e}") from e
        staged = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            staged.write_text(text, encoding="utf-8")
        except OSError as e:
            raise ArtifactWriteError(label, record.sequence, f"failed to write block to file {path}: {e}") from e
        return staged

    def _write_pair(self, record_a: BlockRecord, record_b: BlockRecord, path_a: Path, path_b: Path) -> None:
        staged: list[tuple[Path, Path, str, int]] = []
        try:
            for record, path, label in ((record_a, path_a, self.label_a), (record_b, path_b, self.label_b)):
                staged.append((self._stage(record, path, label), path, label, record.sequence))
            for tmp, path, label, sequence in staged:
                try:
                    tmp.replace(path)
                except OSError as e:
                    raise ArtifactWriteError(label, sequence, f"failed to write block to file {path}: {e}") from e
        except ArtifactWriteError:
            for tmp, *_ in staged:
                tmp.unlink(missing_ok=True)
            raise

    def report(
        self,
        outcome: ComparisonOutcome,
        record_a: BlockRecord,
        record_b: BlockRecord,
    ) -> DivergenceArtifact:
        """Persist both records and send one alert.

        Args:
            outcome: The mismatched comparison outcome
            record_a: Original record from source A
            record_b: Original record from source B

        Returns:
            DivergenceArtifact describing what was written and sent

        Raises:
            ArtifactWriteError: If either file cannot be written; no alert is sent
        """
        path_a, path_b = self.artifact_paths(outcome.sequence)
        self._write_pair(record_a, record_b, path_a, path_b)
        logger.info(f"Block JSON files written: {path_a}, {path_b}")

        diff = diff_records(record_a, record_b)
        for d in diff["discrepancies"][:MAX_LOGGED_DISCREPANCIES]:
            logger.bind(context=d).warning(f"Field differs at {d['path'] or '<root>'} ({d['kind']})")

        message = build_alert_message(
            outcome.sequence,
            outcome.fingerprint_a,
            outcome.fingerprint_b,
            path_a,
            path_b,
            outcome.timestamp,
            discrepancy_count=diff["discrepancy_count"],
        )

        notified = False
        try:
            notified = self.sink.send(message)
        except NotificationError as e:
            logger.error(f"Failed to send notification: {e}")

        log_divergence_reported(
            sequence=outcome.sequence,
            path_a=str(path_a),
            path_b=str(path_b),
            discrepancy_count=diff["discrepancy_count"],
            notified=notified,
        )
        return DivergenceArtifact(
            sequence=outcome.sequence,
            path_a=path_a,
            path_b=path_b,
            message=message,
            notified=notified,
        )
