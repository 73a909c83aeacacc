"""Block QA Tracker - cross-source block consistency checking.

Periodically takes the head block from a streaming source (Firehose),
fetches the same slot from a point-fetch source (Solana JSON-RPC), and
compares canonical fingerprints of the two. Mismatches are written to
disk and announced via webhook.

Example:
    >>> from block_qa_tracker import BlockRecord, compute_fingerprint
    >>> from block_qa_tracker.interval import parse_interval
"""

__version__ = "1.0.0"

# Record model
from block_qa_tracker.records import (
    BlockRecord,
    ComparisonOutcome,
    DivergenceArtifact,
    Transaction,
    TransactionMeta,
)

# Canonicalization and fingerprinting
from block_qa_tracker.canonical import canonicalize, is_canonical
from block_qa_tracker.fingerprint import Fingerprint, compute_fingerprint, serialize_canonical

# Cycle machinery
from block_qa_tracker.comparator import Comparator, CycleStats
from block_qa_tracker.reporter import DivergenceReporter
from block_qa_tracker.scheduler import Scheduler
from block_qa_tracker.interval import parse_interval

# Errors
from block_qa_tracker.errors import (
    CycleError,
    DeadlineExceededError,
    DecodeError,
    FetchError,
    SkippedPositionError,
    TrackerError,
)

__all__ = [
    # Version
    "__version__",
    # Records
    "BlockRecord",
    "ComparisonOutcome",
    "DivergenceArtifact",
    "Transaction",
    "TransactionMeta",
    # Canonical form
    "canonicalize",
    "is_canonical",
    "Fingerprint",
    "compute_fingerprint",
    "serialize_canonical",
    # Cycle
    "Comparator",
    "CycleStats",
    "DivergenceReporter",
    "Scheduler",
    "parse_interval",
    # Errors
    "CycleError",
    "DeadlineExceededError",
    "DecodeError",
    "FetchError",
    "SkippedPositionError",
    "TrackerError",
]
