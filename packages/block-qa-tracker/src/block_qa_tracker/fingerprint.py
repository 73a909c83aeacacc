"""Block fingerprinting for cross-source comparison.

A fingerprint is the SHA-256 digest of the deterministic serialization of
a canonical record:

    json.dumps(record.to_dict(), sort_keys=True, separators=(",", ":"))

encoded as UTF-8. Unset fields are pruned before encoding, so a source that
sends "err": null and a source that omits "err" serialize identically.

Fingerprint metadata (not part of equality):
    xxhash64_checksum  - fast checksum of the same bytes, for log correlation
    size_bytes         - length of the serialized canonical record
    transaction_count  - number of transactions in the record
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any

import xxhash

from block_qa_tracker.canonical import canonicalize
from block_qa_tracker.errors import SerializationError
from block_qa_tracker.records import BlockRecord


@dataclass(frozen=True)
class Fingerprint:
    """Content digest of a canonical record.

    Two fingerprints are equal iff their SHA-256 digests are equal; the
    remaining fields describe the input and are ignored by comparison.
    """

    sha256: str
    xxhash64_checksum: int = 0
    size_bytes: int = 0
    transaction_count: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fingerprint):
            return NotImplemented
        return self.sha256 == other.sha256

    def __hash__(self) -> int:
        return hash(self.sha256)

    def __str__(self) -> str:
        return self.sha256

    @property
    def short(self) -> str:
        """First 16 hex characters, for log lines."""
        return self.sha256[:16]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "sha256": self.sha256,
            "xxhash64_checksum": self.xxhash64_checksum,
            "size_bytes": self.size_bytes,
            "transaction_count": self.transaction_count,
        }


def serialize_canonical(record: BlockRecord, source: str = "unknown") -> bytes:
    """Serialize a record deterministically.

    Args:
        record: Record to serialize (normally already canonical)
        source: Source label used in error reports

    Returns:
        UTF-8 bytes of the compact, key-sorted JSON encoding

    Raises:
        SerializationError: If the record contains values JSON cannot encode
    """
    try:
        text = json.dumps(
            record.to_dict(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(source, record.sequence, e) from e
    return text.encode("utf-8")


def compute_fingerprint(record: BlockRecord, source: str = "unknown") -> Fingerprint:
    """Canonicalize and fingerprint a record.

    The record passed in is left untouched.

    Args:
        record: Record as decoded from a source
        source: Source label used in error reports

    Returns:
        Fingerprint of the canonical copy

    Raises:
        SerializationError: If the record cannot be serialized
    """
    canonical = canonicalize(record)
    data = serialize_canonical(canonical, source=source)
    return Fingerprint(
        sha256=hashlib.sha256(data).hexdigest(),
        xxhash64_checksum=xxhash.xxh64(data).intdigest(),
        size_bytes=len(data),
        transaction_count=len(canonical.transactions),
    )
