"""Tests for canonical fingerprints."""

from __future__ import annotations

import dataclasses
import hashlib

import pytest
from fixtures.doubles import make_record

from block_qa_tracker.errors import SerializationError
from block_qa_tracker.fingerprint import Fingerprint, compute_fingerprint, serialize_canonical
from block_qa_tracker.records import BlockRecord


class TestComputeFingerprint:
    """Tests for compute_fingerprint()."""

    def test_deterministic(self):
        """Same block decoded twice gives the same fingerprint."""
        assert compute_fingerprint(make_record(42)) == compute_fingerprint(make_record(42))

    def test_ignores_logs(self):
        """Blocks differing only in logs are not reported as divergent."""
        a = make_record(42, logs=("Program log: A",))
        b = make_record(42, logs=())
        assert compute_fingerprint(a) == compute_fingerprint(b)

    def test_sensitive_to_parent_sequence(self):
        a = make_record(42)
        b = make_record(42, parent_slot=40)
        assert compute_fingerprint(a) != compute_fingerprint(b)

    def test_sensitive_to_fee(self):
        assert compute_fingerprint(make_record(42, fee=5000)) != compute_fingerprint(make_record(42, fee=5001))

    def test_sensitive_to_content_hash(self):
        a = make_record(42)
        b = dataclasses.replace(a, content_hash="Other")
        assert compute_fingerprint(a) != compute_fingerprint(b)

    def test_sha256_of_serialized_canonical_bytes(self, sample_record):
        from block_qa_tracker.canonical import canonicalize

        data = serialize_canonical(canonicalize(sample_record))
        fp = compute_fingerprint(sample_record)
        assert fp.sha256 == hashlib.sha256(data).hexdigest()
        assert fp.size_bytes == len(data)
        assert fp.transaction_count == 1
        assert isinstance(fp.xxhash64_checksum, int)

    def test_does_not_mutate_input(self, sample_record):
        compute_fingerprint(sample_record)
        assert sample_record.log_message_count() == 2

    def test_unserializable_value_raises(self):
        record = BlockRecord(sequence=7, parent_sequence=6, content_hash="H", rewards=(object(),))
        with pytest.raises(SerializationError) as exc_info:
            compute_fingerprint(record, source="firehose")
        assert exc_info.value.source == "firehose"
        assert exc_info.value.sequence == 7

    def test_nan_rejected(self):
        record = BlockRecord(sequence=7, parent_sequence=6, content_hash="H", rewards=(float("nan"),))
        with pytest.raises(SerializationError):
            serialize_canonical(record)


class TestSerializeCanonical:
    """Tests for serialize_canonical()."""

    def test_key_order_independent(self):
        """Key order in the source payload does not change the bytes."""
        a = BlockRecord(sequence=1, parent_sequence=0, content_hash="H", rewards=({"a": 1, "b": 2},))
        b = BlockRecord(sequence=1, parent_sequence=0, content_hash="H", rewards=({"b": 2, "a": 1},))
        assert serialize_canonical(a) == serialize_canonical(b)

    def test_compact_encoding(self):
        data = serialize_canonical(BlockRecord(sequence=1, parent_sequence=0, content_hash="H"))
        assert data == b'{"blockhash":"H","parentSlot":0,"slot":1}'


class TestFingerprint:
    """Tests for the Fingerprint value type."""

    def test_equality_uses_digest_only(self):
        assert Fingerprint("ab", xxhash64_checksum=1) == Fingerprint("ab", xxhash64_checksum=2)
        assert Fingerprint("ab") != Fingerprint("cd")

    def test_hashable(self):
        assert len({Fingerprint("ab", size_bytes=1), Fingerprint("ab", size_bytes=2)}) == 1

    def test_short_and_str(self):
        fp = Fingerprint("0123456789abcdef" * 4)
        assert fp.short == "0123456789abcdef"
        assert str(fp) == fp.sha256

    def test_to_dict(self):
        fp = Fingerprint("ab", xxhash64_checksum=3, size_bytes=4, transaction_count=5)
        assert fp.to_dict() == {
            "sha256": "ab",
            "xxhash64_checksum": 3,
            "size_bytes": 4,
            "transaction_count": 5,
        }
