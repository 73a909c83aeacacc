"""Canonicalization: strip source noise from a BlockRecord.

Transaction diagnostic logs depend on the execution environment that
replayed the block, not on the block itself. Two structurally identical
blocks from different sources can carry different logs, so logs are
removed before fingerprinting.

The input record is never modified. The reporter persists the original
record verbatim and fingerprints the canonical copy.
"""

from __future__ import annotations

import dataclasses

from block_qa_tracker.records import BlockRecord, Transaction


def _strip_logs(tx: Transaction) -> Transaction:
    if tx.meta is None or tx.meta.log_messages is None:
        return tx
    return dataclasses.replace(tx, meta=dataclasses.replace(tx.meta, log_messages=None))


def canonicalize(record: BlockRecord) -> BlockRecord:
    """Return a canonical copy of record with all diagnostic logs removed.

    Args:
        record: Record as decoded from a source

    Returns:
        New BlockRecord; every transaction's meta.log_messages is None and
        all other fields are unchanged.
    """
    return dataclasses.replace(
        record,
        transactions=tuple(_strip_logs(tx) for tx in record.transactions),
    )


def is_canonical(record: BlockRecord) -> bool:
    """Check whether record carries no diagnostic logs."""
    return all(
        tx.meta is None or tx.meta.log_messages is None
        for tx in record.transactions
    )
