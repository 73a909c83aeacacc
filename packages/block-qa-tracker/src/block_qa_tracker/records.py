"""Shared, source-agnostic record model.

Both sources decode into the same BlockRecord so that canonicalization and
fingerprinting never need to know where a block came from.

JSON field mapping (wire key -> attribute):
    slot               -> BlockRecord.sequence
    parentSlot         -> BlockRecord.parent_sequence
    blockhash          -> BlockRecord.content_hash
    previousBlockhash  -> BlockRecord.previous_content_hash
    blockHeight        -> BlockRecord.block_height
    blockTime          -> BlockRecord.block_time
    transactions[]     -> BlockRecord.transactions
    rewards[]          -> BlockRecord.rewards
    meta.logMessages   -> TransactionMeta.log_messages

Records are frozen; nested JSON values (instructions, balances, rewards)
are shared read-only between a record and its canonical copy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

# meta wire key -> TransactionMeta attribute
META_FIELDS: dict[str, str] = {
    "err": "error",
    "fee": "fee",
    "preBalances": "pre_balances",
    "postBalances": "post_balances",
    "logMessages": "log_messages",
    "innerInstructions": "inner_instructions",
    "preTokenBalances": "pre_token_balances",
    "postTokenBalances": "post_token_balances",
    "rewards": "rewards",
    "loadedAddresses": "loaded_addresses",
    "returnData": "return_data",
    "computeUnitsConsumed": "compute_units_consumed",
}

# Keys describing RPC status that duplicate "err"; dropped on decode
_REDUNDANT_META_KEYS = frozenset({"status"})


def _as_tuple(value: Any) -> tuple[Any, ...] | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise TypeError(f"expected a list, got {type(value).__name__}")
    return tuple(value)


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"{name} must be an integer, got {value!r}")
    number = int(value)
    if number < 0:
        raise ValueError(f"{name} must be unsigned, got {number}")
    return number


def _optional_int(value: Any, name: str) -> int | None:
    if value is None:
        return None
    # protojson wraps these scalars: {"blockHeight": {"blockHeight": 5}}
    if isinstance(value, dict):
        if len(value) != 1:
            raise TypeError(f"{name} must be an integer, got {value!r}")
        value = next(iter(value.values()))
    return _as_int(value, name)


def prune(value: Any) -> Any:
    """Drop unset fields (None and empty containers) from a JSON tree."""
    if isinstance(value, dict):
        pruned = {}
        for k, v in value.items():
            v = prune(v)
            if v is None or (isinstance(v, (dict, list)) and not v):
                continue
            pruned[k] = v
        return pruned
    if isinstance(value, (list, tuple)):
        return [prune(v) for v in value]
    return value


@dataclass(frozen=True)
class TransactionMeta:
    """Execution result of one transaction.

    log_messages is the diagnostic log: execution-environment dependent and
    therefore removed by canonicalization. Every other field is content.
    """

    error: Any = None
    fee: int = 0
    pre_balances: tuple[int, ...] = ()
    post_balances: tuple[int, ...] = ()
    log_messages: tuple[str, ...] | None = None
    inner_instructions: tuple[Any, ...] = ()
    pre_token_balances: tuple[Any, ...] = ()
    post_token_balances: tuple[Any, ...] = ()
    rewards: tuple[Any, ...] = ()
    loaded_addresses: Any = None
    return_data: Any = None
    compute_units_consumed: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransactionMeta:
        """Decode a transaction meta object."""
        if not isinstance(data, dict):
            raise TypeError(f"transaction meta must be an object, got {type(data).__name__}")
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in data.items():
            attr = META_FIELDS.get(key)
            if attr is None:
                if key not in _REDUNDANT_META_KEYS:
                    extra[key] = value
                continue
            if attr == "fee":
                kwargs[attr] = _as_int(value or 0, "fee")
            elif attr == "compute_units_consumed":
                kwargs[attr] = _optional_int(value, "computeUnitsConsumed")
            elif attr in ("error", "loaded_addresses", "return_data"):
                kwargs[attr] = value
            elif attr == "log_messages":
                kwargs[attr] = _as_tuple(value)
            else:
                kwargs[attr] = _as_tuple(value) or ()
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        """Encode with wire keys; unset fields are pruned."""
        data: dict[str, Any] = {}
        for key, attr in META_FIELDS.items():
            value = getattr(self, attr)
            data[key] = list(value) if isinstance(value, tuple) else value
        data.update(self.extra)
        return prune(data)


@dataclass(frozen=True)
class Transaction:
    """One transaction entry: the signed payload plus its optional meta."""

    payload: Any = None
    meta: TransactionMeta | None = None
    version: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transaction:
        """Decode a transaction entry."""
        if not isinstance(data, dict):
            raise TypeError(f"transaction must be an object, got {type(data).__name__}")
        meta = data.get("meta")
        return cls(
            payload=data.get("transaction"),
            meta=TransactionMeta.from_dict(meta) if meta is not None else None,
            version=data.get("version"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Encode with wire keys; unset fields are pruned."""
        return prune({
            "transaction": self.payload,
            "meta": self.meta.to_dict() if self.meta is not None else None,
            "version": self.version,
        })


@dataclass(frozen=True)
class BlockRecord:
    """One ledger block as reported by a source.

    Attributes:
        sequence: Block position (slot); unique per chain
        parent_sequence: Position of the preceding block
        content_hash: Source-supplied block hash
        transactions: Ordered transaction entries
        previous_content_hash: Hash of the preceding block
        block_height: Height, if the source reports it
        block_time: Unix timestamp, if the source reports it
        rewards: Block rewards, opaque
    """

    sequence: int
    parent_sequence: int
    content_hash: str
    transactions: tuple[Transaction, ...] = ()
    previous_content_hash: str | None = None
    block_height: int | None = None
    block_time: int | None = None
    rewards: tuple[Any, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any], sequence: int | None = None) -> BlockRecord:
        """Decode a block object.

        Args:
            data: Block JSON object (RPC getBlock result or stream block)
            sequence: Sequence to use when the payload does not carry "slot"
                (RPC getBlock results do not)

        Returns:
            Decoded BlockRecord

        Raises:
            TypeError, ValueError, KeyError: If the payload is malformed
        """
        if not isinstance(data, dict):
            raise TypeError(f"block must be an object, got {type(data).__name__}")
        slot = data.get("slot", sequence)
        if slot is None:
            raise KeyError("slot")
        if sequence is not None and _as_int(slot, "slot") != sequence:
            raise ValueError(f"block slot {slot} does not match requested sequence {sequence}")
        transactions = _as_tuple(data.get("transactions")) or ()
        return cls(
            sequence=_as_int(slot, "slot"),
            parent_sequence=_as_int(data["parentSlot"], "parentSlot"),
            content_hash=str(data["blockhash"]),
            transactions=tuple(Transaction.from_dict(tx) for tx in transactions),
            previous_content_hash=data.get("previousBlockhash"),
            block_height=_optional_int(data.get("blockHeight"), "blockHeight"),
            block_time=_optional_int(data.get("blockTime"), "blockTime"),
            rewards=_as_tuple(data.get("rewards")) or (),
        )

    def to_dict(self) -> dict[str, Any]:
        """Encode with wire keys; unset fields are pruned."""
        return prune({
            "slot": self.sequence,
            "parentSlot": self.parent_sequence,
            "blockhash": self.content_hash,
            "previousBlockhash": self.previous_content_hash,
            "blockHeight": self.block_height,
            "blockTime": self.block_time,
            "transactions": [tx.to_dict() for tx in self.transactions],
            "rewards": list(self.rewards),
        })

    def log_message_count(self) -> int:
        """Total diagnostic log lines across all transactions."""
        return sum(
            len(tx.meta.log_messages)
            for tx in self.transactions
            if tx.meta is not None and tx.meta.log_messages
        )


@dataclass(frozen=True)
class ComparisonOutcome:
    """Result of comparing one sequence across both sources.

    Lives for one cycle; only persisted (as a DivergenceArtifact) on mismatch.
    """

    sequence: int
    fingerprint_a: str
    fingerprint_b: str
    matched: bool
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "sequence": self.sequence,
            "fingerprint_a": self.fingerprint_a,
            "fingerprint_b": self.fingerprint_b,
            "matched": self.matched,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class DivergenceArtifact:
    """Evidence of one divergence: both original records on disk plus the alert."""

    sequence: int
    path_a: Path
    path_b: Path
    message: str
    notified: bool = False
