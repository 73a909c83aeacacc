"""Block sources: the streaming feed (Source A) and the point fetcher (Source B)."""

from block_qa_tracker.sources.base import Deadline, LatestBlockSource, SequencedBlockSource
from block_qa_tracker.sources.rpc import (
    RPC_FETCHER_LABEL,
    JsonRpcError,
    PointFetchSourceAdapter,
    SolanaRpcClient,
)
from block_qa_tracker.sources.stream import (
    FIREHOSE_LABEL,
    FirehoseStreamClient,
    StreamSourceAdapter,
)

__all__ = [
    "Deadline",
    "FIREHOSE_LABEL",
    "FirehoseStreamClient",
    "JsonRpcError",
    "LatestBlockSource",
    "PointFetchSourceAdapter",
    "RPC_FETCHER_LABEL",
    "SequencedBlockSource",
    "SolanaRpcClient",
    "StreamSourceAdapter",
]
