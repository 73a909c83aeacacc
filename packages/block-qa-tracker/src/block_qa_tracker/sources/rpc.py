"""Point-fetch source (JSON-RPC getBlock) client and adapter.

JSON-RPC error codes treated as "slot has no block" (a valid, non-error
outcome of the protocol):
    -32007  Slot was skipped
    -32009  Slot was skipped, or missing in long-term storage

A null result is treated the same way. Every other JSON-RPC error (for
example -32004, block not available yet) is a fetch failure.
"""

from __future__ import annotations

import itertools
from typing import Any

import requests

from block_qa_tracker.config.tracker import RpcConfig
from block_qa_tracker.errors import DecodeError, FetchError, SkippedPositionError
from block_qa_tracker.records import BlockRecord
from block_qa_tracker.sources.base import Deadline

RPC_FETCHER_LABEL = "rpc_fetcher"

SKIPPED_SLOT_ERROR_CODES = frozenset({-32007, -32009})


class JsonRpcError(Exception):
    """Error object returned by a JSON-RPC endpoint."""

    def __init__(self, code: int, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"JSON-RPC error {code}: {message}")


class SolanaRpcClient:
    """Persistent JSON-RPC client handle.

    Args:
        endpoint: RPC URL, e.g. "https://api.mainnet-beta.solana.com"
        commitment: Commitment level passed to getBlock
        max_supported_transaction_version: Highest transaction version to return
        session: Pre-built session (tests); a new one is created otherwise
    """

    def __init__(
        self,
        endpoint: str,
        commitment: str = "confirmed",
        max_supported_transaction_version: int = 0,
        session: Any | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.commitment = commitment
        self.max_supported_transaction_version = max_supported_transaction_version
        self._session = session if session is not None else requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        self._ids = itertools.count(1)

    def call(self, method: str, params: list[Any], timeout: tuple[float, float] | None = None) -> Any:
        """Issue one JSON-RPC call and return its result.

        Raises:
            requests.RequestException: On transport or HTTP status errors
            JsonRpcError: If the response carries an error object
            ValueError: If the response is not a JSON-RPC response
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        resp = self._session.post(self.endpoint, json=payload, timeout=timeout)
        resp.raise_for_status()
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"unexpected JSON-RPC response: {body!r}")
        error = body.get("error")
        if error is not None:
            code = error.get("code", 0) if isinstance(error, dict) else None
            if not isinstance(code, int) or isinstance(code, bool):
                raise ValueError(f"malformed JSON-RPC error: {error!r}")
            raise JsonRpcError(code, str(error.get("message", "")))
        if "result" not in body:
            raise ValueError("JSON-RPC response has neither result nor error")
        return body["result"]

    def get_block(self, slot: int, timeout: tuple[float, float] | None = None) -> tuple[dict[str, Any] | None, bool]:
        """Fetch the block at slot.

        Returns:
            (block JSON, False) on success, (None, True) if the slot was skipped
        """
        config = {
            "encoding": "json",
            "transactionDetails": "full",
            "rewards": True,
            "commitment": self.commitment,
            "maxSupportedTransactionVersion": self.max_supported_transaction_version,
        }
        try:
            result = self.call("getBlock", [slot, config], timeout=timeout)
        except JsonRpcError as e:
            if e.code in SKIPPED_SLOT_ERROR_CODES:
                return None, True
            raise
        if result is None:
            return None, True
        return result, False

    def close(self) -> None:
        self._session.close()


class PointFetchSourceAdapter:
    """Source B: the block at an explicit sequence from JSON-RPC."""

    def __init__(
        self,
        client: SolanaRpcClient,
        deadline_seconds: float = 60.0,
        connect_timeout_seconds: float = 10.0,
        label: str = RPC_FETCHER_LABEL,
    ) -> None:
        self.client = client
        self.deadline_seconds = deadline_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.label = label

    @classmethod
    def from_config(cls, config: RpcConfig) -> PointFetchSourceAdapter:
        client = SolanaRpcClient(
            config.endpoint,
            commitment=config.commitment,
            max_supported_transaction_version=config.max_supported_transaction_version,
        )
        return cls(
            client,
            deadline_seconds=config.deadline_seconds,
            connect_timeout_seconds=config.connect_timeout_seconds,
        )

    def fetch_by_sequence(self, sequence: int) -> BlockRecord:
        """Return the block at sequence.

        Raises:
            SkippedPositionError: If the slot has no block
            DeadlineExceededError: If the call did not finish in time
            FetchError: On transport or JSON-RPC errors
            DecodeError: If the block cannot be decoded
        """
        deadline = Deadline(self.deadline_seconds, self.label, sequence)
        timeout = (min(self.connect_timeout_seconds, self.deadline_seconds), self.deadline_seconds)
        try:
            block, skipped = self.client.get_block(sequence, timeout=timeout)
        except requests.Timeout as e:
            raise deadline.exceeded(e) from e
        except requests.JSONDecodeError as e:
            raise DecodeError(self.label, sequence, f"invalid JSON-RPC response: {e}") from e
        except (requests.RequestException, JsonRpcError) as e:
            raise FetchError(self.label, sequence, f"failed to fetch block: {e}") from e
        except ValueError as e:
            raise DecodeError(self.label, sequence, f"invalid JSON-RPC response: {e}") from e
        deadline.check()

        if skipped:
            raise SkippedPositionError(self.label, sequence)

        try:
            return BlockRecord.from_dict(block, sequence=sequence)
        except (TypeError, ValueError, KeyError) as e:
            raise DecodeError(self.label, sequence, f"failed to decode block: {e!r}") from e

    def close(self) -> None:
        self.client.close()
