"""Streaming source (Firehose) client and adapter.

The client holds one persistent HTTP session to the Firehose endpoint and
opens a block stream per call. Each stream message is one JSON object per
line (NDJSON):

    {"block": {"slot": 312345678, "parentSlot": 312345677, ...},
     "step": "STEP_NEW", "cursor": "..."}

Stream request, matching a head-of-chain subscription:
    start_block_num = -1     start from head (latest block)
    stop_block_num  = 0      stream indefinitely
    final_blocks_only        include non-final blocks unless configured

The adapter reads the first message, decodes it and closes the stream; the
session (and its pooled connection) is reused across cycles. Lines are split
from the raw byte stream so the overall deadline is checked after every
chunk, not only once a full message has arrived.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator
from contextlib import closing
from typing import Any
from urllib.parse import urlparse

import requests
from loguru import logger
from urllib3.exceptions import ReadTimeoutError

from block_qa_tracker.config.tracker import Credentials, StreamConfig
from block_qa_tracker.errors import ConnectionSetupError, DecodeError, FetchError
from block_qa_tracker.records import BlockRecord
from block_qa_tracker.sources.base import Deadline

FIREHOSE_LABEL = "firehose"
CHUNK_SIZE = 8192


def iter_ndjson_lines(chunks: Iterable[bytes], deadline: Deadline | None = None) -> Iterator[bytes]:
    """Split a byte stream into non-empty lines.

    Raises:
        DeadlineExceededError: If a chunk arrives after the deadline
    """
    pending = b""
    for chunk in chunks:
        if deadline is not None:
            deadline.check()
        pending += chunk
        *complete, pending = pending.split(b"\n")
        for line in complete:
            if line.strip():
                yield line
    if pending.strip():
        yield pending


def _is_read_timeout(error: requests.ConnectionError) -> bool:
    # requests re-raises a stalled body read as ConnectionError(ReadTimeoutError)
    return any(isinstance(arg, ReadTimeoutError) for arg in error.args)


class FirehoseStreamClient:
    """Persistent authenticated connection to a Firehose block stream.

    Args:
        endpoint: Base URL, e.g. "https://mainnet.sol.streamingfast.io"
        credentials: Bearer token or API key (token preferred)
        blocks_path: Path of the block stream method
        verify_tls: Verify the server certificate
        session: Pre-built session (tests); a new one is created otherwise
    """

    def __init__(
        self,
        endpoint: str,
        credentials: Credentials | None = None,
        blocks_path: str = StreamConfig.blocks_path,
        verify_tls: bool = True,
        session: Any | None = None,
    ) -> None:
        parsed = urlparse(endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConnectionSetupError(endpoint, "endpoint must be an http(s) URL with a host")

        self.endpoint = endpoint.rstrip("/")
        self.blocks_url = self.endpoint + blocks_path
        self.credentials = credentials or Credentials()

        try:
            self._session = session if session is not None else requests.Session()
        except OSError as e:
            raise ConnectionSetupError(endpoint, e) from e
        self._session.verify = verify_tls
        self._session.headers.update({
            "Accept": "application/x-ndjson",
            "Content-Type": "application/json",
            **self.credentials.headers(),
        })

        if self.credentials.scheme == "none":
            logger.warning("No Firehose credentials set; stream requests will be unauthenticated")
        logger.debug(f"Firehose client ready: {self.blocks_url} (auth={self.credentials.scheme})")

    def blocks(
        self,
        start_block_num: int = -1,
        stop_block_num: int = 0,
        final_blocks_only: bool = False,
        timeout: tuple[float, float] | None = None,
        deadline: Deadline | None = None,
    ) -> Iterator[dict[str, Any]]:
        """Open a block stream and yield decoded messages.

        Raises:
            requests.RequestException: On transport or HTTP status errors
            DeadlineExceededError: If the deadline passes while reading
            ValueError: If a line is not valid UTF-8 JSON
        """
        request = {
            "start_block_num": start_block_num,
            "stop_block_num": stop_block_num,
            "final_blocks_only": final_blocks_only,
        }
        with self._session.post(self.blocks_url, json=request, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            for line in iter_ndjson_lines(resp.iter_content(chunk_size=CHUNK_SIZE), deadline):
                yield json.loads(line)

    def check_reachable(self, timeout: float) -> None:
        """Open a connection to the endpoint without starting a stream.

        Any HTTP response counts as reachable; only transport failures fail.

        Raises:
            ConnectionSetupError: If the endpoint cannot be reached
        """
        try:
            resp = self._session.head(self.endpoint, timeout=timeout, allow_redirects=False)
        except requests.RequestException as e:
            raise ConnectionSetupError(self.endpoint, e) from e
        resp.close()
        logger.debug(f"Firehose endpoint reachable: {self.endpoint} (HTTP {resp.status_code})")

    def close(self) -> None:
        self._session.close()


class StreamSourceAdapter:
    """Source A: the head-of-chain block from the Firehose stream."""

    def __init__(
        self,
        client: FirehoseStreamClient,
        deadline_seconds: float = 60.0,
        connect_timeout_seconds: float = 10.0,
        final_blocks_only: bool = False,
        label: str = FIREHOSE_LABEL,
    ) -> None:
        self.client = client
        self.deadline_seconds = deadline_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self.final_blocks_only = final_blocks_only
        self.label = label

    @classmethod
    def from_config(
        cls,
        config: StreamConfig,
        credentials: Credentials,
        check_reachable: bool = False,
    ) -> StreamSourceAdapter:
        """Build the adapter and its client; fails fast on a bad endpoint.

        Args:
            check_reachable: Also connect to the endpoint once before returning

        Raises:
            ConnectionSetupError: If the connection cannot be established
        """
        client = FirehoseStreamClient(
            config.endpoint,
            credentials=credentials,
            blocks_path=config.blocks_path,
            verify_tls=config.verify_tls,
        )
        if check_reachable:
            try:
                client.check_reachable(config.connect_timeout_seconds)
            except ConnectionSetupError:
                client.close()
                raise
        return cls(
            client,
            deadline_seconds=config.deadline_seconds,
            connect_timeout_seconds=config.connect_timeout_seconds,
            final_blocks_only=config.final_blocks_only,
        )

    def fetch_latest(self) -> tuple[BlockRecord, int]:
        """Return the most recent block and its sequence.

        Raises:
            DeadlineExceededError: If no block arrived within the deadline
            FetchError: On stream errors or an empty stream
            DecodeError: If the first message cannot be decoded
        """
        deadline = Deadline(self.deadline_seconds, self.label)
        timeout = (min(self.connect_timeout_seconds, self.deadline_seconds), self.deadline_seconds)
        try:
            with closing(self.client.blocks(
                start_block_num=-1,
                stop_block_num=0,
                final_blocks_only=self.final_blocks_only,
                timeout=timeout,
                deadline=deadline,
            )) as stream:
                for message in stream:
                    deadline.check()
                    return self._decode(message)
        except requests.Timeout as e:
            raise deadline.exceeded(e) from e
        except requests.ConnectionError as e:
            if _is_read_timeout(e) or deadline.expired():
                raise deadline.exceeded(e) from e
            raise FetchError(self.label, None, f"failed to receive block: {e}") from e
        except requests.RequestException as e:
            raise FetchError(self.label, None, f"failed to receive block: {e}") from e
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            raise DecodeError(self.label, None, f"invalid stream message: {e}") from e

        raise FetchError(self.label, None, "stream ended before a block was received")

    def _decode(self, message: Any) -> tuple[BlockRecord, int]:
        block = message.get("block") if isinstance(message, dict) else None
        if not block:
            raise DecodeError(self.label, None, "received empty block")
        try:
            record = BlockRecord.from_dict(block)
        except (TypeError, ValueError, KeyError) as e:
            raise DecodeError(
                self.label, block.get("slot") if isinstance(block, dict) else None,
                f"failed to decode block: {e!r}",
            ) from e
        return record, record.sequence

    def close(self) -> None:
        self.client.close()
