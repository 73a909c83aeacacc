"""Shared test fixtures for block-qa-tracker tests."""

import shutil
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest
from loguru import logger

# Add tests directory to sys.path for the fixtures package import
tests_dir = Path(__file__).parent
if str(tests_dir) not in sys.path:
    sys.path.insert(0, str(tests_dir))

from fixtures.doubles import RecordingSink, block_json, make_record  # noqa: E402

from block_qa_tracker.records import BlockRecord  # noqa: E402


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    tmp = tempfile.mkdtemp()
    yield Path(tmp)
    shutil.rmtree(tmp)


@pytest.fixture
def sample_block_json() -> dict:
    """Block 42 as a JSON object, with transaction logs."""
    return block_json(42)


@pytest.fixture
def sample_record() -> BlockRecord:
    """Block 42 as decoded from the streaming source."""
    return make_record(42)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fixed_clock():
    """Clock returning a fixed UTC timestamp."""
    ts = datetime(2026, 1, 20, 12, 0, 0, tzinfo=timezone.utc)
    return lambda: ts


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(handler_id)
