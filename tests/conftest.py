"""
Shared pytest configuration and fixtures for the vote flow layout.

The main fixture is a four-round election whose numbers are small enough to
check by hand. With a 280 px canvas the vote scale is the identity, so block
extents and link anchors equal vote counts.
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow.builder import FlowLayoutBuilder  # noqa: E402
from flow.config import FlowConfig  # noqa: E402
from flow.records import TransferRecord, VoteRecord  # noqa: E402

SENTINEL = "Not Transferred"

# One candidate per row, one column per round, as published
VOTES_CSV = """London Breed,100,104,119,129
Mark Leno,80,82,88,133
Jane Kim,60,61,65,
Angela Alioto,30,31,,
Ellen Lee Zhou,10,,,
Not Transferred,,2,8,18
"""

TRANSFERS_CSV = """Eliminated,Ellen Lee Zhou,Angela Alioto,Jane Kim
London Breed,4,15,10
Mark Leno,2,6,45
Jane Kim,1,4,
Angela Alioto,1,,
Not Transferred,2,6,10
"""

# Two candidates, B eliminated in round 5: A gains 60, 20 exhaust
SMALL_VOTES_CSV = """A,100,160
B,80,
Not Transferred,,20
"""

SMALL_TRANSFERS_CSV = """,B
A,60
Not Transferred,20
"""


@pytest.fixture
def votes_csv():
    return VOTES_CSV


@pytest.fixture
def transfers_csv():
    return TRANSFERS_CSV


@pytest.fixture
def identity_config():
    """Canvas sized so one vote is one pixel and each round is 100 px wide."""
    return FlowConfig(starting_round=1, width=400.0, height=280.0, bar_width=10.0)


@pytest.fixture
def sample_votes():
    return [
        VoteRecord(1, "London Breed", 100),
        VoteRecord(1, "Mark Leno", 80),
        VoteRecord(1, "Jane Kim", 60),
        VoteRecord(1, "Angela Alioto", 30),
        VoteRecord(1, "Ellen Lee Zhou", 10),
        VoteRecord(2, "London Breed", 104),
        VoteRecord(2, "Mark Leno", 82),
        VoteRecord(2, "Jane Kim", 61),
        VoteRecord(2, "Angela Alioto", 31),
        VoteRecord(2, SENTINEL, 2),
        VoteRecord(3, "London Breed", 119),
        VoteRecord(3, "Mark Leno", 88),
        VoteRecord(3, "Jane Kim", 65),
        VoteRecord(3, SENTINEL, 8),
        VoteRecord(4, "London Breed", 129),
        VoteRecord(4, "Mark Leno", 133),
        VoteRecord(4, SENTINEL, 18),
    ]


@pytest.fixture
def sample_transfers():
    return [
        TransferRecord(1, "Ellen Lee Zhou", "London Breed", 4),
        TransferRecord(1, "Ellen Lee Zhou", "Mark Leno", 2),
        TransferRecord(1, "Ellen Lee Zhou", "Jane Kim", 1),
        TransferRecord(1, "Ellen Lee Zhou", "Angela Alioto", 1),
        TransferRecord(1, "Ellen Lee Zhou", SENTINEL, 2),
        TransferRecord(2, "Angela Alioto", "London Breed", 15),
        TransferRecord(2, "Angela Alioto", "Mark Leno", 6),
        TransferRecord(2, "Angela Alioto", "Jane Kim", 4),
        TransferRecord(2, "Angela Alioto", SENTINEL, 6),
        TransferRecord(3, "Jane Kim", "London Breed", 10),
        TransferRecord(3, "Jane Kim", "Mark Leno", 45),
        TransferRecord(3, "Jane Kim", SENTINEL, 10),
    ]


@pytest.fixture
def sample_layout(identity_config, votes_csv, transfers_csv):
    return FlowLayoutBuilder(identity_config).build_from_text(votes_csv, transfers_csv)


@pytest.fixture
def small_layout():
    config = FlowConfig(starting_round=5, height=180.0)
    return FlowLayoutBuilder(config).build_from_text(SMALL_VOTES_CSV, SMALL_TRANSFERS_CSV)


@pytest.fixture
def temp_db_file():
    """Provide a temporary database file path for testing."""
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    os.unlink(db_path)  # let DuckDB create the file

    try:
        yield db_path
    finally:
        for path in (db_path, db_path + ".wal"):
            if os.path.exists(path):
                os.unlink(path)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (fast, no external dependencies)"
    )
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (medium speed, database required)",
    )
    config.addinivalue_line(
        "markers",
        "golden: marks tests as golden dataset validation (slow, full verification)",
    )
    config.addinivalue_line(
        "markers", "invariant: marks tests as mathematical invariant validation"
    )
    config.addinivalue_line(
        "markers", "smoke: marks tests as smoke tests (basic functionality check)"
    )
