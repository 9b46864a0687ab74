import sys
from pathlib import Path

# Add src, tests and the project root (main.py) to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / 'src'))
sys.path.insert(0, str(Path(__file__).resolve().parent))
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from chain_fixtures import FakeRPC


@pytest.fixture
def rpc() -> FakeRPC:
    return FakeRPC()
