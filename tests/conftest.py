"""
Pytest configuration and fixtures for osrs-mcp tests.
"""

import sys
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing osrs_mcp
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from osrs_mcp.cache import CacheManager  # noqa: E402


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_000_000.0):
        self.current = start

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def caches(clock: FakeClock) -> CacheManager:
    return CacheManager(clock=clock)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Data directory with a few small tab-delimited files."""
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "npctypes.txt").write_text(
        "0\tHans\n"
        "1\tMan\n"
        "2\tWoman\n"
        "3\tGoblin\n"
        "# comment line\n"
        "10\tKing_Black_Dragon\n"
        "11\tGoblin\n",
        encoding="utf-8",
    )
    (directory / "objtypes.txt").write_text(
        "995\tCoins\r\n"
        "1163\tRune_full_helm\r\n"
        "4151\tAbyssal_whip\r\n",
        encoding="utf-8",
    )
    (directory / "notes.md").write_text("no ids here\n", encoding="utf-8")
    return directory
