"""
Server configuration.

Settings come from environment variables (optionally via a ``.env`` file read
by python-dotenv in ``main``) and are validated by pydantic.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_DATA_DIR = "data"
DEFAULT_WIKI_API_URL = "https://oldschool.runescape.wiki/api.php"
DEFAULT_WIKI_BASE_URL = "https://oldschool.runescape.wiki"
DEFAULT_PRICES_API_URL = "https://prices.runescape.wiki/api/v1/osrs"
DEFAULT_HISCORES_URL = "https://secure.runescape.com/m=hiscore_oldschool/index_lite.json"
DEFAULT_MONSTERS_URL = (
    "https://raw.githubusercontent.com/0xNeffarion/"
    "osrsreboxed-db/master/docs/monsters-complete.json"
)
DEFAULT_SOUND_IDS_PAGE = "List_of_sound_IDs"
DEFAULT_USER_AGENT = "osrs-mcp/0.2 (https://github.com/osrs-mcp/osrs-mcp)"

_TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean toggle from the environment."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


class ServerSettings(BaseModel):
    """Runtime settings for the OSRS MCP server."""

    data_dir: Path = Field(
        default_factory=lambda: Path(DEFAULT_DATA_DIR).resolve(),
        description="Directory of flat data files, relative to the working directory by default",
    )
    wiki_api_url: str = DEFAULT_WIKI_API_URL
    wiki_base_url: str = DEFAULT_WIKI_BASE_URL
    prices_api_url: str = DEFAULT_PRICES_API_URL
    hiscores_url: str = DEFAULT_HISCORES_URL
    monsters_url: str = DEFAULT_MONSTERS_URL
    sound_ids_page: str = DEFAULT_SOUND_IDS_PAGE
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = Field(default=30.0, gt=0)
    refresh_monsters_on_start: bool = False
    refresh_sounds_on_start: bool = False
    log_level: str = "INFO"

    @property
    def monsters_snapshot_path(self) -> Path:
        """On-disk snapshot of the monster dataset."""
        return self.data_dir / "monsters-complete.json"

    @property
    def sound_table_path(self) -> Path:
        return self.data_dir / "soundtypes.txt"

    @classmethod
    def from_env(cls) -> "ServerSettings":
        """Build settings from ``OSRS_*`` environment variables."""
        return cls(
            data_dir=Path(os.getenv("OSRS_DATA_DIR", DEFAULT_DATA_DIR)).expanduser().resolve(),
            wiki_api_url=os.getenv("OSRS_WIKI_API_URL", DEFAULT_WIKI_API_URL),
            wiki_base_url=os.getenv("OSRS_WIKI_BASE_URL", DEFAULT_WIKI_BASE_URL),
            prices_api_url=os.getenv("OSRS_PRICES_API_URL", DEFAULT_PRICES_API_URL),
            hiscores_url=os.getenv("OSRS_HISCORES_URL", DEFAULT_HISCORES_URL),
            monsters_url=os.getenv("OSRS_MONSTERS_URL", DEFAULT_MONSTERS_URL),
            sound_ids_page=os.getenv("OSRS_SOUND_IDS_PAGE", DEFAULT_SOUND_IDS_PAGE),
            user_agent=os.getenv("OSRS_USER_AGENT", DEFAULT_USER_AGENT),
            http_timeout=float(os.getenv("OSRS_HTTP_TIMEOUT", "30")),
            refresh_monsters_on_start=env_flag("OSRS_REFRESH_MONSTERS_ON_START"),
            refresh_sounds_on_start=env_flag("OSRS_REFRESH_SOUNDS_ON_START"),
            log_level=os.getenv("OSRS_LOG_LEVEL", "INFO").upper(),
        )


__all__ = ["ServerSettings", "env_flag"]
