"""
OSRS MCP Server - Old School RuneScape reference data built with FastMCP 2.8.0+.
"""

from .main import mcp

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("osrs-mcp")
except Exception:
    __version__ = "0.2.0"  # Fallback if metadata unavailable
__all__ = ["mcp"]
