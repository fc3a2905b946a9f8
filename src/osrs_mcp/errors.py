"""
Error taxonomy for the OSRS MCP server.

Every failure raised by the core is one of these classes. The tool layer maps
them onto the transport: not-found conditions become inline ``{"error": ...}``
payloads, everything else aborts the call with a readable message.
"""

from __future__ import annotations

from typing import Any


class OsrsMcpError(Exception):
    """Base class for all errors raised by the server core."""
    pass


class NotFoundError(OsrsMcpError):
    """A file, entry, ID, page or player does not exist."""
    pass


class InvalidInputError(OsrsMcpError):
    """Arguments were well-typed but unusable (bad regex, path traversal, ...)."""
    pass


class UpstreamError(OsrsMcpError):
    """Network or parse failure while talking to an external data source."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.url = url

    def context(self) -> dict[str, Any]:
        """Details worth logging alongside the failure."""
        return {"url": self.url, "status_code": self.status_code}


class DataIntegrityError(OsrsMcpError):
    """A refreshed dataset failed a plausibility check and was rejected."""
    pass


def error_payload(error: NotFoundError | str) -> dict[str, str]:
    """Build the inline error payload returned for recoverable failures."""
    return {"error": str(error)}


__all__ = [
    "OsrsMcpError",
    "NotFoundError",
    "InvalidInputError",
    "UpstreamError",
    "DataIntegrityError",
    "error_payload",
]
