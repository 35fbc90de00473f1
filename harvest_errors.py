"""
Error taxonomy for the harvester.

Traversal errors (network, HTTP, parse) are turned into a pause by the
engine. Storage errors on the state blob are logged and the crawl keeps
going; a failed section file write pauses the crawl.
"""

from typing import Optional


class HarvestError(Exception):
    """Base class for every classified harvester failure."""

    status: Optional[int] = None


class NetworkError(HarvestError):
    """The request never produced a response (DNS, TLS, timeout, reset)."""


class HttpError(HarvestError):
    """The API answered with a non-success status."""

    def __init__(self, status: int, message: Optional[str] = None):
        super().__init__(message or f"API returned HTTP {status}")
        self.status = status


class ParseError(HarvestError):
    """The API answered with something that is not a JSON list of nodes."""


class SelectionError(HarvestError):
    """None of the requested section keys exist in the loaded catalog."""


class StorageError(HarvestError):
    """Reading or writing the state blob or an output file failed."""
