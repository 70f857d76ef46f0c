"""
Contract of the client-side writer the relays produce output through.
"""

from abc import ABC, abstractmethod
from typing import Mapping


EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class ClientWriter(ABC):
    """
    Where relayed output goes.

    The HTTP status and headers are sent lazily with the first write; after
    that ``write_header`` and ``set_event_stream_headers`` have no effect.
    """

    @abstractmethod
    def write_header(self, status_code: int, headers: Mapping[str, str]):
        """Set the response status and merge ``headers`` into the response headers."""

    def set_event_stream_headers(self):
        self.write_header(200, EVENT_STREAM_HEADERS)

    @abstractmethod
    async def write_event(self, frame: str):
        """Write one server-sent event line followed by the blank separator line."""

    @abstractmethod
    async def write(self, body: bytes):
        """Write raw response body bytes."""
