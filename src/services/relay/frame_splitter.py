"""
Splits a raw upstream byte stream into protocol frames.
"""

from typing import AsyncGenerator, AsyncIterable

from .models import DATA_PREFIX, DONE_MARKER


FRAME_DELIMITER = b"\n"
MIN_FRAME_LENGTH = len(DATA_PREFIX)


async def split_frames(byte_source: AsyncIterable[bytes]) -> AsyncGenerator[str, None]:
    """
    Yield newline-delimited frames from an arbitrarily fragmented byte source.

    The delimiter itself is not part of the frame. Whatever is left buffered
    once the source is exhausted is yielded as the final frame. Splitting
    happens on bytes so multi-byte characters cut across reads stay intact.
    """
    buffer = b""
    async for chunk in byte_source:
        if not chunk:
            continue
        buffer += chunk
        while True:
            index = buffer.find(FRAME_DELIMITER)
            if index < 0:
                break
            frame, buffer = buffer[:index], buffer[index + 1:]
            yield frame.decode("utf-8", errors="replace")

    if buffer:
        yield buffer.decode("utf-8", errors="replace")


def is_protocol_frame(frame: str) -> bool:
    """
    True for frames worth looking at: ``data: ...`` events and bare ``[DONE]``.

    Blank lines, SSE comments and anything shorter than the prefix are noise.
    """
    if len(frame) < MIN_FRAME_LENGTH:
        return False
    return frame.startswith(DATA_PREFIX) or frame.startswith(DONE_MARKER)


async def iter_protocol_frames(byte_source: AsyncIterable[bytes]) -> AsyncGenerator[str, None]:
    """Frames from ``byte_source`` with the noise filtered out."""
    async for frame in split_frames(byte_source):
        if is_protocol_frame(frame):
            yield frame
