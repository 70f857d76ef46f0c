"""
Rendezvous channel between the stream producer and the client writer.
"""

import asyncio
from typing import Optional


class FrameHandoff:
    """
    Unbuffered frame channel plus a separate termination signal.

    ``send`` returns only after the consumer has taken the frame and called
    ``delivered``, so the producer never runs ahead of the client.
    """

    def __init__(self):
        self._frames: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._stopped = asyncio.Event()

    async def send(self, frame: str):
        await self._frames.put(frame)
        await self._frames.join()

    def stop(self):
        """Signal that no more frames will be sent."""
        self._stopped.set()

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    async def receive(self) -> Optional[str]:
        """
        Wait for the next frame or the termination signal.

        Returns None once terminated. A received frame must be acknowledged
        with ``delivered``.
        """
        if not self._frames.empty():
            return self._frames.get_nowait()

        get_frame = asyncio.ensure_future(self._frames.get())
        wait_stop = asyncio.ensure_future(self._stopped.wait())
        try:
            done, _ = await asyncio.wait(
                {get_frame, wait_stop},
                return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for task in (get_frame, wait_stop):
                if not task.done():
                    task.cancel()

        if get_frame in done:
            return get_frame.result()
        return None

    def delivered(self):
        self._frames.task_done()
