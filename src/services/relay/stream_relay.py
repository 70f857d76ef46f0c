"""
Stream Relay Module

Relays an upstream server-sent-event stream to the client while injecting the
fixed-content frame after every natural completion and counting the text.

Two tasks run per request: the producer splits and parses upstream frames and
hands them over one at a time, the consumer writes them to the client. The
handoff is a rendezvous so the client's pace throttles the upstream reads.
"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from .client import ClientWriter
from .delta_parser import DeltaParser, is_done_frame
from .frame_splitter import iter_protocol_frames
from .handoff import FrameHandoff
from .injection import InjectionBoundary
from .models import DONE_FRAME, RelayMode
from ...core.error_handling import ErrorContext, ErrorHandler, ErrorType
from ...core.logging import logger
from ...utils.identifiers import generate_uuid, get_timestamp


def normalize_outgoing_frame(frame: str) -> str:
    """Canonical terminal marker and no trailing carriage return."""
    if frame.startswith(DONE_FRAME):
        frame = frame[:len(DONE_FRAME)]
    if frame.endswith("\r"):
        frame = frame[:-1]
    return frame


class StreamRelaySession:
    """
    Per-request state of one streaming relay: parser, accumulator and
    injection boundary. Nothing here is shared between requests.
    """

    def __init__(
        self,
        upstream: httpx.Response,
        relay_mode: RelayMode,
        fixed_content: str,
        request_id: str,
        id_factory: Callable[[], str],
        clock: Callable[[], int]
    ):
        self.upstream = upstream
        self.request_id = request_id
        self.parser = DeltaParser(relay_mode, request_id=request_id)
        self.boundary = InjectionBoundary(fixed_content, id_factory=id_factory, clock=clock)
        self.handoff = FrameHandoff()
        self.frames_forwarded = 0
        self.frames_dropped = 0

    async def produce(self):
        """Read upstream frames and hand them off; always ends with one terminal marker."""
        try:
            try:
                async for frame in iter_protocol_frames(self.upstream.aiter_bytes()):
                    await self._handle_frame(frame)
            except (httpx.HTTPError, OSError) as e:
                # Обрыв апстрима не прерывает сессию: клиент все равно получает [DONE]
                logger.warning(
                    f"Upstream stream ended with error: {e}",
                    request_id=self.request_id,
                    error_type=type(e).__name__
                )
            except Exception as e:
                logger.error(
                    f"Stream producer failed: {e}",
                    request_id=self.request_id,
                    error_type=type(e).__name__
                )

            await self._send_pending_injection()
            await self.handoff.send(DONE_FRAME)
        finally:
            self.handoff.stop()

    async def _handle_frame(self, frame: str):
        if is_done_frame(frame):
            # Upstream markers are swallowed; the session sends its own at the end
            await self._send_pending_injection()
            return

        choices = self.parser.parse(frame)
        if choices is None:
            self.frames_dropped += 1
            return

        logger.debug("Forwarding stream frame", request_id=self.request_id, frame_preview=frame[:100])
        await self._send_pending_injection()
        await self.handoff.send(frame)
        self.frames_forwarded += 1

        if self.parser.fold(choices):
            self.boundary.arm()

    async def _send_pending_injection(self):
        synthetic = self.boundary.release()
        if synthetic is not None:
            await self.handoff.send(synthetic)

    async def consume(self, client: ClientWriter):
        """Write handed-off frames to the client until the producer signals the end."""
        while True:
            frame = await self.handoff.receive()
            if frame is None:
                return
            try:
                await client.write_event(normalize_outgoing_frame(frame))
            finally:
                self.handoff.delivered()

    @property
    def response_text(self) -> str:
        return self.parser.response_text


class StreamRelay:
    """
    Streaming entry point.

    Attributes:
        fixed_content: Text injected after every natural completion
        id_factory: Source of synthetic completion ids
        clock: Source of synthetic completion timestamps
    """

    def __init__(
        self,
        fixed_content: str = "",
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], int] = get_timestamp
    ):
        self.fixed_content = fixed_content or ""
        self.id_factory = id_factory
        self.clock = clock

    async def relay(
        self,
        upstream: httpx.Response,
        client: ClientWriter,
        relay_mode: RelayMode,
        request_id: str = "unknown",
        context: Optional[ErrorContext] = None
    ) -> str:
        """
        Relay ``upstream`` to ``client`` and return the accumulated response text.

        The upstream response is closed here. A close failure raises
        RelayError and the accumulated text is not returned.

        Raises:
            RelayError: close_response_body_failed
        """
        start_time = time.time()
        session = StreamRelaySession(
            upstream, relay_mode, self.fixed_content, request_id, self.id_factory, self.clock
        )

        logger.info(
            "Starting stream relay",
            request_id=request_id,
            relay_mode=relay_mode.value,
            fixed_content_enabled=bool(self.fixed_content)
        )

        client.set_event_stream_headers()
        producer = asyncio.create_task(session.produce())
        try:
            await session.consume(client)
        except asyncio.CancelledError:
            await self._stop_producer(producer)
            await upstream.aclose()
            raise
        except Exception as e:
            logger.warning(
                f"Client write failed, abandoning stream: {e}",
                request_id=request_id,
                error_type=type(e).__name__
            )
        await self._stop_producer(producer)

        try:
            await upstream.aclose()
        except Exception as e:
            raise ErrorHandler.wrap_error(
                e,
                ErrorType.CLOSE_RESPONSE_BODY_FAILED,
                context or ErrorContext(request_id=request_id, relay_mode=relay_mode.value)
            ) from e

        logger.info(
            "Stream relay completed",
            request_id=request_id,
            relay_mode=relay_mode.value,
            duration_ms=int((time.time() - start_time) * 1000),
            frames_forwarded=session.frames_forwarded,
            frames_dropped=session.frames_dropped,
            injected_frames=session.boundary.injected_count,
            content_length=len(session.response_text)
        )
        return session.response_text

    @staticmethod
    async def _stop_producer(producer: asyncio.Task):
        """Abandon the producer's pending handoff so the task never leaks."""
        if not producer.done():
            producer.cancel()
        await asyncio.gather(producer, return_exceptions=True)
