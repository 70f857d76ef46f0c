"""
ASGI side of the relay: a ClientWriter that writes straight to the ASGI
``send`` channel, and the Response class that runs a relay inside the
ASGI call so relays can stream with natural backpressure.
"""

import asyncio
import json
from typing import Awaitable, Callable, Dict, Mapping

from starlette.requests import ClientDisconnect
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from ..core.exceptions import RelayError
from ..core.logging import logger
from ..services.relay.client import ClientWriter


class ASGIClientWriter(ClientWriter):
    """Writes relay output to an ASGI connection; the response starts on the first write."""

    def __init__(self, send: Send):
        self._send = send
        self.status_code = 200
        self.headers: Dict[str, str] = {}
        self.started = False
        self.finished = False
        self.disconnected = False

    def write_header(self, status_code: int, headers: Mapping[str, str]):
        if self.started:
            return
        self.status_code = status_code
        for key, value in headers.items():
            self.headers[key.lower()] = value

    async def _start(self):
        await self._send({
            "type": "http.response.start",
            "status": self.status_code,
            "headers": [
                (key.encode("latin-1"), value.encode("latin-1"))
                for key, value in self.headers.items()
            ]
        })
        self.started = True

    async def write(self, body: bytes):
        if self.disconnected:
            raise ClientDisconnect()
        if not self.started:
            await self._start()
        await self._send({"type": "http.response.body", "body": body, "more_body": True})

    async def write_event(self, frame: str):
        await self.write(f"{frame}\n\n".encode("utf-8"))

    async def finish(self):
        if self.finished or self.disconnected:
            return
        if not self.started:
            await self._start()
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        self.finished = True


class RelayResponse(Response):
    """
    Response whose body is produced by ``handler(writer)`` during the ASGI call.

    A RelayError raised before anything was written becomes a JSON error
    response; once the response has started the error can only be logged.
    """

    def __init__(self, handler: Callable[[ClientWriter], Awaitable[None]], request_id: str = "unknown"):
        super().__init__()
        self.handler = handler
        self.request_id = request_id

    async def _listen_for_disconnect(self, receive: Receive, writer: ASGIClientWriter):
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                writer.disconnected = True
                break

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        writer = ASGIClientWriter(send)
        listener = asyncio.create_task(self._listen_for_disconnect(receive, writer))
        try:
            await self.handler(writer)
        except RelayError as e:
            if writer.started:
                logger.error(
                    f"Relay failed after the response started: {e.message}",
                    exc_info=False,
                    request_id=self.request_id,
                    error_code=e.error_code
                )
            elif writer.disconnected:
                logger.warning(
                    f"Client disconnected before the error could be sent: {e.message}",
                    request_id=self.request_id,
                    error_code=e.error_code
                )
            else:
                writer.write_header(e.status_code, {"content-type": "application/json"})
                await writer.write(json.dumps(e.detail, ensure_ascii=False).encode("utf-8"))
        finally:
            listener.cancel()
            await asyncio.gather(listener, return_exceptions=True)

        await writer.finish()
