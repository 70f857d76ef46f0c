import asyncio
import json

import pytest
from starlette.requests import ClientDisconnect

from src.api.responses import ASGIClientWriter, RelayResponse
from src.core.error_handling import ErrorContext, ErrorHandler, ErrorType


class ASGIRecorder:
    """Collects ASGI messages; ``receive`` blocks until a disconnect is requested."""

    def __init__(self):
        self.messages = []
        self.disconnect = asyncio.Event()

    async def send(self, message):
        self.messages.append(message)

    async def receive(self):
        await self.disconnect.wait()
        return {"type": "http.disconnect"}

    @property
    def start(self):
        return self.messages[0]

    @property
    def body(self) -> bytes:
        return b"".join(m.get("body", b"") for m in self.messages[1:])


class TestASGIClientWriter:

    @pytest.mark.asyncio
    async def test_response_starts_lazily(self):
        asgi = ASGIRecorder()
        writer = ASGIClientWriter(asgi.send)
        writer.write_header(201, {"X-Custom": "1"})
        assert asgi.messages == []

        await writer.write(b"abc")
        writer.write_header(500, {"x-late": "ignored"})
        await writer.finish()

        assert asgi.start == {"type": "http.response.start", "status": 201, "headers": [(b"x-custom", b"1")]}
        assert asgi.body == b"abc"
        assert asgi.messages[-1] == {"type": "http.response.body", "body": b"", "more_body": False}

    @pytest.mark.asyncio
    async def test_write_event_appends_separator(self):
        asgi = ASGIRecorder()
        writer = ASGIClientWriter(asgi.send)
        writer.set_event_stream_headers()

        await writer.write_event("data: [DONE]")

        assert (b"content-type", b"text/event-stream") in asgi.start["headers"]
        assert asgi.body == b"data: [DONE]\n\n"

    @pytest.mark.asyncio
    async def test_write_after_disconnect(self):
        writer = ASGIClientWriter(ASGIRecorder().send)
        writer.disconnected = True

        with pytest.raises(ClientDisconnect):
            await writer.write(b"x")


class TestRelayResponse:

    @pytest.mark.asyncio
    async def test_handler_output(self):
        async def handler(client):
            client.write_header(200, {"content-type": "application/json"})
            await client.write(b'{"ok": true}')

        asgi = ASGIRecorder()
        await RelayResponse(handler)({"type": "http"}, asgi.receive, asgi.send)

        assert asgi.start["status"] == 200
        assert asgi.body == b'{"ok": true}'

    @pytest.mark.asyncio
    async def test_error_before_start_becomes_json(self):
        async def handler(client):
            raise ErrorHandler.wrap_error(RuntimeError("boom"), ErrorType.READ_RESPONSE_BODY_FAILED, ErrorContext())

        asgi = ASGIRecorder()
        await RelayResponse(handler)({"type": "http"}, asgi.receive, asgi.send)

        assert asgi.start["status"] == 500
        assert json.loads(asgi.body)["error"]["code"] == "read_response_body_failed"

    @pytest.mark.asyncio
    async def test_error_after_start_is_only_logged(self):
        async def handler(client):
            client.set_event_stream_headers()
            await client.write_event("data: {}")
            raise ErrorHandler.wrap_error(RuntimeError("late"), ErrorType.CLOSE_RESPONSE_BODY_FAILED, ErrorContext())

        asgi = ASGIRecorder()
        await RelayResponse(handler)({"type": "http"}, asgi.receive, asgi.send)

        assert asgi.start["status"] == 200
        assert asgi.body == b"data: {}\n\n"

    @pytest.mark.asyncio
    async def test_error_after_disconnect_is_not_written(self):
        asgi = ASGIRecorder()

        async def handler(client):
            asgi.disconnect.set()
            await asyncio.sleep(0.01)
            raise ErrorHandler.wrap_error(RuntimeError("boom"), ErrorType.READ_RESPONSE_BODY_FAILED, ErrorContext())

        await RelayResponse(handler)({"type": "http"}, asgi.receive, asgi.send)

        assert asgi.messages == []

    @pytest.mark.asyncio
    async def test_client_disconnect_stops_writes(self):
        asgi = ASGIRecorder()
        writes = []

        async def handler(client):
            await client.write(b"first")
            writes.append("first")
            asgi.disconnect.set()
            await asyncio.sleep(0.01)
            with pytest.raises(ClientDisconnect):
                await client.write(b"second")

        await RelayResponse(handler)({"type": "http"}, asgi.receive, asgi.send)

        assert writes == ["first"]
        assert asgi.body == b"first"
