"""
Upstream and client doubles plus SSE frame builders shared by the tests.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

import httpx
from src.services.relay.client import ClientWriter


TEST_ID = "test-id"
TEST_TIMESTAMP = 1700000000


def chat_frame(content: Optional[str], finish_reason: Optional[str] = None, role: Optional[str] = None) -> str:
    """Chat-completion SSE frame as upstream sends it."""
    delta: Dict[str, Any] = {}
    if role is not None:
        delta["role"] = role
    if content is not None:
        delta["content"] = content
    payload = {
        "id": "chatcmpl-upstream",
        "object": "chat.completion.chunk",
        "created": 1690000000,
        "model": "gpt-test",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]
    }
    return "data: " + json.dumps(payload)


def completion_frame(text: str, finish_reason: Optional[str] = None) -> str:
    """Legacy completion SSE frame."""
    payload = {
        "id": "cmpl-upstream",
        "object": "text_completion",
        "choices": [{"index": 0, "text": text, "finish_reason": finish_reason, "logprobs": None}]
    }
    return "data: " + json.dumps(payload)


def event_payload(frame: str) -> Dict[str, Any]:
    assert frame.startswith("data: ")
    return json.loads(frame[len("data: "):])


class FakeUpstream:
    """Upstream response double with controllable read/close failures."""

    def __init__(
        self,
        chunks: Optional[List[bytes]] = None,
        body: bytes = b"",
        status_code: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        read_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
        stream_error: Optional[Exception] = None
    ):
        self.chunks = chunks or []
        self.body = body
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self.read_error = read_error
        self.close_error = close_error
        self.stream_error = stream_error
        self.close_calls = 0
        self.chunks_read = 0

    async def aiter_bytes(self):
        for chunk in self.chunks:
            self.chunks_read += 1
            yield chunk
        if self.stream_error is not None:
            raise self.stream_error

    async def aread(self) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        return self.body

    async def aclose(self):
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class RecordingWriter(ClientWriter):
    """ClientWriter that keeps everything written to it."""

    def __init__(self, fail_after: Optional[int] = None, fail_with: Optional[Exception] = None):
        self.status_code: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self.events: List[str] = []
        self.body = b""
        self.fail_after = fail_after
        self.fail_with = fail_with or ConnectionResetError("client went away")
        self.started = False

    def write_header(self, status_code: int, headers: Mapping[str, str]):
        if self.started:
            return
        self.status_code = status_code
        self.headers.update(headers)

    async def write_event(self, frame: str):
        if self.fail_after is not None and len(self.events) >= self.fail_after:
            raise self.fail_with
        self.started = True
        self.events.append(frame)

    async def write(self, body: bytes):
        if self.fail_after is not None:
            raise self.fail_with
        self.started = True
        self.body += body


def sse_bytes(*frames: str, line_ending: str = "\n\n") -> bytes:
    return "".join(frame + line_ending for frame in frames).encode("utf-8")
