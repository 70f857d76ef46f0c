"""
Relay Package

Response-relay engine between a client and an upstream chat-completion API.

Modules:
- frame_splitter: newline framing of the upstream byte stream
- delta_parser: mode-specific decoding of streamed events
- injection: placement of the fixed-content frame
- handoff: rendezvous between the stream producer and the client writer
- stream_relay: streaming entry point
- full_body_relay: non-streaming entry point

Usage:
    from src.services.relay import StreamRelay, FullBodyRelay, RelayMode

    text = await StreamRelay(fixed_content).relay(upstream, client, RelayMode.CHAT_COMPLETIONS)
    usage, text = await FullBodyRelay(fixed_content).relay(upstream, client, prompt_tokens, model)
"""

from .models import RelayMode, Usage, DeltaChoice, ResponseAccumulator, FullResponse
from .client import ClientWriter, EVENT_STREAM_HEADERS
from .injection import InjectionBoundary, InjectionState
from .delta_parser import DeltaParser
from .stream_relay import StreamRelay
from .full_body_relay import FullBodyRelay

__all__ = [
    "RelayMode",
    "Usage",
    "DeltaChoice",
    "ResponseAccumulator",
    "FullResponse",
    "ClientWriter",
    "EVENT_STREAM_HEADERS",
    "InjectionBoundary",
    "InjectionState",
    "DeltaParser",
    "StreamRelay",
    "FullBodyRelay"
]
