"""
Mode-specific decoding of streamed ``data:`` payloads.

Each relay mode has its own decode function; ``DeltaParser`` dispatches on
the mode and folds the decoded choices into the session accumulator.
"""

import json
from typing import Any, Callable, Dict, List, Optional

from .models import (
    DATA_PREFIX,
    DONE_FRAME,
    DONE_MARKER,
    DeltaChoice,
    RelayMode,
    ResponseAccumulator,
)
from ...core.logging import logger


class DeltaDecodeError(ValueError):
    """Payload is not a valid event for the active relay mode."""


def _load_choices(payload: str) -> List[Any]:
    data = json.loads(payload)
    if not isinstance(data, dict):
        raise DeltaDecodeError(f"expected a JSON object, got {type(data).__name__}")

    choices = data.get("choices")
    if choices is None:
        return []
    if not isinstance(choices, list):
        raise DeltaDecodeError(f"'choices' must be a list, got {type(choices).__name__}")
    return choices


def _optional_string(value: Any, field_name: str) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise DeltaDecodeError(f"'{field_name}' must be a string, got {type(value).__name__}")


def decode_chat_delta(payload: str) -> List[DeltaChoice]:
    """Chat-completion chunk: ``choices[].delta.content`` plus nullable finish_reason."""
    result = []
    for choice in _load_choices(payload):
        if not isinstance(choice, dict):
            raise DeltaDecodeError("choice must be an object")
        delta = choice.get("delta") or {}
        if not isinstance(delta, dict):
            raise DeltaDecodeError("'delta' must be an object")
        result.append(DeltaChoice(
            text=_optional_string(delta.get("content"), "delta.content") or "",
            finish_reason=_optional_string(choice.get("finish_reason"), "finish_reason")
        ))
    return result


def decode_completion_delta(payload: str) -> List[DeltaChoice]:
    """Legacy completion chunk: ``choices[].text`` plus a plain finish_reason string."""
    result = []
    for choice in _load_choices(payload):
        if not isinstance(choice, dict):
            raise DeltaDecodeError("choice must be an object")
        result.append(DeltaChoice(
            text=_optional_string(choice.get("text"), "text") or "",
            # null decodes to the empty string here, never to "stop"
            finish_reason=_optional_string(choice.get("finish_reason"), "finish_reason") or ""
        ))
    return result


DECODERS: Dict[RelayMode, Callable[[str], List[DeltaChoice]]] = {
    RelayMode.CHAT_COMPLETIONS: decode_chat_delta,
    RelayMode.COMPLETIONS: decode_completion_delta,
}


def is_done_frame(frame: str) -> bool:
    """Upstream terminal marker, in either ``data: [DONE]`` or bare ``[DONE]`` spelling."""
    return frame.startswith(DONE_FRAME) or frame.startswith(DONE_MARKER)


class DeltaParser:
    """
    Decodes ``data:`` frames for one relay session.

    Attributes:
        relay_mode: Active relay mode
        accumulator: Session text accumulator, owned by this parser
    """

    def __init__(self, relay_mode: RelayMode, request_id: str = "unknown"):
        if relay_mode not in DECODERS:
            raise ValueError(f"Unsupported relay mode: {relay_mode}")
        self.relay_mode = relay_mode
        self.request_id = request_id
        self.accumulator = ResponseAccumulator()
        self._decode = DECODERS[relay_mode]

    def parse(self, frame: str) -> Optional[List[DeltaChoice]]:
        """
        Decode one ``data:`` frame.

        Returns the decoded choices, or None when the frame has to be dropped.
        Nothing is folded into the accumulator here, see ``fold``.
        """
        payload = frame[len(DATA_PREFIX):]
        try:
            return self._decode(payload)
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError и DeltaDecodeError - подклассы ValueError
            logger.warning(
                f"Dropping undecodable stream frame: {e}",
                request_id=self.request_id,
                relay_mode=self.relay_mode.value,
                frame_preview=frame[:100]
            )
            return None

    def fold(self, choices: List[DeltaChoice]) -> bool:
        """Append choice text to the accumulator; True if any choice finished with stop."""
        stopped = False
        for choice in choices:
            self.accumulator.append(choice.text)
            if choice.is_stop:
                stopped = True
        return stopped

    @property
    def response_text(self) -> str:
        return self.accumulator.text
