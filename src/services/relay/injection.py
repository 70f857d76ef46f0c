"""
Injection boundary: decides where the fixed-content frame goes in the stream.
"""

import json
from enum import Enum
from typing import Callable, Optional

from .models import DATA_PREFIX, FINISH_REASON_STOP
from ...core.logging import logger
from ...utils.identifiers import generate_uuid, get_timestamp


FIXED_CONTENT_SEPARATOR = "\n\n"


class InjectionState(Enum):
    NORMAL = "normal"
    PENDING_INJECTION = "pending_injection"


def build_fixed_content_frame(
    fixed_content: str,
    id_factory: Callable[[], str] = generate_uuid,
    clock: Callable[[], int] = get_timestamp
) -> str:
    """
    Build the synthetic ``data:`` frame that carries the fixed content.

    It looks like an ordinary assistant chunk so clients render it as part of
    the answer.
    """
    message = {
        "id": f"chatcmpl-{id_factory()}",
        "object": "chat.completion",
        "created": clock(),
        "choices": [
            {
                "index": 0,
                "finish_reason": FINISH_REASON_STOP,
                "delta": {
                    "content": FIXED_CONTENT_SEPARATOR + fixed_content,
                    "role": ""
                }
            }
        ]
    }
    return DATA_PREFIX + json.dumps(message, ensure_ascii=False)


class InjectionBoundary:
    """
    Two-state machine: NORMAL -> PENDING_INJECTION on a stop finish reason,
    back to NORMAL as soon as the pending frame is released.

    With empty fixed content the state still transitions but nothing is
    ever released.
    """

    def __init__(
        self,
        fixed_content: str,
        id_factory: Callable[[], str] = generate_uuid,
        clock: Callable[[], int] = get_timestamp
    ):
        self.fixed_content = fixed_content or ""
        self.state = InjectionState.NORMAL
        self.injected_count = 0
        self._id_factory = id_factory
        self._clock = clock

    @property
    def is_pending(self) -> bool:
        return self.state is InjectionState.PENDING_INJECTION

    def arm(self):
        """A choice finished with stop; the next outgoing frame gets preceded."""
        self.state = InjectionState.PENDING_INJECTION

    def release(self) -> Optional[str]:
        """
        Return the synthetic frame to send ahead of the next frame, if any.

        Always clears the pending state.
        """
        if not self.is_pending:
            return None

        self.state = InjectionState.NORMAL
        if not self.fixed_content:
            return None

        self.injected_count += 1
        logger.debug("Injecting fixed content frame", injected_count=self.injected_count)
        return build_fixed_content_frame(self.fixed_content, self._id_factory, self._clock)
