"""
Data model shared by the streaming and full-body relays.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
DONE_FRAME = DATA_PREFIX + DONE_MARKER

FINISH_REASON_STOP = "stop"


class RelayMode(Enum):
    """Which upstream JSON shape governs parsing."""

    CHAT_COMPLETIONS = "chat_completions"
    COMPLETIONS = "completions"

    @classmethod
    def from_path(cls, path: str) -> "RelayMode":
        """Resolve the relay mode from a request path."""
        path = path.rstrip("/")
        if path.endswith("/chat/completions"):
            return cls.CHAT_COMPLETIONS
        if path.endswith("/completions"):
            return cls.COMPLETIONS
        raise ValueError(f"No relay mode for path '{path}'")


@dataclass
class DeltaChoice:
    """
    Одна choice из стримингового события.

    Attributes:
        text: Incremental text fragment
        finish_reason: Upstream finish reason, None while generation continues
    """
    text: str = ""
    finish_reason: Optional[str] = None

    @property
    def is_stop(self) -> bool:
        return self.finish_reason == FINISH_REASON_STOP


class ResponseAccumulator:
    """Running concatenation of every delta observed in one relay session."""

    def __init__(self):
        self._parts: List[str] = []

    def append(self, text: str):
        if text:
            self._parts.append(text)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return sum(len(part) for part in self._parts)


@dataclass
class Usage:
    """Token accounting record handed to the accounting collaborator."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def computed(cls, prompt_tokens: int, completion_tokens: int) -> "Usage":
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens
        )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Usage":
        if not isinstance(data, dict):
            return cls()
        return cls(
            prompt_tokens=data.get("prompt_tokens") or 0,
            completion_tokens=data.get("completion_tokens") or 0,
            total_tokens=data.get("total_tokens") or 0
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens
        }


@dataclass
class FullResponse:
    """
    Decoded non-streaming upstream body.

    ``body`` keeps the whole decoded object so fields the relay does not
    touch survive re-serialization.
    """
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def choices(self) -> List[Dict[str, Any]]:
        choices = self.body.get("choices")
        return choices if isinstance(choices, list) else []

    @property
    def usage(self) -> Usage:
        return Usage.from_dict(self.body.get("usage"))

    @usage.setter
    def usage(self, value: Usage):
        self.body["usage"] = value.to_dict()

    @property
    def error(self) -> Optional[Dict[str, Any]]:
        error = self.body.get("error")
        return error if isinstance(error, dict) else None

    @property
    def has_error(self) -> bool:
        return bool(self.error and self.error.get("type"))
