"""
Default token counting backed by tiktoken.

The relays only depend on the ``count_tokens(text, model) -> int`` signature,
so any other counter can be injected instead.
"""

from functools import lru_cache
from typing import Any, Callable, Dict, List

import tiktoken


DEFAULT_ENCODING = "cl100k_base"


@lru_cache(maxsize=64)
def get_encoding(model: str) -> "tiktoken.Encoding":
    """Encoding for ``model``, falling back to cl100k_base for unknown models."""
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding(DEFAULT_ENCODING)


def count_tokens(text: str, model: str) -> int:
    if not text:
        return 0
    return len(get_encoding(model).encode(text, disallowed_special=()))


def message_text(content: Any) -> str:
    """Plain text of a message ``content`` value (string or list of parts)."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str)
        )
    return ""


def count_message_tokens(
    messages: List[Dict[str, Any]],
    model: str,
    counter: Callable[[str, str], int] = count_tokens
) -> int:
    """
    Prompt tokens of a chat request.

    Follows the OpenAI cookbook accounting: a fixed overhead per message,
    the name bonus, and 3 tokens priming the assistant reply.
    """
    if model == "gpt-3.5-turbo-0301":
        tokens_per_message = 4
        tokens_per_name = -1
    else:
        tokens_per_message = 3
        tokens_per_name = 1

    total = 0
    for message in messages:
        if not isinstance(message, dict):
            continue
        total += tokens_per_message
        total += counter(message_text(message.get("content")), model)
        total += counter(message.get("role") or "", model)
        name = message.get("name")
        if isinstance(name, str):
            total += tokens_per_name
            total += counter(name, model)
    total += 3
    return total


def count_prompt_tokens(
    request_body: Dict[str, Any],
    model: str,
    counter: Callable[[str, str], int] = count_tokens
) -> int:
    """Prompt tokens for either a chat request (messages) or a legacy one (prompt)."""
    messages = request_body.get("messages")
    if isinstance(messages, list):
        return count_message_tokens(messages, model, counter)

    prompt = request_body.get("prompt")
    if isinstance(prompt, list):
        return sum(counter(p, model) for p in prompt if isinstance(p, str))
    if isinstance(prompt, str):
        return counter(prompt, model)
    return 0
