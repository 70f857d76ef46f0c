"""
Full-Body Relay Module

Relays a complete (non-streaming) upstream JSON body: appends the fixed
content to every choice, back-fills usage when upstream left it empty and
writes the re-serialized body with the upstream status and headers.
"""

import json
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import httpx

from .client import ClientWriter
from .injection import FIXED_CONTENT_SEPARATOR
from .models import FullResponse, Usage
from ...core.error_handling import ErrorContext, ErrorHandler, ErrorType
from ...core.logging import logger
from ...utils.token_counter import count_tokens as default_count_tokens, message_text


# Describe the upstream framing, recomputed for the re-serialized body
FRAMING_HEADERS = frozenset({
    "content-length",
    "content-encoding",
    "transfer-encoding",
    "connection",
})


def first_value_headers(headers: httpx.Headers) -> Dict[str, str]:
    """First value of every upstream header; repeated values are dropped."""
    result = {}
    for key in headers.keys():
        if key.lower() in FRAMING_HEADERS:
            continue
        values = headers.get_list(key)
        if values:
            result[key] = values[0]
    return result


def choice_text(choice: Dict[str, Any]) -> str:
    """Textual content of a non-streaming choice (chat message or legacy text)."""
    message = choice.get("message")
    if isinstance(message, dict):
        return message_text(message.get("content"))
    if isinstance(choice.get("text"), str):
        return choice["text"]
    return ""


def set_choice_text(choice: Dict[str, Any], text: str):
    message = choice.get("message")
    if isinstance(message, dict):
        message["content"] = text
    elif isinstance(choice.get("text"), str):
        choice["text"] = text
    else:
        choice["message"] = {"content": text}


def ensure_json_encodable(text: str):
    """
    Raise if ``text`` cannot be written as a UTF-8 JSON string value.

    Lone surrogates, for example, survive ``json.dumps`` but not the encode.
    """
    json.dumps(text, ensure_ascii=False).encode("utf-8")


def decode_full_response(body: bytes) -> FullResponse:
    """
    Decode the upstream body.

    Raises:
        ValueError: body is not JSON or not shaped like a completion response
    """
    decoded = json.loads(body)
    if not isinstance(decoded, dict):
        raise ValueError(f"response body must be a JSON object, got {type(decoded).__name__}")

    choices = decoded.get("choices")
    if choices is not None:
        if not isinstance(choices, list) or not all(isinstance(c, dict) for c in choices):
            raise ValueError("'choices' must be a list of objects")

    usage = decoded.get("usage")
    if usage is not None and not isinstance(usage, dict):
        raise ValueError("'usage' must be an object")

    return FullResponse(body=decoded)


class FullBodyRelay:
    """
    Non-streaming entry point.

    Attributes:
        fixed_content: Text appended to every returned choice
        count_tokens: ``count_tokens(text, model) -> int`` used to back-fill usage
    """

    def __init__(
        self,
        fixed_content: str = "",
        count_tokens: Callable[[str, str], int] = default_count_tokens
    ):
        self.fixed_content = fixed_content or ""
        self.count_tokens = count_tokens

    async def relay(
        self,
        upstream: httpx.Response,
        client: ClientWriter,
        prompt_tokens: int,
        model: str,
        request_id: str = "unknown",
        context: Optional[ErrorContext] = None
    ) -> Tuple[Usage, str]:
        """
        Relay the upstream body to ``client``.

        Returns:
            Tuple of the usage record and the original (non-injected) text
            of the last choice.

        Raises:
            RelayError: upstream-reported error (upstream status code) or any
                read/close/decode/encode/write failure (500)
        """
        if context is None:
            context = ErrorContext(request_id=request_id, model_id=model)

        try:
            body = await upstream.aread()
        except Exception as e:
            error = ErrorHandler.wrap_error(e, ErrorType.READ_RESPONSE_BODY_FAILED, context)
            await self._close_after_read_failure(upstream, request_id)
            raise error from e

        try:
            await upstream.aclose()
        except Exception as e:
            raise ErrorHandler.wrap_error(e, ErrorType.CLOSE_RESPONSE_BODY_FAILED, context) from e

        try:
            response = decode_full_response(body)
        except ValueError as e:
            raise ErrorHandler.wrap_error(e, ErrorType.UNMARSHAL_RESPONSE_BODY_FAILED, context) from e

        if response.has_error:
            raise ErrorHandler.handle_upstream_error(response.error, upstream.status_code, context)

        logger.debug_data(
            title="Upstream Response JSON",
            data=response.body,
            request_id=request_id,
            component="full_body_relay",
            data_flow="from_upstream"
        )

        # Только последняя choice считается каноническим текстом ответа
        response_text = ""
        for choice in response.choices:
            response_text = choice_text(choice)

        if self.fixed_content:
            for choice in response.choices:
                self._append_fixed_content(choice, context)

        # Usage считается по исходному тексту, без fixed content
        if response.usage.total_tokens == 0:
            response.usage = Usage.computed(prompt_tokens, self.count_tokens(response_text, model))

        try:
            payload = json.dumps(response.body, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise ErrorHandler.wrap_error(e, ErrorType.REMARSHAL_RESPONSE_BODY_FAILED, context) from e

        client.write_header(upstream.status_code, first_value_headers(upstream.headers))
        try:
            await client.write(payload)
        except Exception as e:
            raise ErrorHandler.wrap_error(e, ErrorType.WRITE_MODIFIED_RESPONSE_BODY_FAILED, context) from e

        usage = response.usage
        logger.info(
            "Full body relay completed",
            request_id=request_id,
            model_id=model,
            http_status_code=upstream.status_code,
            choices_count=len(response.choices),
            prompt_tokens=usage.prompt_tokens,
            completion_tokens=usage.completion_tokens,
            total_tokens=usage.total_tokens
        )
        return usage, response_text

    @staticmethod
    async def _close_after_read_failure(upstream: httpx.Response, request_id: str):
        """The read error is the one reported; a close failure on top of it is only logged."""
        try:
            await upstream.aclose()
        except Exception as e:
            logger.warning(
                f"Closing upstream after a failed read also failed: {e}",
                request_id=request_id,
                error_type=type(e).__name__
            )

    def _append_fixed_content(self, choice: Dict[str, Any], context: ErrorContext):
        modified = choice_text(choice) + FIXED_CONTENT_SEPARATOR + self.fixed_content
        try:
            ensure_json_encodable(modified)
        except (TypeError, ValueError) as e:
            raise ErrorHandler.wrap_error(e, ErrorType.ENCODE_MODIFIED_CONTENT_FAILED, context) from e
        set_choice_text(choice, modified)
