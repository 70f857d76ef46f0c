"""
Error Types and Context Definitions

This module defines standardized error types and context information for
consistent error handling across the relay.
"""

from enum import Enum
from typing import Dict, Any, Optional
from fastapi import status


RELAY_ERROR_TYPE = "relay_error"


class ErrorType(Enum):
    """Enumeration of standard error types in the system."""

    # Validation Errors (400)
    INVALID_REQUEST_FORMAT = ("invalid_request_format", status.HTTP_400_BAD_REQUEST, "Invalid request format: {error_details}")

    # Relay failures (500), message is the original exception text
    READ_RESPONSE_BODY_FAILED = ("read_response_body_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")
    CLOSE_RESPONSE_BODY_FAILED = ("close_response_body_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")
    UNMARSHAL_RESPONSE_BODY_FAILED = ("unmarshal_response_body_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")
    ENCODE_MODIFIED_CONTENT_FAILED = ("encode_modified_content_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")
    REMARSHAL_RESPONSE_BODY_FAILED = ("remarshal_response_body_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")
    WRITE_MODIFIED_RESPONSE_BODY_FAILED = ("write_modified_response_body_failed", status.HTTP_500_INTERNAL_SERVER_ERROR, "{error_details}")

    # Server Errors (500)
    INTERNAL_SERVER_ERROR = ("internal_server_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error: {error_details}")
    PROVIDER_NETWORK_ERROR = ("provider_network_error", status.HTTP_500_INTERNAL_SERVER_ERROR, "Network error communicating with upstream: {error_details}")

    # Upstream-reported errors (dynamic status codes)
    UPSTREAM_ERROR = ("upstream_error", None, "Upstream error: {error_details}")

    def __init__(self, code: str, status_code: Optional[int], message_template: str):
        self.code = code
        self.status_code = status_code
        self.message_template = message_template

    def format_message(self, **kwargs) -> str:
        """Fill the template; an unfillable template is returned unchanged."""
        try:
            return self.message_template.format(**kwargs)
        except KeyError:
            return self.message_template

    def create_error_detail(self, **kwargs) -> Dict[str, Any]:
        """OpenAI-style error envelope for this error type."""
        return {
            "error": {
                "message": self.format_message(**kwargs),
                "type": RELAY_ERROR_TYPE,
                "param": None,
                "code": self.code
            }
        }


class ErrorContext:
    """
    Request context attached to error log records.

    Extra keyword arguments are kept in ``additional_context`` and logged as-is.
    """

    LOGGED_FIELDS = ("request_id", "model_id", "relay_mode", "endpoint_path")

    def __init__(
        self,
        request_id: Optional[str] = None,
        model_id: Optional[str] = None,
        relay_mode: Optional[str] = None,
        endpoint_path: Optional[str] = None,
        **additional_context
    ):
        self.request_id = request_id
        self.model_id = model_id
        self.relay_mode = relay_mode
        self.endpoint_path = endpoint_path
        self.additional_context = additional_context

    def to_log_extra(self) -> Dict[str, Any]:
        """Logging ``extra`` with the set fields only."""
        extra: Dict[str, Any] = {"log_type": "error"}
        extra.update({name: getattr(self, name) for name in self.LOGGED_FIELDS if getattr(self, name)})
        extra.update(self.additional_context)
        return extra
