"""
Error Logging Utility

Writes one structured record per relay error through the project logger.
"""

import json
import logging
from typing import Dict, Any, Optional

from .error_types import ErrorType, ErrorContext
from ..logging.config import LOGGER_NAME, decode_unicode_escapes


class ErrorLogger:
    """Единый логгер ошибок, использующий общую систему."""

    @staticmethod
    def _get_logger() -> logging.Logger:
        return logging.getLogger(LOGGER_NAME)

    @staticmethod
    def log_error(
        error_type: ErrorType,
        context: ErrorContext,
        original_exception: Optional[Exception] = None,
        additional_data: Optional[Dict[str, Any]] = None,
        message: Optional[str] = None
    ):
        """
        Log a relay error with its code, status and request context.

        ``message`` defaults to the error type's template filled from the context.
        """
        log_extra = {
            **context.to_log_extra(),
            "error_code": error_type.code,
            "http_status_code": error_type.status_code,
            **(additional_data or {})
        }
        if original_exception is not None:
            log_extra["original_exception_type"] = type(original_exception).__name__

        text = message or error_type.format_message(**context.__dict__)
        ErrorLogger._get_logger().error(
            f"{error_type.code}: {text}",
            extra=log_extra,
            exc_info=original_exception
        )

    @staticmethod
    def log_upstream_error(
        error_payload: Dict[str, Any],
        status_code: int,
        context: ErrorContext
    ):
        """Log an error the upstream reported in its response body."""
        details = decode_unicode_escapes(json.dumps(error_payload))

        ErrorLogger._get_logger().error(
            f"Upstream returned error {status_code}: {details}",
            extra={
                **context.to_log_extra(),
                "upstream_error_details": details,
                "upstream_status_code": status_code,
                "error_code": ErrorType.UPSTREAM_ERROR.code
            }
        )
