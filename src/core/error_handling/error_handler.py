"""
Main Error Handler

Builds RelayError instances with proper logging. ``wrap_error`` is the single
place where internal failures get their short error code and HTTP status.
"""

from typing import Optional, Dict, Any

from .error_types import ErrorType, ErrorContext
from .error_logger import ErrorLogger
from ..exceptions import RelayError


class ErrorHandler:
    """Centralized error handling utility."""

    @staticmethod
    def create_relay_error(
        error_type: ErrorType,
        context: Optional[ErrorContext] = None,
        original_exception: Optional[Exception] = None,
        log_error: bool = True,
        **format_kwargs
    ) -> RelayError:
        """
        Build a RelayError for ``error_type`` and log it.

        The message template is filled from the context attributes plus
        ``format_kwargs``; the latter win on conflicts.
        """
        context = context or ErrorContext()
        detail = error_type.create_error_detail(**{**vars(context), **format_kwargs})

        if log_error:
            ErrorLogger.log_error(
                error_type=error_type,
                context=context,
                original_exception=original_exception,
                additional_data={"error_detail": detail},
                message=detail["error"]["message"]
            )

        return RelayError(error_type.status_code, detail, original_exception=original_exception)

    @staticmethod
    def wrap_error(
        original_exception: Exception,
        error_type: ErrorType,
        context: Optional[ErrorContext] = None
    ) -> RelayError:
        """Wrap an internal failure; the message is the original exception text."""
        return ErrorHandler.create_relay_error(
            error_type,
            context,
            original_exception,
            error_details=str(original_exception)
        )

    @staticmethod
    def handle_upstream_error(
        error_payload: Dict[str, Any],
        status_code: int,
        context: Optional[ErrorContext] = None
    ) -> RelayError:
        """Surface an upstream-reported error verbatim with the upstream status code."""
        ErrorLogger.log_upstream_error(error_payload, status_code, context or ErrorContext())
        return RelayError(status_code, {"error": error_payload})

    @staticmethod
    def handle_invalid_request(error_details: str, context: ErrorContext) -> RelayError:
        return ErrorHandler.create_relay_error(
            ErrorType.INVALID_REQUEST_FORMAT, context, error_details=error_details
        )

    @staticmethod
    def handle_provider_network_error(original_exception: Exception, context: ErrorContext) -> RelayError:
        """Upstream could not be reached (connect error, timeout, ...)."""
        return ErrorHandler.wrap_error(original_exception, ErrorType.PROVIDER_NETWORK_ERROR, context)

    @staticmethod
    def handle_internal_server_error(
        error_details: str,
        context: ErrorContext,
        original_exception: Optional[Exception] = None
    ) -> RelayError:
        return ErrorHandler.create_relay_error(
            ErrorType.INTERNAL_SERVER_ERROR, context, original_exception, error_details=error_details
        )
