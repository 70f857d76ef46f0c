"""
Small Logger facade used across the relay.

Keyword arguments passed to the logging methods end up in the record's
``extra`` so handlers and tests can inspect request context.
"""

import json
import logging
from typing import Any

from .config import setup_logging


class Logger:
    """
    Thin wrapper over the project logger.

    Keeps call sites short and gives DEBUG-only payload dumps through
    ``debug_data``.
    """

    def __init__(self):
        self._logger = setup_logging()

    def is_debug_enabled(self) -> bool:
        return self._logger.isEnabledFor(logging.DEBUG)

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        self._logger.log(level, message, extra=kwargs or None, exc_info=exc_info)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = True, **kwargs):
        """Errors carry the active traceback unless ``exc_info=False``."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    @staticmethod
    def _summary(head: str, fields: dict, templates: dict) -> str:
        # Краткая строка вида "Request: X | model=... | mode=..."
        parts = [head]
        for key, template in templates.items():
            if key in fields:
                parts.append(template.format(fields[key]))
        return " | ".join(parts)

    def request(self, operation: str, request_id: str, **kwargs):
        message = self._summary(f"Request: {operation}", kwargs, {"model_id": "model={}", "relay_mode": "mode={}"})
        self.info(message, request_id=request_id, **kwargs)

    def response(self, operation: str, request_id: str, status_code: int = 200, **kwargs):
        message = self._summary(f"Response: {operation} | status={status_code}", kwargs, {"processing_time_ms": "time={}ms"})
        self.info(message, request_id=request_id, status_code=status_code, **kwargs)

    def debug_data(self, title: str, data: Any, request_id: str, **kwargs):
        """Dump a payload in full, only when LOG_LEVEL=DEBUG."""
        if not self.is_debug_enabled():
            return

        data_str = json.dumps(data, indent=2, ensure_ascii=False) if isinstance(data, dict) else str(data)
        message = self._summary(f"DEBUG: {title}", kwargs, {"component": "component={}", "data_flow": "flow={}"})
        self.debug(f"{message}\n{data_str}", request_id=request_id, **kwargs)
