"""
Logging configuration and setup for the relay.

Plain text formatting on every handler; the formatter decodes Unicode escape
sequences so that upstream error bodies stay readable in the logs.
"""

import json
import logging
import os
import re


LOGGER_NAME = "fixed-content-relay"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

_UNICODE_ESCAPE = re.compile(r'\\u([0-9a-fA-F]{4})')


def decode_unicode_escapes(text: str) -> str:
    """
    Turn ``\\uXXXX`` sequences back into characters.

    A whole JSON object is re-serialized with ``ensure_ascii=False``; any
    other text gets the escapes substituted in place.
    """
    if not text or '\\u' not in text:
        return text

    stripped = text.strip()
    if stripped.startswith('{') and stripped.endswith('}'):
        try:
            decoded = json.loads(stripped)
        except ValueError:
            decoded = None
        if isinstance(decoded, dict):
            return json.dumps(decoded, ensure_ascii=False)

    return _UNICODE_ESCAPE.sub(lambda match: chr(int(match.group(1), 16)), text)


class UnicodeFormatter(logging.Formatter):
    """Formatter that keeps non-ASCII upstream payloads readable."""

    def format(self, record):
        return decode_unicode_escapes(super().format(record))


def _make_handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setFormatter(UnicodeFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.setLevel(level)
    return handler


def setup_logging():
    """
    Единая настройка логирования для всего проекта.

    LOG_LEVEL selects the level (INFO by default), LOG_DIR the directory of
    ``app.log`` and, at DEBUG, ``debug.log``.

    Returns:
        logging.Logger: Configured logger instance
    """
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    debug = log_level == "DEBUG"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level, logging.INFO))
    logger.handlers.clear()

    log_dir = os.environ.get("LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    logger.addHandler(_make_handler(logging.FileHandler(os.path.join(log_dir, "app.log")), logging.INFO))
    if debug:
        logger.addHandler(_make_handler(logging.FileHandler(os.path.join(log_dir, "debug.log")), logging.DEBUG))
    logger.addHandler(_make_handler(logging.StreamHandler(), logging.DEBUG if debug else logging.INFO))

    return logger
