"""
Pytest configuration and fixtures for the relay test suite.
"""

import os

import pytest

os.environ.setdefault("LOG_DIR", os.path.join(os.path.dirname(__file__), ".logs"))

from tests.helpers import RecordingWriter, TEST_ID, TEST_TIMESTAMP


@pytest.fixture
def id_factory():
    return lambda: TEST_ID


@pytest.fixture
def clock():
    return lambda: TEST_TIMESTAMP


@pytest.fixture
def word_counter():
    """Deterministic stand-in for the tokenizer: one token per whitespace-separated word."""
    return lambda text, model: len(text.split())


@pytest.fixture
def writer() -> RecordingWriter:
    return RecordingWriter()
