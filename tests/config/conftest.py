"""Fixtures for configuration tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore root logger and structlog state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    help_logger = logging.getLogger("the_help")
    help_level = help_logger.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    help_logger.setLevel(help_level)
    structlog.reset_defaults()
