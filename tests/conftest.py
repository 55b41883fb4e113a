"""Shared pytest fixtures and test helpers for the_help tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from typing import Any
from unittest.mock import Mock

import pytest

from the_help.services.telemetry import _current_span, disable_telemetry


@pytest.fixture
def logger() -> Mock:
    """Leveled logger double; assertions inspect its debug/warning calls."""
    return Mock(spec=logging.Logger)


@pytest.fixture
def context() -> Mock:
    """Opaque authorization context."""
    return Mock(name="authorization_context")


@pytest.fixture
def collaborator() -> Mock:
    """Object a main routine talks to, so tests can observe whether it ran."""
    return Mock(name="collaborator")


@pytest.fixture(autouse=True)
def _reset_telemetry_state() -> Generator[None]:
    """Ensure clean telemetry state for every test."""
    yield
    disable_telemetry()
    _current_span.set(None)


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def messages(log_method: Mock) -> list[Any]:
    """First positional argument of every call to a mocked log method."""
    return [c.args[0] for c in log_method.call_args_list]
