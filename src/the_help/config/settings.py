"""Unified settings — keyword overrides, env vars, code defaults.

Priority chain (highest to lowest):
  1. Init kwargs  — passed to :func:`~the_help.config.runtime.configure`
  2. Env vars     — ``THE_HELP_*`` prefix
  3. Code defaults
"""

from __future__ import annotations

from typing import Any

from pydantic_settings import BaseSettings


class HelpSettings(BaseSettings):
    """Process-wide settings for the_help.

    Attributes:
        verbose: Log framework messages at DEBUG level.
        log_json: Render log lines as JSON.
        telemetry: Build per-call timing spans.
        load_plugins: Load entry-point plugins when configuring.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "THE_HELP_",
    }

    verbose: bool = False
    log_json: bool = False
    telemetry: bool = False
    load_plugins: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> HelpSettings:
        """Settings from ``THE_HELP_*`` env vars, with *overrides* taking priority."""
        return cls(**overrides)
