"""Apply settings to the running process."""

from __future__ import annotations

import logging
from typing import Any

from the_help.config.logging import configure_logging
from the_help.config.settings import HelpSettings
from the_help.plugins.manager import get_plugin_manager
from the_help.services.telemetry import disable_telemetry, enable_telemetry

logger = logging.getLogger(__name__)


def configure(settings: HelpSettings | None = None, **overrides: Any) -> HelpSettings:
    """Configure logging, telemetry and plugins from *settings*.

    Without *settings*, they are read from the environment with
    *overrides* on top. Returns the settings that were applied.
    """
    if settings is None:
        settings = HelpSettings.from_env(**overrides)
    elif overrides:
        settings = settings.model_copy(update=overrides)

    configure_logging(verbose=settings.verbose, log_json=settings.log_json)

    if settings.telemetry:
        enable_telemetry()
    else:
        disable_telemetry()

    if settings.load_plugins:
        manager = get_plugin_manager()
        if not manager.is_loaded:
            names = manager.discover_and_load()
            logger.debug("Loaded plugins: %s", ", ".join(names) or "(none)")

    return settings
