"""Pluggy hook specifications for service lifecycle events.

Hooks are observers only: their return values are ignored and they
cannot change the outcome of a service call.
"""

from __future__ import annotations

from typing import Any

import pluggy

PROJECT_NAME = "the_help"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class ServiceHookSpec:
    """Hook specifications for the the_help plugin system."""

    @hookspec
    def service_started(
        self,
        service_name: str,
        invocation_id: int,
        context: Any,
    ) -> None:
        """Called after authorization succeeds, before the main routine runs."""

    @hookspec
    def service_unauthorized(
        self,
        service_name: str,
        invocation_id: int,
        context: Any,
    ) -> None:
        """Called when authorization is denied, before the not-authorized handler."""

    @hookspec
    def service_finished(
        self,
        service_name: str,
        invocation_id: int,
        status: str,
        stopped: bool,
    ) -> None:
        """Called once a call has finalized its result."""

    @hookspec
    def callback_received(
        self,
        owner_name: str,
        callback_name: str,
    ) -> None:
        """Called whenever a callback handle is invoked."""
