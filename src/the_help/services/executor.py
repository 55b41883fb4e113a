"""ServiceExecutor — runs one service instance through its call lifecycle.

validating -> authorizing -> running -> finalizing -> completed, with
failed reachable from every working state. Each call is a stop boundary:
a :class:`~the_help.errors.StopSignal` raised anywhere below it, and not
caught by a nested call first, ends this call's main routine. A stop
forwarded with a target passes through intermediate calls (which end
failed) until it reaches the target.

INVARIANT: A call never completes with a pending result.
"""

from __future__ import annotations

from collections.abc import Callable
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from the_help.config.logging import call_log_context
from the_help.domain.lifecycle import CALL_TRANSITIONS, CallState, is_terminal, is_valid_transition
from the_help.errors import (
    AbstractServiceError,
    NoResultError,
    NotAuthorizedError,
    ServiceNotImplementedError,
    StopSignal,
)
from the_help.plugins.manager import PluginManager, get_plugin_manager
from the_help.services._helpers import describe, display_context
from the_help.services.definition import get_definition
from the_help.services.telemetry import trace_span

if TYPE_CHECKING:
    from the_help.services.base import Service

# Services whose call() is currently on the stack, outermost first.
_active_calls: ContextVar[tuple[Any, ...]] = ContextVar("_active_calls", default=())


def active_services() -> tuple[Any, ...]:
    """Services currently executing in this context, outermost first."""
    return _active_calls.get()


def _is_active(service: Any) -> bool:
    return any(call is service for call in _active_calls.get())


class ServiceExecutor:
    """Execute a single service instance.

    Parameters:
        service: A freshly constructed service instance.
        plugin_manager: Receives lifecycle hooks; defaults to the process-wide manager.
    """

    def __init__(self, service: Service, *, plugin_manager: PluginManager | None = None) -> None:
        self._service = service
        self._definition = get_definition(type(service))
        self._plugins = plugin_manager if plugin_manager is not None else get_plugin_manager()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute(self, result_handler: Callable[[Any], Any] | None = None) -> Any:
        """Run the call and return its Result, or ``result_handler(result)``."""
        service = self._service
        self._advance(CallState.VALIDATING)

        token = _active_calls.set((*_active_calls.get(), service))
        try:
            with call_log_context(
                service=self._definition.name,
                invocation_id=service.invocation_id,
                call_depth=len(_active_calls.get()),
            ):
                self._validate()
                with trace_span(self._definition.name) as span:
                    service.span = span
                    stopped = self._run()
                    self._advance(CallState.FINALIZING)
                    self._finalize()
                    if span is not None:
                        span.annotate("status", str(service.result.status))
                        span.annotate("stopped", stopped)
        except BaseException:
            self._advance(CallState.FAILED)
            raise
        finally:
            _active_calls.reset(token)

        self._advance(CallState.COMPLETED)
        self._plugins.dispatch(
            "service_finished",
            service_name=self._definition.name,
            invocation_id=service.invocation_id,
            status=str(service.result.status),
            stopped=stopped,
        )
        self._forward_stop()

        if result_handler is not None:
            return result_handler(service.result)
        return service.result

    # ------------------------------------------------------------------
    # Lifecycle steps
    # ------------------------------------------------------------------

    def _validate(self) -> None:
        name = self._definition.name
        if self._definition.abstract:
            msg = f"{name} is abstract and cannot be called directly"
            raise AbstractServiceError(msg)
        if not self._definition.is_implemented:
            msg = f"{name} does not define a main routine"
            raise ServiceNotImplementedError(msg)
        self._definition.check_required(self._service._inputs)

    def _run(self) -> bool:
        """Authorize and run main. Returns True if the call was stopped early."""
        service = self._service
        try:
            self._advance(CallState.AUTHORIZING)
            self._authorize()
            self._advance(CallState.RUNNING)
            service.logger.debug(
                f"Service call to {describe(service)} for {display_context(service.context)}"
            )
            self._plugins.dispatch(
                "service_started",
                service_name=self._definition.name,
                invocation_id=service.invocation_id,
                context=service.context,
            )
            self._definition.main(service)
        except StopSignal as signal:
            target = signal.target
            if target is not None and target is not service and _is_active(target):
                raise
            if signal.origin is not service:
                service.logger.debug(f"{describe(service)} stopped by {describe(signal.origin)}")
            return True
        return False

    def _authorize(self) -> None:
        """Run the authorization predicate; on denial, stop before main.

        A denied call whose not-authorized handler returns, instead of
        raising, and leaves the result pending ends with an error result
        holding an unraised NotAuthorizedError. Finalization therefore does
        not report NoResultError for denied calls.
        """
        service = self._service
        if self._definition.authorization(service):
            return

        context = service.context
        service.logger.warning(
            f"Unauthorized attempt to access {describe(service)} as {display_context(context)}"
        )
        self._plugins.dispatch(
            "service_unauthorized",
            service_name=self._definition.name,
            invocation_id=service.invocation_id,
            context=context,
        )
        service.not_authorized(service=type(service), context=context)
        if service.result.is_pending:
            msg = f"Not authorized to access {self._definition.name} as {display_context(context)}."
            service.result.error(NotAuthorizedError(msg, service=type(service), context=context))
        service.stop()

    def _forward_stop(self) -> None:
        """Pass a deferred stop on to an enclosing call.

        The target is the service recorded by ``run_callback``, or the
        direct caller for ``stop(stop_caller=True)``. Targets that are no
        longer running are dropped.
        """
        service = self._service
        callers = _active_calls.get()
        target = service._stop_target
        if target is None:
            if not service._stop_caller:
                return
            target = callers[-1] if callers else None
        if target is None or not _is_active(target):
            service.logger.debug(f"{describe(service)} has no calling service to stop")
            return
        service.logger.debug(f"{describe(service)} forwarding stop to {describe(target)}")
        raise StopSignal(service, target=target)

    def _finalize(self) -> None:
        if self._service.result.is_pending:
            msg = f"{describe(self._service)} finished without setting a result"
            raise NoResultError(msg)

    def _advance(self, target: CallState) -> None:
        service = self._service
        current = service.state
        if not is_valid_transition(current, target, CALL_TRANSITIONS):
            if is_terminal(current, CALL_TRANSITIONS):
                msg = f"{describe(service)} has already been called; service instances are single-use"
            else:
                msg = f"{describe(service)} cannot move from {current} to {target}"
            raise RuntimeError(msg)
        service.state = target
