"""structlog configuration for the_help.

Framework messages go through stdlib loggers under ``the_help`` (and the
structlog default service logger) and are rendered by structlog, either as
console lines or as JSON objects, on stdout unless another stream is given.

While a service call is running, every line also carries the fields in
:data:`CALL_FIELDS`, bound by the executor through :func:`call_log_context`.
Nested calls rebind them and restore the caller's values on return.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TextIO

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

FRAMEWORK_LOGGER = "the_help"
CALL_FIELDS = ("service", "invocation_id", "call_depth")


@contextmanager
def call_log_context(*, service: str, invocation_id: int, call_depth: int) -> Iterator[None]:
    """Bind the running call's identity to every log line emitted inside."""
    with structlog.contextvars.bound_contextvars(
        service=service, invocation_id=invocation_id, call_depth=call_depth
    ):
        yield


def order_call_fields(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Put the call fields right after the event, in a fixed order."""
    event = event_dict.pop("event", None)
    fields = {name: event_dict.pop(name) for name in CALL_FIELDS if name in event_dict}
    return {"event": event, **fields, **event_dict}


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        order_call_fields,
    ]


def _renderer(*, log_json: bool, out: TextIO) -> Processor:
    if log_json:
        return structlog.processors.JSONRenderer()
    # Keep the order set by order_call_fields.
    return structlog.dev.ConsoleRenderer(colors=out.isatty(), sort_keys=False)


def _install_handler(handler: logging.Handler, *, verbose: bool) -> None:
    """Make *handler* the only root handler; only the_help gets DEBUG."""
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)
    logging.getLogger(FRAMEWORK_LOGGER).setLevel(logging.DEBUG if verbose else logging.WARNING)


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one handler.

    Safe to call repeatedly; each call replaces the previous handler.

    Args:
        verbose: DEBUG for ``the_help`` loggers (call start, callbacks,
            stop forwarding, spans). When False, only WARNING+.
        log_json: One JSON object per line instead of console lines.
        stream: Destination stream; defaults to ``sys.stdout``.
    """
    out = stream if stream is not None else sys.stdout
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(out)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(log_json=log_json, out=out),
            ],
        )
    )
    _install_handler(handler, verbose=verbose)
