"""Exception taxonomy for the_help.

Structural failures (bad definitions, missing inputs, denied access,
contract violations) are exceptions raised synchronously to the caller.
Business-level outcomes never use these; they live in a
:class:`~the_help.services.result.Result`.
"""

from __future__ import annotations

from typing import Any


class TheHelpError(Exception):
    """Base class for every error raised by the_help."""


class ServiceDefinitionError(TheHelpError):
    """A service or callback declaration is invalid."""


class AbstractServiceError(TheHelpError):
    """An abstract service type was called directly."""


class ServiceNotImplementedError(TheHelpError, NotImplementedError):
    """A service type never bound a main routine."""


class MissingInputError(TheHelpError, TypeError):
    """A required input was not supplied at construction."""

    def __init__(self, message: str, *, input_name: str) -> None:
        super().__init__(message)
        self.input_name = input_name


class UnknownInputError(TheHelpError, TypeError):
    """An input that the service type never declared was supplied."""

    def __init__(self, message: str, *, input_name: str) -> None:
        super().__init__(message)
        self.input_name = input_name


class NotAuthorizedError(TheHelpError):
    """The context is not allowed to run the service."""

    def __init__(self, message: str, *, service: type | None = None, context: Any = None) -> None:
        super().__init__(message)
        self.service = service
        self.context = context


class NoResultError(TheHelpError):
    """A result was required but is still pending."""


class ResultError(TheHelpError):
    """An error result whose value is plain data rather than an exception."""

    def __init__(self, value: Any) -> None:
        super().__init__(str(value))
        self.value = value


class FrozenResultError(TheHelpError):
    """A finalized result was mutated."""


class CallbackNotDefinedError(TheHelpError, LookupError):
    """A callback name was never registered on the type or its ancestors."""


class StopSignal(BaseException):  # noqa: N818
    """Early-termination signal raised by ``Service.stop()``.

    Derives from BaseException so ``except Exception`` blocks inside a
    main routine do not swallow it. The innermost active service call
    catches it, unless *target* names an enclosing call: then it unwinds
    every call in between and is caught by the target.
    """

    def __init__(self, origin: Any, *, target: Any = None) -> None:
        super().__init__(origin)
        self.origin = origin
        self.target = target
