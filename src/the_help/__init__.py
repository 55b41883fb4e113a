"""the_help — a lightweight in-process service-invocation framework.

Services declare inputs, an authorization predicate and a main routine,
and produce a :class:`Result`. Objects hand named callbacks to their
collaborators through :class:`ProvidesCallbacks`, and call services with
ambient context through :class:`ServiceCaller`.
"""

from the_help.errors import (
    AbstractServiceError,
    CallbackNotDefinedError,
    FrozenResultError,
    MissingInputError,
    NoResultError,
    NotAuthorizedError,
    ResultError,
    ServiceDefinitionError,
    ServiceNotImplementedError,
    StopSignal,
    TheHelpError,
    UnknownInputError,
)
from the_help.services.base import Service, define_service, raise_not_authorized
from the_help.services.callbacks import CallbackHandle, CallbackRegistry, ProvidesCallbacks, callback
from the_help.services.caller import ServiceCaller
from the_help.services.definition import Input, ServiceDefinition
from the_help.services.result import Result

__version__ = "1.0.0"

__all__ = [
    "AbstractServiceError",
    "CallbackHandle",
    "CallbackNotDefinedError",
    "CallbackRegistry",
    "FrozenResultError",
    "Input",
    "MissingInputError",
    "NoResultError",
    "NotAuthorizedError",
    "ProvidesCallbacks",
    "Result",
    "ResultError",
    "Service",
    "ServiceCaller",
    "ServiceDefinition",
    "ServiceDefinitionError",
    "ServiceNotImplementedError",
    "StopSignal",
    "TheHelpError",
    "UnknownInputError",
    "__version__",
    "callback",
    "define_service",
    "raise_not_authorized",
]
