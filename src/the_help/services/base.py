"""Service — abstract foundation for every service type.

A service declares its inputs, an authorization predicate and a main
routine in its class body. ``__init_subclass__`` turns those declarations
into the type's :class:`~the_help.services.definition.ServiceDefinition`.

Usage::

    class Divide(Service, allow_all=True):
        numerator = Input()
        denominator = Input()

        def main(self) -> None:
            if self.denominator == 0:
                self.result.error("div by zero")
            else:
                self.result.success(self.numerator / self.denominator)

    Divide.call(context={}, numerator=10, denominator=2).value  # 5.0
"""

from __future__ import annotations

import types
from collections.abc import Callable, Iterable, Mapping
from typing import Any, NoReturn

import structlog

from the_help.domain.lifecycle import CallState
from the_help.errors import NotAuthorizedError, ServiceDefinitionError, StopSignal, UnknownInputError
from the_help.services._helpers import describe, display_context
from the_help.services.callbacks import CallbackHandle, ProvidesCallbacks, callback
from the_help.services.caller import ServiceCaller
from the_help.services.definition import (
    UNSET,
    Input,
    ServiceDefinition,
    get_definition,
    parent_definition,
    register_definition,
)
from the_help.services.executor import ServiceExecutor
from the_help.services.result import Result
from the_help.services.telemetry import Span

DEFAULT_LOGGER_NAME = "the_help.services"


def raise_not_authorized(*, service: type, context: Any) -> NoReturn:
    """Default not-authorized handler."""
    msg = f"Not authorized to access {service.__name__} as {display_context(context)}."
    raise NotAuthorizedError(msg, service=service, context=context)


def default_logger() -> Any:
    """Logger used when a service is constructed without one (stdout by default)."""
    return structlog.get_logger(DEFAULT_LOGGER_NAME)


class Service(ProvidesCallbacks, ServiceCaller):
    """Abstract base for all services.

    Class keywords:
        allow_all: Bind an authorization predicate that always allows.
        abstract: Mark an intermediate base that cannot be called directly.

    Instances are single-use: construct, call once, discard.
    """

    # --- Per-instance state (set in __init__) ---
    context: Any
    logger: Any
    not_authorized: Callable[..., Any]
    result: Result
    state: CallState
    invocation_id: int
    span: Span | None

    def __init_subclass__(cls, *, allow_all: bool = False, abstract: bool = False, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        definition = parent_definition(cls).derive(cls.__name__, abstract=abstract)

        for attr, value in cls.__dict__.items():
            if isinstance(value, Input):
                definition = definition.with_input(
                    attr, value.default, default_factory=value.default_factory
                )

        predicate = cls.__dict__.get("authorized")
        if predicate is not None:
            if allow_all:
                msg = f"{cls.__name__}: use either allow_all=True or an authorized() method, not both"
                raise ServiceDefinitionError(msg)
            definition = definition.with_authorization(predicate=predicate)
        elif allow_all:
            definition = definition.with_authorization(allow_all=True)

        main = cls.__dict__.get("main")
        if main is not None:
            definition = definition.with_main(main)

        register_definition(cls, definition)

    # ------------------------------------------------------------------
    # Programmatic declarations
    # ------------------------------------------------------------------

    @classmethod
    def service_definition(cls) -> ServiceDefinition:
        return get_definition(cls)

    @classmethod
    def declare_input(
        cls,
        name: str,
        default: Any = UNSET,
        *,
        default_factory: Callable[[], Any] | None = None,
    ) -> None:
        """Declare an input after the class body has run."""
        definition = get_definition(cls).with_input(name, default, default_factory=default_factory)
        descriptor = Input(default, default_factory=default_factory)
        descriptor.__set_name__(cls, name)
        setattr(cls, name, descriptor)
        register_definition(cls, definition)

    @classmethod
    def declare_authorization(
        cls,
        *,
        allow_all: bool = False,
        predicate: Callable[[Any], bool] | None = None,
    ) -> None:
        """Bind the authorization predicate for this type only."""
        definition = get_definition(cls).with_authorization(allow_all=allow_all, predicate=predicate)
        register_definition(cls, definition)

    @classmethod
    def declare_main(cls, body: Callable[[Any], Any]) -> None:
        """Bind the main routine for this type only.

        The routine is also installed as ``main`` so subclasses can reach it
        through ``super().main()``.
        """
        definition = get_definition(cls).with_main(body)
        cls.main = body  # type: ignore[attr-defined]
        register_definition(cls, definition)

    # ------------------------------------------------------------------
    # Construction and invocation
    # ------------------------------------------------------------------

    def __init__(
        self,
        *,
        context: Any,
        logger: Any = None,
        not_authorized: Callable[..., Any] | None = None,
        **inputs: Any,
    ) -> None:
        definition = get_definition(type(self))
        definition.check_required(inputs)
        unknown = definition.unknown_inputs(inputs)
        if unknown:
            msg = f"{definition.name} does not declare an input called {unknown[0]!r}"
            raise UnknownInputError(msg, input_name=unknown[0])

        self.context = context
        self.logger = logger if logger is not None else default_logger()
        self.not_authorized = not_authorized if not_authorized is not None else raise_not_authorized
        self.result = Result()
        self.state = CallState.CREATED
        self.invocation_id = id(self)
        self.span = None
        self._inputs: dict[str, Any] = dict(inputs)
        self._stop_caller = False
        self._stop_target: Any = None

    @classmethod
    def call(cls, result_handler: Callable[[Result], Any] | None = None, /, **kwargs: Any) -> Any:
        """Construct an instance from *kwargs* and call it."""
        return cls(**kwargs)(result_handler)

    def __call__(self, result_handler: Callable[[Result], Any] | None = None) -> Any:
        """Run the service once.

        Returns the final Result, or ``result_handler(result)`` if given.
        """
        return ServiceExecutor(self).execute(result_handler)

    # ------------------------------------------------------------------
    # Available to main routines and callbacks
    # ------------------------------------------------------------------

    def stop(self, *, stop_caller: bool = False) -> NoReturn:
        """End the innermost running service call immediately.

        With *stop_caller*, this call additionally stops its calling service
        once it has finished.
        """
        if stop_caller:
            self._stop_caller = True
        raise StopSignal(self)

    def run_callback(self, handle: CallbackHandle, *args: Any, **kwargs: Any) -> None:
        """Invoke a callback received from a collaborator.

        A stop raised inside the callback does not end this service's main
        routine. It is recorded instead, and once this call has finished
        the stop is forwarded to the service that raised it (normally the
        callback's provider), unwinding any calls in between.
        """
        try:
            handle(*args, **kwargs)
        except StopSignal as signal:
            self.logger.debug(f"{describe(self)} deferred stop from {describe(signal.origin)}")
            self._stop_target = signal.origin

    @property
    def service_context(self) -> Any:
        return self.context

    @property
    def service_logger(self) -> Any:
        return self.logger

    def _input_value(self, name: str) -> Any:
        if name in self._inputs:
            return self._inputs[name]
        default = get_definition(type(self)).input_defaults.get(name)
        if default is None:
            msg = f"{type(self).__name__} has no value for input {name!r}"
            raise AttributeError(msg)
        value = default.resolve()
        self._inputs[name] = value
        return value

    def __repr__(self) -> str:
        return f"<{describe(self)} state={self.state.value}>"


register_definition(Service, ServiceDefinition(name="Service", abstract=True))


def define_service(
    name: str,
    *,
    base: type[Service] = Service,
    inputs: Mapping[str, Input] | Iterable[str] = (),
    allow_all: bool = False,
    authorized: Callable[[Any], bool] | None = None,
    main: Callable[[Any], Any] | None = None,
    callbacks: Mapping[str, Callable[..., Any]] | None = None,
    abstract: bool = False,
) -> type[Service]:
    """Build a named service type from declared members.

    Equivalent to writing the class statement by hand::

        Divide = define_service(
            "Divide",
            inputs=["numerator", "denominator"],
            allow_all=True,
            main=divide_main,
        )
    """
    namespace: dict[str, Any] = {}
    if isinstance(inputs, Mapping):
        namespace.update(inputs)
    else:
        namespace.update({input_name: Input() for input_name in inputs})
    if authorized is not None:
        namespace["authorized"] = authorized
    if main is not None:
        namespace["main"] = main
    for callback_name, body in (callbacks or {}).items():
        namespace[callback_name] = callback(body)

    return types.new_class(
        name,
        (base,),
        {"allow_all": allow_all, "abstract": abstract},
        lambda ns: ns.update(namespace),
    )
