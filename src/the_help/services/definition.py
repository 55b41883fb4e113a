"""ServiceDefinition — the per-type registration table.

Every service type owns exactly one frozen :class:`ServiceDefinition`,
stored in a registry keyed by the type itself. A subtype starts from a
snapshot of its parent's definition and extends it; nothing a subtype
declares leaks back into its ancestors.
"""

from __future__ import annotations

import weakref
from collections.abc import Callable, Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from the_help.errors import MissingInputError, ServiceDefinitionError


class _Unset:
    """Marker for an input declared without a default."""

    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

# Attributes a Service instance needs for itself.
RESERVED_NAMES: frozenset[str] = frozenset(
    {
        "authorized",
        "call",
        "call_service",
        "call_service_value",
        "callback",
        "callback_registry",
        "context",
        "declare_authorization",
        "declare_input",
        "declare_main",
        "define_callback",
        "find_callback",
        "invocation_id",
        "logger",
        "main",
        "not_authorized",
        "result",
        "run_callback",
        "service_context",
        "service_definition",
        "service_logger",
        "span",
        "state",
        "stop",
    }
)


def always_deny(service: Any) -> bool:
    """Default authorization predicate."""
    return False


def always_allow(service: Any) -> bool:
    """Authorization predicate bound by ``allow_all=True``."""
    return True


class InputDefault(BaseModel):
    """Lazily evaluated default for one input."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    value: Any = None
    factory: Callable[[], Any] | None = None

    def resolve(self) -> Any:
        if self.factory is not None:
            return self.factory()
        return self.value


class ServiceDefinition(BaseModel):
    """Declared metadata of one service type.

    Attributes:
        name: Display name of the service type.
        abstract: Whether the type may not be called directly.
        inputs: Every declared input name, in declaration order.
        required_inputs: Inputs with no default.
        input_defaults: Defaults for the optional inputs.
        authorization: Predicate ``(service) -> bool``; denies by default.
        main: The main routine, or None if never bound.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    abstract: bool = False
    inputs: tuple[str, ...] = ()
    required_inputs: frozenset[str] = frozenset()
    input_defaults: dict[str, InputDefault] = Field(default_factory=dict)
    authorization: Callable[[Any], bool] = always_deny
    main: Callable[[Any], Any] | None = None

    @property
    def is_implemented(self) -> bool:
        return self.main is not None

    # ------------------------------------------------------------------
    # Builders (each returns a new definition)
    # ------------------------------------------------------------------

    def derive(self, name: str, *, abstract: bool = False) -> ServiceDefinition:
        """Snapshot this definition for a subtype called *name*."""
        return self.model_copy(
            update={
                "name": name,
                "abstract": abstract,
                "input_defaults": dict(self.input_defaults),
            }
        )

    def with_input(
        self,
        name: str,
        default: Any = UNSET,
        *,
        default_factory: Callable[[], Any] | None = None,
    ) -> ServiceDefinition:
        """Declare an input; a default makes it optional, no default makes it required."""
        _check_input_name(name)
        if default is not UNSET and default_factory is not None:
            msg = f"Input {name!r} cannot have both a default and a default_factory"
            raise ServiceDefinitionError(msg)

        inputs = self.inputs if name in self.inputs else (*self.inputs, name)
        defaults = {k: v for k, v in self.input_defaults.items() if k != name}
        if default is UNSET and default_factory is None:
            required = self.required_inputs | {name}
        else:
            required = self.required_inputs - {name}
            defaults[name] = InputDefault(
                value=None if default is UNSET else default,
                factory=default_factory,
            )
        return self.model_copy(
            update={"inputs": inputs, "required_inputs": required, "input_defaults": defaults}
        )

    def with_authorization(
        self,
        *,
        allow_all: bool = False,
        predicate: Callable[[Any], bool] | None = None,
    ) -> ServiceDefinition:
        """Bind the authorization predicate."""
        if allow_all and predicate is not None:
            msg = f"{self.name}: use either allow_all=True or a predicate, not both"
            raise ServiceDefinitionError(msg)
        if not allow_all and predicate is None:
            msg = f"{self.name}: authorization requires allow_all=True or a predicate"
            raise ServiceDefinitionError(msg)
        bound = always_allow if allow_all else predicate
        return self.model_copy(update={"authorization": bound})

    def with_main(self, body: Callable[[Any], Any]) -> ServiceDefinition:
        """Bind the main routine for this type only."""
        if not callable(body):
            msg = f"{self.name}: main routine must be callable, got {body!r}"
            raise ServiceDefinitionError(msg)
        return self.model_copy(update={"main": body})

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def missing_inputs(self, supplied: Iterable[str]) -> list[str]:
        """Required inputs absent from *supplied*, sorted."""
        return sorted(self.required_inputs.difference(supplied))

    def unknown_inputs(self, supplied: Iterable[str]) -> list[str]:
        """Names in *supplied* that were never declared, sorted."""
        return sorted(set(supplied).difference(self.inputs))

    def check_required(self, supplied: Iterable[str]) -> None:
        """Raise MissingInputError for the first missing required input."""
        missing = self.missing_inputs(supplied)
        if missing:
            msg = f"Missing required input: {missing[0]}."
            raise MissingInputError(msg, input_name=missing[0])


def _check_input_name(name: str) -> None:
    if not name.isidentifier() or name.startswith("_"):
        msg = f"Invalid input name: {name!r}"
        raise ServiceDefinitionError(msg)
    if name in RESERVED_NAMES:
        msg = f"Input name {name!r} is reserved"
        raise ServiceDefinitionError(msg)


class Input:
    """Declare a service input in a class body.

    Usage::

        class Divide(Service, allow_all=True):
            numerator = Input()
            denominator = Input(default=1)

    Reading the attribute on an instance returns the supplied value, or the
    default of the instance's own type. Inputs are read-only.
    """

    __slots__ = ("default", "default_factory", "name")

    def __init__(
        self,
        default: Any = UNSET,
        *,
        default_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.default = default
        self.default_factory = default_factory
        self.name = ""

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance._input_value(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        msg = f"Input {self.name!r} is read-only"
        raise AttributeError(msg)

    def __repr__(self) -> str:
        return f"Input(name={self.name!r}, default={self.default!r})"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_DEFINITIONS: weakref.WeakKeyDictionary[type, ServiceDefinition] = weakref.WeakKeyDictionary()


def register_definition(service_type: type, definition: ServiceDefinition) -> None:
    """Bind *definition* to *service_type*, replacing any previous one."""
    _DEFINITIONS[service_type] = definition


def get_definition(service_type: type) -> ServiceDefinition:
    """Return the definition bound to *service_type*."""
    try:
        return _DEFINITIONS[service_type]
    except KeyError:
        msg = f"{service_type.__name__} is not a registered service type"
        raise ServiceDefinitionError(msg) from None


def parent_definition(service_type: type) -> ServiceDefinition:
    """Definition of the nearest registered ancestor of *service_type*."""
    for base in service_type.__mro__[1:]:
        definition = _DEFINITIONS.get(base)
        if definition is not None:
            return definition
    msg = f"{service_type.__name__} has no registered ancestor"
    raise ServiceDefinitionError(msg)
