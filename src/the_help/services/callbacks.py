"""Callbacks — named re-entry points an object hands to its collaborators.

A class that derives from :class:`ProvidesCallbacks` registers callbacks
with the :func:`callback` decorator (or :meth:`ProvidesCallbacks.define_callback`).
The decorated function is removed from the class namespace, so the only
way in is a :class:`CallbackHandle` obtained from ``self.callback(name)``.

Usage::

    class Foo(ProvidesCallbacks):
        def do_something(self) -> None:
            self.collaborator.do_some_other_thing(when_done=self.callback("it_was_done"))

        @callback
        def it_was_done(self, some_arg: str) -> None:
            print(f"Yay! {some_arg}")

Every invocation through a handle is logged at debug level on the owner's
``logger`` attribute (when it has one).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any, ClassVar, Self

from the_help.errors import CallbackNotDefinedError, ServiceDefinitionError
from the_help.plugins.manager import get_plugin_manager
from the_help.services._helpers import describe

logger = logging.getLogger(__name__)


class _CallbackDeclaration:
    """Class-body marker produced by :func:`callback`."""

    __slots__ = ("body",)

    def __init__(self, body: Callable[..., Any]) -> None:
        self.body = body


def callback(body: Callable[..., Any]) -> Any:
    """Register the decorated method as a callback of its class."""
    return _CallbackDeclaration(body)


class CallbackRegistry:
    """Named callback implementations of one class.

    Filled while the class is being defined and by
    :meth:`ProvidesCallbacks.define_callback` afterwards. Holds only the
    class's own callbacks; inherited ones are found through the MRO.
    """

    __slots__ = ("_callbacks",)

    def __init__(self, callbacks: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._callbacks: dict[str, Callable[..., Any]] = dict(callbacks or {})

    def update(self, other: CallbackRegistry) -> None:
        self._callbacks.update(other._callbacks)

    def register(self, name: str, body: Callable[..., Any]) -> None:
        if not name.isidentifier():
            msg = f"Invalid callback name: {name!r}"
            raise ServiceDefinitionError(msg)
        if not callable(body):
            msg = f"Callback {name!r} must be callable, got {body!r}"
            raise ServiceDefinitionError(msg)
        self._callbacks[name] = body

    def get(self, name: str, owner: type | None = None) -> Callable[..., Any]:
        try:
            return self._callbacks[name]
        except KeyError:
            where = f" on {owner.__name__}" if owner is not None else ""
            msg = f"Callback {name!r} is not defined{where}"
            raise CallbackNotDefinedError(msg) from None

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self._callbacks)

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks

    def __iter__(self) -> Iterator[str]:
        return iter(self._callbacks)

    def __len__(self) -> int:
        return len(self._callbacks)


class CallbackHandle:
    """Invocable reference to one callback of one object.

    Calling the handle logs the receipt, forwards every argument to the
    implementation and returns the owner, so calls can be chained.
    """

    __slots__ = ("name", "owner")

    def __init__(self, owner: Any, name: str) -> None:
        self.owner = owner
        self.name = name

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        owner = self.owner
        body = type(owner).find_callback(self.name)
        log = getattr(owner, "logger", None) or logger
        log.debug(f"{describe(owner)} received callback {self.name!r}.")
        get_plugin_manager().dispatch(
            "callback_received",
            owner_name=type(owner).__name__,
            callback_name=self.name,
        )
        body(owner, *args, **kwargs)
        return owner

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallbackHandle):
            return NotImplemented
        return self.owner is other.owner and self.name == other.name

    def __hash__(self) -> int:
        return hash((id(self.owner), self.name))

    def __repr__(self) -> str:
        return f"<CallbackHandle {describe(self.owner)}:{self.name}>"


class ProvidesCallbacks:
    """Mixin giving a class a callback registry and ``callback(name)``.

    Each class holds only the callbacks registered on it. Lookups walk the
    MRO when a callback is requested, so a subclass sees every callback its
    ancestors register, including ones added after the subclass was defined.
    """

    _callback_registry: ClassVar[CallbackRegistry] = CallbackRegistry()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        registry = CallbackRegistry()
        for attr, value in list(cls.__dict__.items()):
            if isinstance(value, _CallbackDeclaration):
                registry.register(attr, value.body)
                delattr(cls, attr)
        cls._callback_registry = registry

    @classmethod
    def define_callback(cls, name: str, body: Callable[..., Any] | None = None) -> type[Self]:
        """Register a callback after the class body has run.

        With *body*, binds it as the implementation. Without, the existing
        method called *name* is wrapped and hidden from the class.
        """
        if body is None:
            body = getattr(cls, name, None)
            if body is None or not callable(body):
                msg = f"{cls.__name__} has no method {name!r} to register as a callback"
                raise ServiceDefinitionError(msg)
            if name in cls.__dict__:
                delattr(cls, name)
        cls._callback_registry.register(name, body)
        return cls

    @classmethod
    def callback_registry(cls) -> CallbackRegistry:
        """Every callback visible on this class; nearer classes win."""
        merged = CallbackRegistry()
        for klass in reversed(cls.__mro__):
            own = klass.__dict__.get("_callback_registry")
            if own is not None:
                merged.update(own)
        return merged

    @classmethod
    def find_callback(cls, name: str) -> Callable[..., Any]:
        """Implementation of *name*, from this class or the nearest ancestor."""
        for klass in cls.__mro__:
            own = klass.__dict__.get("_callback_registry")
            if own is not None and name in own:
                return own.get(name)
        msg = f"Callback {name!r} is not defined on {cls.__name__}"
        raise CallbackNotDefinedError(msg)

    def callback(self, name: str) -> CallbackHandle:
        """Return a handle to the callback called *name*.

        Raises:
            CallbackNotDefinedError: *name* was never registered.
        """
        type(self).find_callback(name)
        return CallbackHandle(self, name)
