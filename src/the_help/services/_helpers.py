"""Shared service-layer helper functions."""

from __future__ import annotations

from typing import Any


def describe(obj: Any) -> str:
    """Instance description used in log lines: ``TypeName/<id>``.

    Examples:
        >>> class Foo: ...
        >>> describe(Foo()).startswith("Foo/")
        True
    """
    return f"{type(obj).__name__}/{id(obj)}"


def display_context(context: Any) -> str:
    """Display form of a caller-supplied context."""
    return repr(context)
