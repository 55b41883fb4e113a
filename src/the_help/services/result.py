"""Result — the outcome container of one service invocation.

INVARIANT: A Result starts pending and transitions at most once, to
success or error. After that it is frozen.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from the_help.domain.lifecycle import RESULT_TRANSITIONS, ResultStatus, is_valid_transition
from the_help.errors import FrozenResultError, NoResultError, ResultError


class Result:
    """Pending, success or error outcome of a service call.

    Usage::

        def main(self) -> None:
            if self.denominator == 0:
                self.result.error("div by zero")
            else:
                self.result.success(self.numerator / self.denominator)

    Attributes:
        status: Current :class:`ResultStatus`.
        value: Success payload or error value; None while pending.
    """

    __slots__ = ("_status", "_value")

    def __init__(self) -> None:
        self._status = ResultStatus.PENDING
        self._value: Any = None

    @property
    def status(self) -> ResultStatus:
        return self._status

    @property
    def value(self) -> Any:
        return self._value

    @property
    def is_pending(self) -> bool:
        return self._status is ResultStatus.PENDING

    @property
    def is_success(self) -> bool:
        return self._status is ResultStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self._status is ResultStatus.ERROR

    @property
    def is_final(self) -> bool:
        return not self.is_pending

    def success(self, value: Any = None) -> Result:
        """Record a successful outcome and freeze the result."""
        self._transition(ResultStatus.SUCCESS, value)
        return self

    def error(self, value: Any) -> Result:
        """Record an error outcome and freeze the result.

        *value* may be plain diagnostic data or an exception instance.
        """
        self._transition(ResultStatus.ERROR, value)
        return self

    def error_from(self, block: Callable[[], Any]) -> Result:
        """Record an error derived from running *block*.

        If *block* raises, the exception itself becomes the error value and
        keeps its traceback, so :meth:`unwrap` re-raises it from where it
        originated. If it returns, the return value is the error value.
        """
        self._ensure_pending(ResultStatus.ERROR)
        try:
            value = block()
        except Exception as exc:
            value = exc
        return self.error(value)

    def unwrap(self) -> Any:
        """Return the success value, or raise.

        Raises:
            NoResultError: The result is still pending.
            ResultError: The error value is plain data.
            BaseException: The error value itself, when it is an exception.
        """
        if self.is_pending:
            msg = "Result is still pending"
            raise NoResultError(msg)
        if self.is_error:
            if isinstance(self._value, BaseException):
                raise self._value
            raise ResultError(self._value)
        return self._value

    def _ensure_pending(self, target: ResultStatus) -> None:
        if not is_valid_transition(self._status, target, RESULT_TRANSITIONS):
            msg = f"Result is already {self._status}; cannot record {target}"
            raise FrozenResultError(msg)

    def _transition(self, target: ResultStatus, value: Any) -> None:
        self._ensure_pending(target)
        self._value = value
        self._status = target

    def __repr__(self) -> str:
        return f"Result(status={self._status.value!r}, value={self._value!r})"
