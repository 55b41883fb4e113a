"""ServiceCaller — convenience for invoking services with ambient context.

The including class MUST provide ``service_context`` and ``service_logger``,
which become the called service's ``context`` and ``logger`` arguments.

Usage::

    class Checkout(ServiceCaller):
        def __init__(self, user, logger):
            self.service_context = user
            self.service_logger = logger

        def pay(self, amount):
            return self.call_service(ChargeCard, amount=amount)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from the_help.services._helpers import describe

if TYPE_CHECKING:
    from the_help.services.base import Service


class ServiceCaller:
    """Mixin: call services on behalf of this object."""

    service_context: Any
    service_logger: Any

    def call_service(
        self,
        service: type[Service],
        result_handler: Callable[[Any], Any] | None = None,
        /,
        **inputs: Any,
    ) -> Any:
        """Call *service* with this object's context and logger.

        Explicit ``context``/``logger`` keyword arguments override the
        ambient ones. Returns whatever ``service.call`` returns: the Result,
        or the value of *result_handler* when one is given.
        """
        service_args = {
            "context": self.service_context,
            "logger": self.service_logger,
            **inputs,
        }
        self.service_logger.debug(f"{describe(self)} called service {service.__name__}")
        return service.call(result_handler, **service_args)

    def call_service_value(self, service: type[Service], /, **inputs: Any) -> Any:
        """Call *service* and unwrap its result, raising on an error result."""
        return self.call_service(service, **inputs).unwrap()
