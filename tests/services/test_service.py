"""Tests for Service declarations and the call lifecycle."""

from __future__ import annotations

from typing import Any
from unittest.mock import Mock

import pytest

from tests.conftest import messages
from the_help.domain.lifecycle import CallState
from the_help.errors import (
    AbstractServiceError,
    MissingInputError,
    NoResultError,
    NotAuthorizedError,
    ServiceDefinitionError,
    ServiceNotImplementedError,
    UnknownInputError,
)
from the_help.services._helpers import describe
from the_help.services.base import Service, define_service
from the_help.services.definition import Input, get_definition
from the_help.services.result import Result


def make_service(**kwargs: Any) -> type[Service]:
    """A service whose main pokes the ``collaborator`` input and succeeds."""

    def main(self: Any) -> None:
        self.collaborator.some_message()
        self.result.success("done")

    kwargs.setdefault("inputs", ["collaborator"])
    return define_service("TestSubclass", main=main, **kwargs)


class TestAbstractService:
    def test_root_service_cannot_be_called(self, context: Mock, logger: Mock) -> None:
        with pytest.raises(AbstractServiceError):
            Service.call(context=context, logger=logger)

    def test_abstract_keyword(self, context: Mock, logger: Mock) -> None:
        class Base(Service, abstract=True, allow_all=True):
            def main(self) -> None:
                self.result.success()

        class Concrete(Base):
            pass

        with pytest.raises(AbstractServiceError):
            Base.call(context=context, logger=logger)
        assert Concrete.call(context=context, logger=logger).is_success

    def test_abstract_failure_logs_nothing(self, context: Mock, logger: Mock) -> None:
        with pytest.raises(AbstractServiceError):
            Service.call(context=context, logger=logger)
        logger.warning.assert_not_called()
        logger.debug.assert_not_called()


class TestWithoutMain:
    def test_raises_not_implemented(self, context: Mock, logger: Mock) -> None:
        class NoMain(Service, allow_all=True):
            pass

        with pytest.raises(ServiceNotImplementedError):
            NoMain.call(context=context, logger=logger)

    def test_not_implemented_is_builtin_subclass(self) -> None:
        assert issubclass(ServiceNotImplementedError, NotImplementedError)


class TestUnauthorized:
    @pytest.fixture
    def service_cls(self) -> type[Service]:
        return make_service()

    def test_default_denies_and_raises(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        with pytest.raises(NotAuthorizedError, match="Not authorized to access TestSubclass"):
            service_cls.call(context=context, logger=logger, collaborator=collaborator)
        collaborator.some_message.assert_not_called()

    def test_not_authorized_error_carries_details(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        with pytest.raises(NotAuthorizedError) as exc_info:
            service_cls.call(context=context, logger=logger, collaborator=collaborator)
        assert exc_info.value.service is service_cls
        assert exc_info.value.context is context

    def test_logs_warning_once(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        service = service_cls(context=context, logger=logger, collaborator=collaborator)
        with pytest.raises(NotAuthorizedError):
            service()
        logger.warning.assert_called_once_with(
            f"Unauthorized attempt to access {describe(service)} as {context!r}"
        )

    def test_no_start_log_when_denied(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        with pytest.raises(NotAuthorizedError):
            service_cls.call(context=context, logger=logger, collaborator=collaborator)
        assert not any("Service call to" in m for m in messages(logger.debug))

    def test_failed_state(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        service = service_cls(context=context, logger=logger, collaborator=collaborator)
        with pytest.raises(NotAuthorizedError):
            service()
        assert service.state is CallState.FAILED


class TestCustomNotAuthorizedHandler:
    @pytest.fixture
    def service_cls(self) -> type[Service]:
        return make_service()

    @pytest.fixture
    def not_authorized(self) -> Mock:
        return Mock(name="not_authorized", return_value=None)

    def test_handler_receives_type_and_context(
        self,
        service_cls: type[Service],
        context: Mock,
        logger: Mock,
        collaborator: Mock,
        not_authorized: Mock,
    ) -> None:
        service_cls.call(
            context=context, logger=logger, collaborator=collaborator, not_authorized=not_authorized
        )
        not_authorized.assert_called_once_with(service=service_cls, context=context)
        collaborator.some_message.assert_not_called()
        logger.warning.assert_called_once()

    def test_result_is_not_authorized_error(
        self,
        service_cls: type[Service],
        context: Mock,
        logger: Mock,
        collaborator: Mock,
        not_authorized: Mock,
    ) -> None:
        result = service_cls.call(
            context=context, logger=logger, collaborator=collaborator, not_authorized=not_authorized
        )
        assert result.is_error
        assert isinstance(result.value, NotAuthorizedError)
        assert result.value.service is service_cls
        assert result.value.context is context
        with pytest.raises(NotAuthorizedError):
            result.unwrap()

    def test_warning_precedes_handler(
        self, service_cls: type[Service], context: Mock, collaborator: Mock
    ) -> None:
        events = Mock()
        service_cls.call(
            context=context,
            logger=events.logger,
            collaborator=collaborator,
            not_authorized=events.not_authorized,
        )
        names = [name for name, _args, _kwargs in events.mock_calls]
        assert names.index("logger.warning") < names.index("not_authorized")

    def test_completes(
        self,
        service_cls: type[Service],
        context: Mock,
        logger: Mock,
        collaborator: Mock,
        not_authorized: Mock,
    ) -> None:
        service = service_cls(
            context=context, logger=logger, collaborator=collaborator, not_authorized=not_authorized
        )
        service()
        assert service.state is CallState.COMPLETED


class TestAuthorizationPredicate:
    @pytest.fixture
    def service_cls(self) -> type[Service]:
        class Guarded(Service):
            collaborator = Input()

            def authorized(self) -> bool:
                return self.context.meets_some_criteria()

            def main(self) -> None:
                self.collaborator.some_message()
                self.result.success()

        return Guarded

    def test_authorized_context_runs_main_once(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        context.meets_some_criteria.return_value = True
        service_cls.call(context=context, logger=logger, collaborator=collaborator)
        collaborator.some_message.assert_called_once_with()

    def test_logs_call_start(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        context.meets_some_criteria.return_value = True
        service = service_cls(context=context, logger=logger, collaborator=collaborator)
        service()
        assert f"Service call to {describe(service)} for {context!r}" in messages(logger.debug)

    def test_unauthorized_context(
        self, service_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        context.meets_some_criteria.return_value = False
        with pytest.raises(NotAuthorizedError):
            service_cls.call(context=context, logger=logger, collaborator=collaborator)
        collaborator.some_message.assert_not_called()

    def test_predicate_reads_inputs(self, context: Mock, logger: Mock) -> None:
        class OwnerOnly(Service):
            owner = Input()

            def authorized(self) -> bool:
                return self.owner == self.context

            def main(self) -> None:
                self.result.success(self.owner)

        assert OwnerOnly.call(context="alice", logger=logger, owner="alice").value == "alice"
        with pytest.raises(NotAuthorizedError):
            OwnerOnly.call(context="bob", logger=logger, owner="alice")

    def test_allow_all_with_authorized_rejected(self) -> None:
        with pytest.raises(ServiceDefinitionError):

            class Confused(Service, allow_all=True):
                def authorized(self) -> bool:
                    return False


class TestAllowAll:
    def test_main_runs_once(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        service_cls = make_service(allow_all=True)
        service_cls.call(context=context, logger=logger, collaborator=collaborator)
        collaborator.some_message.assert_called_once_with()
        logger.warning.assert_not_called()

    def test_logs_call_start(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        service = make_service(allow_all=True)(
            context=context, logger=logger, collaborator=collaborator
        )
        service()
        assert f"Service call to {describe(service)} for {context!r}" in messages(logger.debug)


class TestResultContract:
    def test_returns_result(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        result = make_service(allow_all=True).call(
            context=context, logger=logger, collaborator=collaborator
        )
        assert isinstance(result, Result)
        assert result.value == "done"

    def test_result_handler_receives_result(
        self, context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        handler = Mock(return_value="handled")
        returned = make_service(allow_all=True).call(
            handler, context=context, logger=logger, collaborator=collaborator
        )
        handler.assert_called_once()
        assert handler.call_args.args[0].value == "done"
        assert returned == "handled"

    def test_missing_result_raises(self, context: Mock, logger: Mock) -> None:
        class Forgetful(Service, allow_all=True):
            def main(self) -> None:
                pass

        handler = Mock()
        with pytest.raises(NoResultError):
            Forgetful.call(handler, context=context, logger=logger)
        handler.assert_not_called()

    def test_main_exception_propagates(self, context: Mock, logger: Mock) -> None:
        class Broken(Service, allow_all=True):
            def main(self) -> None:
                msg = "boom"
                raise RuntimeError(msg)

        service = Broken(context=context, logger=logger)
        with pytest.raises(RuntimeError, match="boom"):
            service()
        assert service.state is CallState.FAILED

    def test_error_result_is_not_raised(self, context: Mock, logger: Mock) -> None:
        class Failing(Service, allow_all=True):
            def main(self) -> None:
                self.result.error("expected failure")

        result = Failing.call(context=context, logger=logger)
        assert result.is_error
        assert result.value == "expected failure"

    def test_state_progression(self, context: Mock, logger: Mock) -> None:
        seen: list[CallState] = []

        class Observed(Service, allow_all=True):
            def main(self) -> None:
                seen.append(self.state)
                self.result.success()

        service = Observed(context=context, logger=logger)
        assert service.state is CallState.CREATED
        service()
        assert seen == [CallState.RUNNING]
        assert service.state is CallState.COMPLETED

    def test_instances_are_single_use(
        self, context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        service = make_service(allow_all=True)(
            context=context, logger=logger, collaborator=collaborator
        )
        service()
        with pytest.raises(RuntimeError, match="single-use"):
            service()
        collaborator.some_message.assert_called_once_with()


class TestConstruction:
    def test_context_is_required(self, logger: Mock) -> None:
        with pytest.raises(TypeError):
            make_service(allow_all=True)(logger=logger, collaborator=Mock())  # type: ignore[call-arg]

    def test_default_logger(self, context: Mock, collaborator: Mock) -> None:
        service = make_service(allow_all=True)(context=context, collaborator=collaborator)
        assert hasattr(service.logger, "debug")
        assert hasattr(service.logger, "warning")

    def test_missing_required_input(self, context: Mock, logger: Mock) -> None:
        with pytest.raises(MissingInputError, match="Missing required input: collaborator") as exc:
            make_service(allow_all=True)(context=context, logger=logger)
        assert exc.value.input_name == "collaborator"

    def test_missing_input_is_type_error(self) -> None:
        assert issubclass(MissingInputError, TypeError)

    def test_unknown_input_rejected(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        with pytest.raises(UnknownInputError, match="colaborator") as exc:
            make_service(allow_all=True)(
                context=context, logger=logger, collaborator=collaborator, colaborator=1
            )
        assert exc.value.input_name == "colaborator"

    def test_inputs_are_read_only(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        service = make_service(allow_all=True)(
            context=context, logger=logger, collaborator=collaborator
        )
        with pytest.raises(AttributeError, match="read-only"):
            service.collaborator = Mock()  # type: ignore[attr-defined]

    def test_repr(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        service = make_service(allow_all=True)(
            context=context, logger=logger, collaborator=collaborator
        )
        assert repr(service) == f"<{describe(service)} state=created>"


class TestInputDefaults:
    def test_supplied_value_used(self, context: Mock, logger: Mock, collaborator: Mock) -> None:
        default = Mock(name="default")
        service_cls = make_service(allow_all=True, inputs={"collaborator": Input(default)})
        service_cls.call(context=context, logger=logger, collaborator=collaborator)
        collaborator.some_message.assert_called_once_with()
        default.some_message.assert_not_called()

    def test_default_used(self, context: Mock, logger: Mock) -> None:
        default = Mock(name="default")
        service_cls = make_service(allow_all=True, inputs={"collaborator": Input(default)})
        service_cls.call(context=context, logger=logger)
        default.some_message.assert_called_once_with()

    def test_default_factory_only_runs_when_needed(self, context: Mock, logger: Mock) -> None:
        factory = Mock(return_value=Mock(name="built"))
        service_cls = make_service(
            allow_all=True, inputs={"collaborator": Input(default_factory=factory)}
        )
        service_cls.call(context=context, logger=logger, collaborator=Mock())
        factory.assert_not_called()

    def test_default_factory_evaluated_once_per_instance(
        self, context: Mock, logger: Mock
    ) -> None:
        factory = Mock(side_effect=list)

        class Collect(Service, allow_all=True):
            items = Input(default_factory=factory)

            def main(self) -> None:
                self.items.append(1)
                self.items.append(2)
                self.result.success(self.items)

        assert Collect.call(context=context, logger=logger).value == [1, 2]
        assert Collect.call(context=context, logger=logger).value == [1, 2]
        assert factory.call_count == 2

    def test_explicit_none_is_kept(self, context: Mock, logger: Mock) -> None:
        class Echo(Service, allow_all=True):
            value = Input("fallback")

            def main(self) -> None:
                self.result.success(self.value)

        assert Echo.call(context=context, logger=logger, value=None).value is None
        assert Echo.call(context=context, logger=logger).value == "fallback"


class TestInheritance:
    @pytest.fixture
    def base_cls(self) -> type[Service]:
        class Base(Service, allow_all=True):
            collaborator = Input()
            a = Input()
            b = Input(default=1)
            some_other_value = Input()

            def main(self) -> None:
                self.collaborator.message_one(self.a, self.b)
                self.result.success(self.b)

        return Base

    @pytest.fixture
    def sub_cls(self, base_cls: type[Service]) -> type[Service]:
        class Sub(base_cls):  # type: ignore[misc, valid-type]
            c = Input()
            b = Input(default=2)
            some_other_value = Input(default="foo")

            def main(self) -> None:
                super().main()
                self.collaborator.message_two(self.c, self.some_other_value)

        return Sub

    def test_subclass_uses_overridden_default(
        self, sub_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        result = sub_cls.call(context=context, logger=logger, collaborator=collaborator, a=1, c=3)
        assert result.value == 2
        collaborator.message_one.assert_called_once_with(1, 2)

    def test_subclass_can_add_default_to_required_input(
        self, sub_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        sub_cls.call(context=context, logger=logger, collaborator=collaborator, a=1, c=3)
        collaborator.message_two.assert_called_once_with(3, "foo")

    def test_subclass_can_call_ancestor_main(
        self, sub_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        sub_cls.call(context=context, logger=logger, collaborator=collaborator, a=1, c=3)
        collaborator.message_one.assert_called_once()
        collaborator.message_two.assert_called_once()

    def test_subclass_still_requires_inherited_inputs(
        self, sub_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        with pytest.raises(MissingInputError, match="a"):
            sub_cls(context=context, logger=logger, collaborator=collaborator, c=3)

    def test_subclass_requires_new_inputs(
        self, sub_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        with pytest.raises(MissingInputError, match="c"):
            sub_cls(context=context, logger=logger, collaborator=collaborator, a=1)

    def test_base_keeps_its_default(
        self, base_cls: type[Service], context: Mock, logger: Mock, collaborator: Mock
    ) -> None:
        result = base_cls.call(
            context=context, logger=logger, collaborator=collaborator, a=1, some_other_value=0
        )
        assert result.value == 1

    def test_base_still_requires_what_subclass_defaulted(
        self, base_cls: type[Service], sub_cls: type[Service], context: Mock, logger: Mock
    ) -> None:
        with pytest.raises(MissingInputError, match="some_other_value"):
            base_cls(context=context, logger=logger, collaborator=Mock(), a=1)

    def test_base_rejects_subclass_inputs(
        self, base_cls: type[Service], sub_cls: type[Service], context: Mock, logger: Mock
    ) -> None:
        with pytest.raises(UnknownInputError, match="c"):
            base_cls(
                context=context, logger=logger, collaborator=Mock(), a=1, some_other_value=0, c=3
            )

    def test_required_sets_are_snapshots(
        self, base_cls: type[Service], sub_cls: type[Service]
    ) -> None:
        assert get_definition(base_cls).required_inputs == {"collaborator", "a", "some_other_value"}
        assert get_definition(sub_cls).required_inputs == {"collaborator", "a", "c"}

    def test_authorization_inherited_unless_overridden(
        self, base_cls: type[Service], context: Mock, logger: Mock
    ) -> None:
        class Inherits(base_cls):  # type: ignore[misc, valid-type]
            pass

        class Locked(base_cls):  # type: ignore[misc, valid-type]
            def authorized(self) -> bool:
                return False

        args = {"collaborator": Mock(), "a": 1, "some_other_value": 0}
        assert Inherits.call(context=context, logger=logger, **args).is_success
        with pytest.raises(NotAuthorizedError):
            Locked.call(context=context, logger=logger, **args)

    def test_override_main_does_not_touch_ancestor(
        self, base_cls: type[Service], sub_cls: type[Service]
    ) -> None:
        assert get_definition(base_cls).main is base_cls.__dict__["main"]
        assert get_definition(sub_cls).main is sub_cls.__dict__["main"]


class TestProgrammaticDeclarations:
    def test_declare_input_authorization_and_main(self, context: Mock, logger: Mock) -> None:
        class Greeter(Service):
            pass

        def main(self: Any) -> None:
            self.result.success(f"{self.greeting}, {self.name}")

        Greeter.declare_input("name")
        Greeter.declare_input("greeting", "Hello")
        Greeter.declare_authorization(allow_all=True)
        Greeter.declare_main(main)

        assert Greeter.call(context=context, logger=logger, name="Ada").value == "Hello, Ada"
        with pytest.raises(MissingInputError, match="name"):
            Greeter(context=context, logger=logger)

    def test_declare_authorization_predicate(self, context: Mock, logger: Mock) -> None:
        service_cls = make_service()
        service_cls.declare_authorization(predicate=lambda service: service.context == "admin")
        assert service_cls.call(context="admin", logger=logger, collaborator=Mock()).is_success
        with pytest.raises(NotAuthorizedError):
            service_cls.call(context="guest", logger=logger, collaborator=Mock())

    def test_declared_main_reachable_with_super(self, context: Mock, logger: Mock) -> None:
        class Parent(Service, allow_all=True):
            pass

        Parent.declare_main(lambda self: self.result.success("parent"))

        class Child(Parent):
            def main(self) -> None:
                super().main()

        assert Child.call(context=context, logger=logger).value == "parent"

    def test_define_service_name(self) -> None:
        service_cls = define_service("Named", inputs=["x"], allow_all=True)
        assert service_cls.__name__ == "Named"
        assert issubclass(service_cls, Service)
        assert get_definition(service_cls).inputs == ("x",)

    def test_define_service_with_base(self, context: Mock, logger: Mock) -> None:
        parent = define_service(
            "Parent", inputs=["x"], allow_all=True, main=lambda s: s.result.success(s.x)
        )
        child = define_service("Child", base=parent, inputs={"x": Input(7)})
        assert child.call(context=context, logger=logger).value == 7
