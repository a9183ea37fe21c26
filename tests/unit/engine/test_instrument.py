# tests/unit/engine/test_instrument.py
"""Tests for instrument/unstrument and the checking proxy.

Tests cover:
- Live args enforcement and the raised explain-data
- Caller attribution through cells and module attributes
- Idempotent re-instrumentation and install/restore round trips
- Spec overrides, stubs, generator overrides and replacements
- Displaced bindings and stale record cleanup
- Checking suppression for re-entrant and nested calls
"""

from __future__ import annotations

import threading
from typing import Any

import pytest
from hypothesis import strategies as st
from structlog.testing import capture_logs

from specguard.contracts.enums import FailureKind, Role
from specguard.contracts.errors import InstrumentCheckFailed, NoFnSpecError
from specguard.core.bindings import CellBindingResolver
from specguard.core.config import InstrumentOptions
from specguard.engine.instrument import InstrumentationManager, instrument_enabled, with_instrument_disabled
from specguard.spec.registry import SpecRegistry
from specguard.spec.specs import FnSpec, cat, spec
from tests.fixtures import units

pos_int = spec(lambda x: isinstance(x, int) and x > 0, strategy=st.integers(min_value=1), name="pos-int")


def _double(x: int) -> int:
    return x * 2


@pytest.fixture
def double(spec_registry: SpecRegistry, cell_resolver: CellBindingResolver):
    spec_registry.register("demo:double", FnSpec(args=cat(x=pos_int), ret=int))
    return cell_resolver.define("demo:double", _double)


class TestContractEnforcement:
    def test_valid_call_returns_delegate_result(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        assert double(5) == 10

    def test_invalid_call_raises(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            double(-1)

        data = exc_info.value.data
        assert data.role is Role.ARGS
        assert data.failure is FailureKind.INSTRUMENT_CHECK_FAILED
        assert data.args == (-1,)
        assert data.value == (-1,)
        assert data.problems[0].path == ("args", "x")
        assert data.problems[0].val == -1
        assert "Call to demo:double did not conform to spec" in str(exc_info.value)

    def test_wrong_arity_is_reported(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            double(1, 2)

        assert exc_info.value.data.problems[0].reason == "Extra input"

    def test_ret_is_not_checked_live(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        lying = cell_resolver.define("demo:lying", lambda x: "not an int")
        options = InstrumentOptions(spec={"demo:lying": FnSpec(args=cat(x=int), ret=int)})
        manager.instrument(["demo:lying"], options)

        assert lying(1) == "not an int"

    def test_keyword_arguments_are_checked_positionally(self, module_manager: InstrumentationManager) -> None:
        module_manager.spec_registry.register("tests.fixtures.units:greet", FnSpec(args=cat(name=str)))
        module_manager.instrument(["tests.fixtures.units:greet"])

        assert units.greet(name="bob") == "hello bob!"
        with pytest.raises(InstrumentCheckFailed):
            units.greet(name=5)


class TestCallerAttribution:
    def test_caller_is_the_test_through_a_cell(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            double(0)

        caller = exc_info.value.data.caller
        assert caller is not None
        assert caller.unit == f"{__name__}:TestCallerAttribution.test_caller_is_the_test_through_a_cell"
        assert caller.file == __file__

    def test_caller_is_the_calling_module_function(self, module_manager: InstrumentationManager) -> None:
        module_manager.spec_registry.register("tests.fixtures.units:inc", FnSpec(args=cat(x=int)))
        module_manager.instrument(["tests.fixtures.units:inc"])

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            units.call_inc("a")

        assert exc_info.value.data.caller.unit == "tests.fixtures.units:call_inc"

    def test_caller_in_local_function(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        def helper() -> None:
            double(-3)

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            helper()

        assert exc_info.value.data.caller.local_fn == "helper"


class TestInstall:
    def test_returns_installed_names(self, manager: InstrumentationManager, double) -> None:
        assert manager.instrument("demo:double") == ["demo:double"]
        assert manager.instrumented_names() == {"demo:double"}

    def test_duplicate_names_installed_once(self, manager: InstrumentationManager, double) -> None:
        assert manager.instrument(["demo:double", "demo:double"]) == ["demo:double"]

    def test_unresolvable_names_are_skipped(self, manager: InstrumentationManager) -> None:
        options = InstrumentOptions(spec={"demo:missing": FnSpec(args=cat(x=int))})

        assert manager.instrument(["demo:missing"], options) == []
        assert manager.instrumented_names() == set()

    def test_missing_spec_raises(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        unspecced = cell_resolver.define("demo:unspecced", _double)

        with pytest.raises(NoFnSpecError) as exc_info:
            manager.instrument(["demo:unspecced"])

        assert exc_info.value.name == "demo:unspecced"
        assert exc_info.value.spec is None
        assert exc_info.value.failure is FailureKind.NO_FN_SPEC
        assert unspecced.target is _double
        assert manager.instrumented_names() == set()

    def test_units_installed_before_a_failure_stay_instrumented(
        self, manager: InstrumentationManager, cell_resolver: CellBindingResolver, double
    ) -> None:
        cell_resolver.define("demo:unspecced", _double)

        with capture_logs() as logs, pytest.raises(NoFnSpecError):
            manager.instrument(["demo:double", "demo:unspecced"])

        assert manager.instrumented_names() == {"demo:double"}
        assert [e["units"] for e in logs if e["event"] == "instrumented"] == [["demo:double"]]

    def test_unregistered_module_unit_raises(self, module_manager: InstrumentationManager) -> None:
        with pytest.raises(NoFnSpecError):
            module_manager.instrument(["tests.fixtures.units:identity"])

        assert not hasattr(units.identity, "__wrapped__")
        assert module_manager.record("tests.fixtures.units:identity") is None

    def test_all_instrumentable_names_by_default(self, manager: InstrumentationManager, double, spec_registry: SpecRegistry) -> None:
        spec_registry.register("demo:unbound", FnSpec(args=cat(x=int)))

        assert manager.instrument() == ["demo:double"]

    def test_instrumentable_names_include_options(self, manager: InstrumentationManager, double) -> None:
        options = InstrumentOptions(
            spec={"a:one": FnSpec(args=cat(x=int))},
            stub={"a:two"},
            replace={"a:three": _double},
        )

        assert manager.instrumentable_names(options) == {"demo:double", "a:one", "a:two", "a:three"}

    def test_spec_override_wins(self, manager: InstrumentationManager, double) -> None:
        options = InstrumentOptions(spec={"demo:double": FnSpec(args=cat(x=str))})
        manager.instrument(["demo:double"], options)

        assert double("ab") == "abab"
        with pytest.raises(InstrumentCheckFailed):
            double(5)

    def test_proxy_keeps_function_metadata(self, module_manager: InstrumentationManager) -> None:
        module_manager.spec_registry.register("tests.fixtures.units:inc", FnSpec(args=cat(x=int)))
        original = units.inc
        module_manager.instrument(["tests.fixtures.units:inc"])

        assert units.inc is not original
        assert units.inc.__name__ == "inc"
        assert units.inc.__wrapped__ is original


class TestIdempotence:
    def test_reinstrument_keeps_original_raw(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])
        first_proxy = double.target
        manager.instrument(["demo:double"])

        record = manager.record("demo:double")
        assert record.raw is _double
        assert record.wrapped is double.target
        assert double.target is not first_proxy
        assert manager.instrumented_names() == {"demo:double"}

    def test_round_trip_restores_binding(self, manager: InstrumentationManager, double) -> None:
        manager.unstrument(manager.instrument(["demo:double"]))

        assert double.target is _double
        assert manager.instrumented_names() == set()

    def test_round_trip_after_double_install(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])
        manager.instrument(["demo:double"])
        manager.unstrument(["demo:double"])

        assert double.target is _double

    def test_module_round_trip(self, module_manager: InstrumentationManager) -> None:
        module_manager.spec_registry.register("tests.fixtures.units:inc", FnSpec(args=cat(x=int)))
        original = units.inc

        module_manager.unstrument(module_manager.instrument(["tests.fixtures.units:inc"]))

        assert units.inc is original

    def test_method_round_trip(self, module_manager: InstrumentationManager) -> None:
        name = "tests.fixtures.units:Account.deposit"
        module_manager.spec_registry.register(name, FnSpec(args=cat(self=units.Account, amount=pos_int)))
        original = units.Account.deposit
        module_manager.instrument([name])

        account = units.Account()
        assert account.deposit(5) == 5
        with pytest.raises(InstrumentCheckFailed):
            account.deposit(-5)

        module_manager.unstrument([name])
        assert units.Account.deposit is original

    def test_staticmethod_round_trip(self, module_manager: InstrumentationManager) -> None:
        name = "tests.fixtures.units:Tools.twice"
        module_manager.spec_registry.register(name, FnSpec(args=cat(x=int)))
        original = units.Tools.__dict__["twice"]
        module_manager.instrument([name])

        assert isinstance(units.Tools.__dict__["twice"], staticmethod)
        assert module_manager.record(name).raw is original
        assert units.Tools.twice(3) == 6
        assert units.Tools().twice(3) == 6
        with pytest.raises(InstrumentCheckFailed):
            units.Tools().twice("a")

        module_manager.unstrument([name])
        assert units.Tools.__dict__["twice"] is original
        assert units.Tools().twice(4) == 8

    def test_classmethod_round_trip(self, module_manager: InstrumentationManager) -> None:
        name = "tests.fixtures.units:Tools.make"
        module_manager.spec_registry.register(name, FnSpec(args=cat(cls=type, x=int)))
        original = units.Tools.__dict__["make"]
        module_manager.instrument([name])

        assert isinstance(units.Tools.__dict__["make"], classmethod)
        assert units.SubTools.make(1) == ("SubTools", 1)
        with pytest.raises(InstrumentCheckFailed):
            units.Tools.make("a")

        module_manager.unstrument([name])
        assert units.Tools.__dict__["make"] is original
        assert units.SubTools.make(1) == ("SubTools", 1)

    def test_reinstrumented_staticmethod_keeps_descriptor_raw(self, module_manager: InstrumentationManager) -> None:
        name = "tests.fixtures.units:Tools.twice"
        module_manager.spec_registry.register(name, FnSpec(args=cat(x=int)))
        original = units.Tools.__dict__["twice"]

        module_manager.instrument([name])
        module_manager.instrument([name])

        assert module_manager.record(name).raw is original
        module_manager.unstrument([name])
        assert units.Tools.__dict__["twice"] is original


class TestUninstall:
    def test_unstrument_all(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver, spec_registry: SpecRegistry) -> None:
        for name in ("demo:a", "demo:b"):
            spec_registry.register(name, FnSpec(args=cat(x=int)))
            cell_resolver.define(name, _double)
        manager.instrument(["demo:a", "demo:b"])

        assert sorted(manager.unstrument()) == ["demo:a", "demo:b"]
        assert cell_resolver.cell("demo:a").target is _double
        assert cell_resolver.cell("demo:b").target is _double

    def test_unstrument_uninstrumented_is_noop(self, manager: InstrumentationManager, double) -> None:
        assert manager.unstrument(["demo:double"]) == []
        assert double.target is _double

    def test_displaced_binding_is_left_alone(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        def replacement(x: int) -> int:
            return x

        double.target = replacement
        assert manager.unstrument(["demo:double"]) == ["demo:double"]

        assert double.target is replacement
        assert manager.record("demo:double") is None

    def test_reinstrument_after_displacement_wraps_new_binding(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        def replacement(x: int) -> int:
            return x

        double.target = replacement
        manager.instrument(["demo:double"])

        assert manager.record("demo:double").raw is replacement


class TestStubsAndReplacements:
    def test_stub_returns_generated_value(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        calls: list[Any] = []
        fetch = cell_resolver.define("demo:fetch", lambda url: calls.append(url))
        options = InstrumentOptions(
            spec={"demo:fetch": FnSpec(args=cat(url=str), ret=spec(int, strategy=st.just(7)))},
            stub={"demo:fetch"},
        )
        manager.instrument(["demo:fetch"], options)

        assert fetch("http://example.com") == 7
        assert calls == []

    def test_stub_values_are_random_draws(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        fetch = cell_resolver.define("demo:fetch", lambda url: None)
        options = InstrumentOptions(
            spec={"demo:fetch": FnSpec(args=cat(url=str), ret=spec(int, strategy=st.integers()))},
            stub={"demo:fetch"},
        )

        values = set()
        for _ in range(10):
            manager.instrument(["demo:fetch"], options)
            values.add(fetch("x"))

        assert values != {0}

    def test_stub_still_checks_args(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        fetch = cell_resolver.define("demo:fetch", lambda url: None)
        options = InstrumentOptions(
            spec={"demo:fetch": FnSpec(args=cat(url=str), ret=spec(int, strategy=st.just(7)))},
            stub={"demo:fetch"},
        )
        manager.instrument(["demo:fetch"], options)

        with pytest.raises(InstrumentCheckFailed):
            fetch(123)

    def test_stub_uses_generator_override(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        fetch = cell_resolver.define("demo:fetch", lambda url: None)
        answer = spec(int, strategy=st.integers(), name="answer")
        options = InstrumentOptions(
            spec={"demo:fetch": FnSpec(args=cat(url=str), ret=answer)},
            stub={"demo:fetch"},
            gen={"answer": st.just(42)},
        )
        manager.instrument(["demo:fetch"], options)

        assert fetch("x") == 42

    def test_unstrument_after_stub_restores_original(self, manager: InstrumentationManager, cell_resolver: CellBindingResolver) -> None:
        def original(url: str) -> None:
            return None

        fetch = cell_resolver.define("demo:fetch", original)
        options = InstrumentOptions(
            spec={"demo:fetch": FnSpec(args=cat(url=str), ret=spec(int, strategy=st.just(7)))},
            stub={"demo:fetch"},
        )
        manager.instrument(["demo:fetch"], options)
        manager.unstrument(["demo:fetch"])

        assert fetch.target is original

    def test_replacement_is_called_and_checked(self, manager: InstrumentationManager, double) -> None:
        options = InstrumentOptions(replace={"demo:double": lambda x: x * 3})
        manager.instrument(["demo:double"], options)

        assert double(2) == 6
        with pytest.raises(InstrumentCheckFailed):
            double(-2)

        manager.unstrument(["demo:double"])
        assert double.target is _double


class TestSuppression:
    def test_reentrant_call_from_spec_code_is_not_rechecked(
        self, manager: InstrumentationManager, cell_resolver: CellBindingResolver, spec_registry: SpecRegistry
    ) -> None:
        validations: list[int] = []

        def pred(n: int) -> bool:
            validations.append(n)
            echo(n)  # spec code calling the instrumented unit goes straight through
            return n > 0

        echo = cell_resolver.define("demo:echo", lambda n: n)
        spec_registry.register("demo:echo", FnSpec(args=cat(n=spec(pred))))
        manager.instrument(["demo:echo"])

        assert echo(3) == 3
        assert validations == [3]

    def test_recursive_delegate_validates_each_call_once(
        self, manager: InstrumentationManager, cell_resolver: CellBindingResolver, spec_registry: SpecRegistry
    ) -> None:
        validations: list[int] = []

        def counted_nat(n: Any) -> bool:
            validations.append(n)
            return isinstance(n, int) and n >= 0

        def countdown(n: int) -> int:
            return 0 if n == 0 else cell(n - 1)

        cell = cell_resolver.define("demo:countdown", countdown)
        spec_registry.register("demo:countdown", FnSpec(args=cat(n=spec(counted_nat))))
        manager.instrument(["demo:countdown"])

        assert cell(1) == 0
        assert validations.count(1) == 1
        assert validations == [1, 0]

    def test_nested_instrumented_calls_are_checked(
        self, manager: InstrumentationManager, cell_resolver: CellBindingResolver, double, spec_registry: SpecRegistry
    ) -> None:
        outer = cell_resolver.define("demo:outer", lambda x: double(x - 10))
        spec_registry.register("demo:outer", FnSpec(args=cat(x=int)))
        manager.instrument(["demo:outer", "demo:double"])

        with pytest.raises(InstrumentCheckFailed) as exc_info:
            outer(5)

        assert exc_info.value.name == "demo:double"

    def test_with_instrument_disabled(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        with with_instrument_disabled():
            assert instrument_enabled() is False
            assert double(-1) == -2
        assert instrument_enabled() is True

    def test_suppression_is_reset_after_failure(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])

        with pytest.raises(InstrumentCheckFailed):
            double(-1)

        assert instrument_enabled() is True

    def test_suppression_does_not_leak_across_threads(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])
        errors: list[BaseException] = []

        def other_chain() -> None:
            try:
                double(-1)
            except InstrumentCheckFailed as e:
                errors.append(e)

        with with_instrument_disabled():
            thread = threading.Thread(target=other_chain)
            thread.start()
            thread.join()

        assert len(errors) == 1


class TestScopes:
    def test_instrumented_context(self, manager: InstrumentationManager, double) -> None:
        with manager.instrumented(["demo:double"]) as installed:
            assert installed == ["demo:double"]
            with pytest.raises(InstrumentCheckFailed):
                double(-1)

        assert double.target is _double

    def test_suspended_restores_raw_then_reinstates(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])
        proxy = double.target

        with manager.suspended("demo:double") as record:
            assert record.wrapped is proxy
            assert double.target is _double
            assert double(-1) == -2

        assert double.target is proxy
        assert manager.record("demo:double") is record

    def test_suspended_reinstates_after_error(self, manager: InstrumentationManager, double) -> None:
        manager.instrument(["demo:double"])
        proxy = double.target

        with pytest.raises(RuntimeError), manager.suspended("demo:double"):
            raise RuntimeError("boom")

        assert double.target is proxy

    def test_suspended_uninstrumented_unit(self, manager: InstrumentationManager, double) -> None:
        with manager.suspended("demo:double") as record:
            assert record is None

        assert manager.instrumented_names() == set()
