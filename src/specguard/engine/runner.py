# src/specguard/engine/runner.py
"""Generative testing of spec'ed units.

For each unit, hypothesis generates argument tuples from the ``args`` spec;
every trial calls the unit and checks the return value against ``ret`` and
the args/ret relation against ``fn``. Failures are shrunk by hypothesis and
captured in TestResult records: the runner enumerates failures, it never
raises them.

While a unit is being checked its instrumentation (if any) is suspended, so
trials exercise the raw callable, and reinstated afterwards even on error.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import structlog

from specguard.contracts.enums import FailureKind, Role
from specguard.contracts.errors import ExplainData, TestFailure
from specguard.contracts.results import PropertyRun, TestResult
from specguard.core.config import CheckOptions
from specguard.engine.instrument import InstrumentationManager, default_manager
from specguard.spec.gen import generator_for, run_property
from specguard.spec.specs import FnSpec, Spec, explain_data, invalid

logger = structlog.get_logger(__name__)


def _explain_test(args: tuple[Any, ...], s: Spec, value: Any, role: Role) -> TestFailure:
    data = explain_data(s, value, role, FailureKind.TEST_FAILED, args=args)
    if data is None:
        data = ExplainData(problems=(), spec=s, value=value, role=role, failure=FailureKind.TEST_FAILED, args=args)
    return TestFailure(data)


def check_call(f: Callable[..., Any], fn_spec: FnSpec, args: tuple[Any, ...]) -> bool | TestFailure:
    """Call f with args and check the call against fn_spec.

    Returns True if the call passes, otherwise *returns* a TestFailure
    describing the violated spec. Exceptions raised by f propagate to the
    caller (the property runner records them as the trial's result).
    """
    cargs = None
    if fn_spec.args is not None:
        cargs = fn_spec.args.conform(args)
        if invalid(cargs):
            return _explain_test(args, fn_spec.args, args, Role.ARGS)
    ret = f(*args)
    cret = None
    if fn_spec.ret is not None:
        cret = fn_spec.ret.conform(ret)
        if invalid(cret):
            return _explain_test(args, fn_spec.ret, ret, Role.RET)
    if fn_spec.args is not None and fn_spec.ret is not None and fn_spec.fn is not None:
        relation = {"args": cargs, "ret": cret}
        if not fn_spec.fn.valid(relation):
            return _explain_test(args, fn_spec.fn, relation, Role.FN)
    return True


def check_fn(f: Callable[..., Any], fn_spec: FnSpec, options: CheckOptions) -> PropertyRun | BaseException:
    """Run the property for f; returns the raised error if args cannot be generated."""
    assert fn_spec.args is not None
    try:
        strategy = generator_for(fn_spec.args, options.gen)
    except Exception as exc:
        logger.warning("generator_unavailable", error=str(exc), error_type=type(exc).__name__)
        return exc
    return run_property(
        strategy,
        lambda args: check_call(f, fn_spec, args),
        num_tests=options.num_tests,
        engine_options=options.engine_options,
    )


def make_test_result(name: str | None, fn_spec: FnSpec, run: PropertyRun) -> TestResult:
    """Build the result record; a shrunk counterexample supersedes the original."""
    result = run.shrunk.result if run.shrunk is not None else run.result
    return TestResult(spec=fn_spec, name=name, result=result, ret=run)


def _check_1(
    name: str | None,
    f: Callable[..., Any] | None,
    fn_spec: FnSpec | None,
    options: CheckOptions,
) -> TestResult:
    if f is None:
        return TestResult(spec=fn_spec, name=name, failure=FailureKind.NO_FN)
    if fn_spec is None or fn_spec.args is None:
        return TestResult(spec=fn_spec, name=name, failure=FailureKind.NO_ARGS_SPEC)
    logger.debug("check_started", unit=name, num_tests=options.num_tests)
    outcome = check_fn(f, fn_spec, options)
    if isinstance(outcome, BaseException):
        return TestResult(spec=fn_spec, name=name, result=outcome, failure=FailureKind.NO_GEN)
    result = make_test_result(name, fn_spec, outcome)
    logger.info("check_finished", unit=name, passed=outcome.passed, num_tests=outcome.num_tests)
    return result


def testable_names(
    options: CheckOptions | None = None,
    *,
    manager: InstrumentationManager | None = None,
) -> set[str]:
    """Names with a registered fn-spec, plus names given override specs."""
    manager = manager if manager is not None else default_manager()
    names = manager.spec_registry.fn_spec_names()
    if options is not None:
        names |= set(options.spec)
    return names


def check_name(name: str, options: CheckOptions, manager: InstrumentationManager) -> TestResult:
    """Check one named unit with its instrumentation suspended."""
    fn_spec = manager.resolve_spec(name, options.spec)
    with manager.suspended(name):
        f = manager.resolver.resolve(name)
        return _check_1(name, f, fn_spec, options)


def check(
    names: str | Iterable[str] | None = None,
    options: CheckOptions | None = None,
    *,
    manager: InstrumentationManager | None = None,
) -> Iterator[TestResult]:
    """Generatively test the named units (all testable units if names is None).

    Names without a registered or override spec are dropped. Units are
    checked in parallel on a thread pool; results are yielded lazily in
    request order.
    """
    options = options if options is not None else CheckOptions()
    manager = manager if manager is not None else default_manager()
    testable = testable_names(options, manager=manager)
    if names is None:
        requested: Iterable[str] = sorted(testable)
    elif isinstance(names, str):
        requested = [names]
    else:
        requested = names
    selected = [name for name in dict.fromkeys(requested) if name in testable]
    return _check_all(selected, options, manager)


def _check_all(names: list[str], options: CheckOptions, manager: InstrumentationManager) -> Iterator[TestResult]:
    if not names:
        return
    with ThreadPoolExecutor(max_workers=options.max_workers, thread_name_prefix="specguard-check") as pool:
        yield from pool.map(lambda name: check_name(name, options, manager), names)


def check_callable(f: Callable[..., Any], fn_spec: FnSpec, options: CheckOptions | None = None) -> TestResult:
    """Generatively test an ad-hoc callable against fn_spec."""
    options = options if options is not None else CheckOptions()
    return _check_1(None, f, fn_spec, options)
