# src/specguard/engine/instrument.py
"""Live contract enforcement by callable substitution.

instrument() rebinds a named unit to a checking proxy that validates the
positional arguments against the unit's ``args`` spec before delegating.
unstrument() puts the original back. Only ``args`` is checked live; ``ret``
and ``fn`` are left to the generative runner to keep the call path cheap.

Thread Safety:
    Each InstrumentationManager guards its record arena with one lock. All
    install/restore bookkeeping (resolve, rebind, record) happens under it,
    so concurrent installs of the same unit apply one after the other and
    the second re-derives ``raw`` from the first's record. Proxies never
    take the lock.

    Whether checking is active is a ContextVar, so suppression follows one
    logical call chain (thread or asyncio task) and is reset on unwind.
"""

from __future__ import annotations

import dataclasses
import functools
import inspect
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

import structlog

from specguard.contracts.enums import FailureKind, Role
from specguard.contracts.errors import ExplainData, InstrumentCheckFailed, NoFnSpecError
from specguard.core.bindings import BindingResolver, ModuleBindingResolver
from specguard.core.config import InstrumentOptions
from specguard.engine.stack import capture_stack, nearest_caller
from specguard.spec.gen import generate
from specguard.spec.registry import SpecRegistry
from specguard.spec.registry import registry as default_spec_registry
from specguard.spec.specs import FnSpec, Spec, explain_data, invalid

logger = structlog.get_logger(__name__)

# If False, instrumented callables call straight through
_instrument_enabled: ContextVar[bool] = ContextVar("specguard_instrument_enabled", default=True)


@contextmanager
def with_instrument_disabled() -> Iterator[None]:
    """Disable instrument's checking of calls within a scope."""
    token = _instrument_enabled.set(False)
    try:
        yield
    finally:
        _instrument_enabled.reset(token)


def instrument_enabled() -> bool:
    return _instrument_enabled.get()


def _positional_args(signature: inspect.Signature | None, args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[Any, ...]:
    """Fold keyword arguments into positional form so ``args`` specs see one shape."""
    if not kwargs or signature is None:
        return args
    try:
        bound = signature.bind(*args, **kwargs)
    except TypeError:
        return args
    if bound.kwargs:
        return args
    return bound.args


def _conform_args(name: str, args_spec: Spec, args: tuple[Any, ...]) -> Any:
    conformed = args_spec.conform(args)
    if not invalid(conformed):
        return conformed
    data = explain_data(args_spec, args, Role.ARGS, FailureKind.INSTRUMENT_CHECK_FAILED, args=args)
    if data is None:
        # conform and explain disagree; still report the rejected value
        data = ExplainData(
            problems=(),
            spec=args_spec,
            value=args,
            role=Role.ARGS,
            failure=FailureKind.INSTRUMENT_CHECK_FAILED,
            args=args,
        )
    caller = nearest_caller(capture_stack())
    if caller is not None:
        data = dataclasses.replace(data, caller=caller.as_caller())
    raise InstrumentCheckFailed(name, data)


def spec_checking_fn(name: str, f: Callable[..., Any], fn_spec: FnSpec) -> Callable[..., Any]:
    """Build the checking proxy for unit name, delegating to f."""
    args_spec = fn_spec.args
    try:
        signature: inspect.Signature | None = inspect.signature(f)
    except (TypeError, ValueError):
        signature = None

    @functools.wraps(f)
    def checked(*args: Any, **kwargs: Any) -> Any:
        if not _instrument_enabled.get():
            return f(*args, **kwargs)
        # Conforming runs spec code, which must not trigger nested checks
        token = _instrument_enabled.set(False)
        try:
            if args_spec is not None:
                _conform_args(name, args_spec, _positional_args(signature, args, kwargs))
        finally:
            _instrument_enabled.reset(token)
        return f(*args, **kwargs)

    return checked


def _stub(value: Any, like: Callable[..., Any]) -> Callable[..., Any]:
    @functools.wraps(like)
    def stub(*args: Any, **kwargs: Any) -> Any:
        return value

    return stub


def _unwrap_descriptor(binding: Any) -> Callable[..., Any]:
    if isinstance(binding, staticmethod | classmethod):
        return binding.__func__
    return binding


def _rewrap_like(binding: Any, f: Callable[..., Any]) -> Any:
    """Wrap f in the same method descriptor as binding, if any."""
    if isinstance(binding, staticmethod):
        return staticmethod(f)
    if isinstance(binding, classmethod):
        return classmethod(f)
    return f


def _collectionize(names: str | Iterable[str]) -> list[str]:
    if isinstance(names, str):
        return [names]
    return list(names)


@dataclass(frozen=True, slots=True)
class InstrumentationRecord:
    """What a unit was bound to before instrumentation, and the proxy installed.

    Both are stored exactly as bound on the owner, so a staticmethod or
    classmethod unit keeps its descriptor in raw and gets one in wrapped.
    """

    raw: Any
    wrapped: Any


class InstrumentationManager:
    """Owns the instrumentation records and the install/restore state machine.

    Example:
        >>> manager = InstrumentationManager()
        >>> manager.instrument(["myapp.billing:charge"])
        ['myapp.billing:charge']
        >>> manager.unstrument()
        ['myapp.billing:charge']
    """

    def __init__(
        self,
        spec_registry: SpecRegistry | None = None,
        resolver: BindingResolver | None = None,
    ) -> None:
        self._spec_registry = spec_registry if spec_registry is not None else default_spec_registry
        self._resolver: BindingResolver = resolver if resolver is not None else ModuleBindingResolver()
        self._records: dict[str, InstrumentationRecord] = {}
        self._lock = threading.Lock()

    @property
    def spec_registry(self) -> SpecRegistry:
        return self._spec_registry

    @property
    def resolver(self) -> BindingResolver:
        return self._resolver

    def instrumentable_names(self, options: InstrumentOptions | None = None) -> set[str]:
        """Names with a registered fn-spec, plus every name mentioned in options."""
        names = self._spec_registry.fn_spec_names()
        if options is not None:
            names |= options.mentioned_names()
        return names

    def instrumented_names(self) -> set[str]:
        with self._lock:
            return set(self._records)

    def record(self, name: str) -> InstrumentationRecord | None:
        return self._records.get(name)

    def resolve_spec(self, name: str, overrides: dict[str, FnSpec] | None = None) -> FnSpec | None:
        """The override spec for name if given, else the registered one."""
        if overrides is not None and name in overrides:
            return overrides[name]
        return self._spec_registry.get(name)

    # -------------------------------------------------------------------------
    # Install
    # -------------------------------------------------------------------------

    def instrument(
        self,
        names: str | Iterable[str] | None = None,
        options: InstrumentOptions | None = None,
    ) -> list[str]:
        """Instrument the named units (all instrumentable units if names is None).

        Unresolvable names are skipped. Returns the distinct names instrumented.

        Units are installed one at a time. If a later name raises, the units
        installed before it stay instrumented; they are logged with the
        ``instrumented`` event before the error propagates.

        Raises:
            NoFnSpecError: A resolvable unit has neither an override nor a registered spec
        """
        options = options if options is not None else InstrumentOptions()
        if names is None:
            names = sorted(self.instrumentable_names(options))
        installed: list[str] = []
        try:
            with self._lock:
                for name in dict.fromkeys(_collectionize(names)):
                    if self._instrument_one(name, options):
                        installed.append(name)
        finally:
            if installed:
                logger.info("instrumented", units=installed)
        return installed

    def _instrument_one(self, name: str, options: InstrumentOptions) -> bool:
        if self._resolver.resolve(name) is None:
            logger.debug("unit_unresolved", unit=name)
            return False
        fn_spec = self.resolve_spec(name, options.spec)
        if fn_spec is None:
            logger.warning("no_fn_spec", unit=name)
            raise NoFnSpecError(name)

        # Bindings are compared and restored as stored, descriptors included
        binding = self._resolver.current_binding(name)
        prior = self._records.get(name)
        raw = prior.raw if prior is not None and prior.wrapped is binding else binding
        delegate = self._choose_fn(name, _unwrap_descriptor(raw), fn_spec, options)
        wrapped = _rewrap_like(raw, spec_checking_fn(name, delegate, fn_spec))
        self._resolver.set_binding(name, wrapped)
        self._records[name] = InstrumentationRecord(raw=raw, wrapped=wrapped)
        logger.debug(
            "unit_instrumented",
            unit=name,
            rewrapped=prior is not None,
            stubbed=name in options.stub,
            replaced=name in options.replace,
        )
        return True

    @staticmethod
    def _choose_fn(
        name: str,
        to_wrap: Callable[..., Any],
        fn_spec: FnSpec,
        options: InstrumentOptions,
    ) -> Callable[..., Any]:
        if name in options.stub:
            return _stub(generate(fn_spec.gen(options.gen)), to_wrap)
        if name in options.replace:
            return options.replace[name]
        return to_wrap

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def unstrument(self, names: str | Iterable[str] | None = None) -> list[str]:
        """Undo instrument() on the named units (all instrumented units if None).

        Returns the names whose instrumentation record was removed.
        """
        removed: list[str] = []
        with self._lock:
            if names is None:
                names = list(self._records)
            for name in dict.fromkeys(_collectionize(names)):
                if self._unstrument_one(name):
                    removed.append(name)
        if removed:
            logger.info("unstrumented", units=removed)
        return removed

    def _current_binding(self, name: str) -> Any:
        try:
            return self._resolver.current_binding(name)
        except (LookupError, AttributeError, ImportError, ValueError):
            return None

    def _unstrument_one(self, name: str) -> bool:
        # Stale records are dropped even when the binding moved on
        record = self._records.pop(name, None)
        if record is None:
            return False
        if self._current_binding(name) is record.wrapped:
            self._resolver.set_binding(name, record.raw)
        else:
            logger.warning("instrumentation_displaced", unit=name)
        return True

    # -------------------------------------------------------------------------
    # Scopes
    # -------------------------------------------------------------------------

    @contextmanager
    def suspended(self, name: str) -> Iterator[InstrumentationRecord | None]:
        """Temporarily restore the raw callable of an instrumented unit.

        The same proxy and record are reinstated on exit, unless someone
        rebound the unit (or instrumented it again) in the meantime.
        """
        with self._lock:
            record = self._records.get(name)
            restored = record is not None and self._unstrument_one(name) and self._current_binding(name) is record.raw
        try:
            yield record
        finally:
            if record is not None and restored:
                with self._lock:
                    if name not in self._records and self._current_binding(name) is record.raw:
                        self._resolver.set_binding(name, record.wrapped)
                        self._records[name] = record

    @contextmanager
    def instrumented(
        self,
        names: str | Iterable[str] | None = None,
        options: InstrumentOptions | None = None,
    ) -> Iterator[list[str]]:
        """Instrument on entry and unstrument the installed names on exit."""
        installed = self.instrument(names, options)
        try:
            yield installed
        finally:
            self.unstrument(installed)


# Default manager backing the module-level API
_default_manager = InstrumentationManager()


def default_manager() -> InstrumentationManager:
    return _default_manager


def instrument(names: str | Iterable[str] | None = None, options: InstrumentOptions | None = None) -> list[str]:
    """Instrument units with the default manager. See InstrumentationManager.instrument."""
    return _default_manager.instrument(names, options)


def unstrument(names: str | Iterable[str] | None = None) -> list[str]:
    """Unstrument units with the default manager. See InstrumentationManager.unstrument."""
    return _default_manager.unstrument(names)


def instrumentable_names(options: InstrumentOptions | None = None) -> set[str]:
    return _default_manager.instrumentable_names(options)


def instrumented_names() -> set[str]:
    return _default_manager.instrumented_names()
