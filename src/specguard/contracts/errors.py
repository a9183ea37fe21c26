"""Explain-data schemas and the exceptions that carry them.

Every failure produced by the instrumentation engine or the test runner is
described by an ``ExplainData`` record: the value that failed, the spec it
failed against, the role it played in the fn-spec and the individual
problems found while conforming it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from specguard.contracts.enums import FailureKind, Role

if TYPE_CHECKING:
    from specguard.contracts.frames import CallerFrame


@dataclass(frozen=True, slots=True)
class Problem:
    """A single reason a value failed to conform.

    Fields:
        path: Spec path to the failing sub-spec (role first, then keys/names)
        pred: Description of the predicate that failed
        val: The offending (sub-)value
        in_: Location of ``val`` inside the top-level value (indices/keys)
        reason: Optional human-readable detail (e.g. "Insufficient input")
    """

    path: tuple[Any, ...]
    pred: str
    val: Any
    in_: tuple[Any, ...] = ()
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ExplainData:
    """Structured description of why a value failed a spec."""

    problems: tuple[Problem, ...]
    spec: Any
    value: Any
    role: Role
    failure: FailureKind
    args: tuple[Any, ...] | None = None
    caller: CallerFrame | None = None

    def as_dict(self) -> dict[str, Any]:
        """Plain-data rendering for reports (spec is described, not kept)."""
        describe = getattr(self.spec, "describe", None)
        data: dict[str, Any] = {
            "failure": self.failure.value,
            "role": self.role.value,
            "value": self.value,
            "spec": describe() if describe is not None else repr(self.spec),
            "problems": [
                {
                    "path": list(p.path),
                    "pred": p.pred,
                    "val": p.val,
                    "in": list(p.in_),
                    **({"reason": p.reason} if p.reason is not None else {}),
                }
                for p in self.problems
            ],
        }
        if self.args is not None:
            data["args"] = self.args
        if self.caller is not None:
            data["caller"] = {
                "unit": self.caller.unit,
                "local_fn": self.caller.local_fn,
                "file": self.caller.file,
                "line": self.caller.line,
            }
        return data


def explain_str(data: ExplainData) -> str:
    """Render explain-data as the multi-line text used in exception messages."""
    lines = []
    for problem in data.problems:
        line = f"In: {list(problem.in_)} val: {problem.val!r} fails"
        if len(problem.path) > 0:
            line += f" at: {list(problem.path)}"
        line += f" predicate: {problem.pred}"
        if problem.reason is not None:
            line += f", {problem.reason}"
        lines.append(line)
    if data.caller is not None:
        where = data.caller.unit or data.caller.file
        if data.caller.local_fn:
            where = f"{where} ({data.caller.local_fn})"
        lines.append(f"Called from: {where}, {data.caller.file}:{data.caller.line}")
    return "\n".join(lines)


# =============================================================================
# Exceptions
# =============================================================================


class SpecError(Exception):
    """Base for all specguard failures.

    Attributes:
        failure: The FailureKind tag used for classification
        data: Optional explain-data describing the failure
    """

    failure: FailureKind

    def __init__(self, message: str, *, data: ExplainData | None = None) -> None:
        self.data = data
        super().__init__(message)


class NoFnSpecError(SpecError):
    """Raised when instrumenting a unit that has neither a registered nor an override spec."""

    failure = FailureKind.NO_FN_SPEC

    def __init__(self, name: str, spec: Any = None) -> None:
        self.name = name
        self.spec = spec
        super().__init__(f"Fn at {name} is not spec'ed.")


class InstrumentCheckFailed(SpecError):
    """Raised to the caller of an instrumented unit whose arguments violated ``args``."""

    failure = FailureKind.INSTRUMENT_CHECK_FAILED

    def __init__(self, name: str, data: ExplainData) -> None:
        self.name = name
        super().__init__(f"Call to {name} did not conform to spec:\n{explain_str(data)}", data=data)


class NoGeneratorError(SpecError):
    """Raised when a spec cannot build a generator for its values."""

    failure = FailureKind.NO_GEN

    def __init__(self, spec: Any, path: tuple[Any, ...] = ()) -> None:
        self.spec = spec
        self.path = path
        super().__init__(f"Unable to construct gen at: {list(path)} for: {spec!r}")


class TestFailure(SpecError):
    """A generative trial whose value violated a spec.

    Created and *returned* by the runner, never raised: the runner's job is
    to enumerate failures, not stop at the first one.
    """

    __test__ = False  # keep pytest from collecting this class

    failure = FailureKind.TEST_FAILED

    def __init__(self, data: ExplainData) -> None:
        super().__init__("Specification-based test failed", data=data)

    @property
    def value(self) -> Any:
        return self.data.value if self.data is not None else None


@dataclass
class ExceptionInfo:
    """Plain-data rendering of an exception raised by code under test."""

    type: str
    message: str
    notes: list[str] = field(default_factory=list)

    @classmethod
    def from_exception(cls, exc: BaseException) -> ExceptionInfo:
        return cls(
            type=type(exc).__name__,
            message=str(exc),
            notes=list(getattr(exc, "__notes__", [])),
        )
