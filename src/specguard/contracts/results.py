"""Generative test outcomes.

These types answer: "What did a generative test run produce?"

- PropertyRun is the raw return of the Generator/Shrinker, kept for
  programmatic inspection.
- TestResult is the per-unit record yielded by the runner.
- Summary is the fold of many TestResults by ResultType.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from specguard.contracts.enums import FailureKind, ResultType

if TYPE_CHECKING:
    from specguard.spec.specs import FnSpec


@dataclass(frozen=True)
class ShrunkCase:
    """The minimal failing input found by shrinking, and its check result."""

    smallest: tuple[Any, ...]
    result: Any


@dataclass(frozen=True)
class PropertyRun:
    """Raw return value of a property run.

    Fields:
        result: True when every trial passed, else the first failing trial's
            check result (a TestFailure or the raised exception)
        num_tests: Number of trials executed (including shrink replays)
        fail: The first failing argument tuple, as originally generated
        shrunk: Shrunk counterexample, when shrinking produced one
        seed: The fixed random seed, if one was requested
    """

    result: Any
    num_tests: int
    fail: tuple[Any, ...] | None = None
    shrunk: ShrunkCase | None = None
    seed: int | None = None

    @property
    def passed(self) -> bool:
        return self.result is True


@dataclass(frozen=True)
class TestResult:
    """Outcome of generatively testing one unit.

    ``result`` is True on pass, a TestFailure on a contract violation or the
    exception raised by the code under test. ``failure`` is set instead for
    the outcomes where no trial could run (no fn, no args spec, no gen).
    """

    __test__ = False  # keep pytest from collecting this class

    spec: FnSpec | None
    name: str | None = None
    result: Any = None
    failure: FailureKind | None = None
    ret: PropertyRun | None = None


@dataclass
class Summary:
    """Per-category counts of a sequence of test results."""

    total: int = 0
    counts: Counter[ResultType] = field(default_factory=Counter)

    def add(self, kind: ResultType) -> None:
        self.total += 1
        self.counts[kind] += 1

    def __getitem__(self, kind: ResultType) -> int:
        return self.counts[kind]

    def as_dict(self) -> dict[str, int]:
        return {"total": self.total, **{kind.value: n for kind, n in self.counts.items()}}
