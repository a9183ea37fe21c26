# src/specguard/engine/reporting.py
"""Classification and summary of generative test results."""

from __future__ import annotations

import pprint
from collections.abc import Callable, Iterable
from typing import Any

from specguard.contracts.enums import ResultType
from specguard.contracts.errors import ExceptionInfo, SpecError
from specguard.contracts.results import Summary, TestResult


def failure_type(x: Any) -> ResultType | None:
    """The result type implied by a failure payload, or None if x carries no tag."""
    if isinstance(x, SpecError):
        return ResultType.from_failure(x.failure)
    return None


def result_type(result: TestResult) -> ResultType:
    """Classify a result into exactly one summary category."""
    if result.failure is not None:
        return ResultType.from_failure(result.failure)
    if result.result is True:
        return ResultType.PASSED
    kind = failure_type(result.result)
    if kind is not None:
        return kind
    return ResultType.THREW


def _unwrap_failure(x: Any) -> Any:
    if isinstance(x, SpecError) and x.data is not None:
        return x.data.as_dict()
    if isinstance(x, BaseException):
        return ExceptionInfo.from_exception(x)
    return x


def abbrev_result(result: TestResult) -> dict[str, Any]:
    """An abbreviated, plain-data version of a result suitable for summaries."""
    kind = result_type(result)
    abbreviated: dict[str, Any] = {"type": kind.value}
    if result.name is not None:
        abbreviated["name"] = result.name
    if kind is ResultType.PASSED:
        return abbreviated
    if result.spec is not None:
        abbreviated["spec"] = result.spec.describe()
    if result.result is not None:
        abbreviated["result"] = _unwrap_failure(result.result)
    return abbreviated


def summarize(
    results: Iterable[TestResult],
    summary_result: Callable[[TestResult], Any] = abbrev_result,
    *,
    emit: Callable[[Any], None] = pprint.pprint,
) -> Summary:
    """Fold results into per-category counts, emitting each summary_result along the way.

    Args:
        results: Test results, e.g. from check()
        summary_result: Renders one result for output (default abbrev_result)
        emit: Receives each rendered result (default pprint.pprint)
    """
    summary = Summary()
    for result in results:
        emit(summary_result(result))
        summary.add(result_type(result))
    return summary
