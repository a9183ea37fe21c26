"""All kinds and roles used across subsystem boundaries."""

from enum import StrEnum


class Role(StrEnum):
    """Which part of a fn-spec a value was checked against."""

    ARGS = "args"
    RET = "ret"
    FN = "fn"


class FailureKind(StrEnum):
    """Tag carried by every failure payload.

    The reporting layer classifies results by this tag, so every failure
    created by the instrumentation engine or the test runner MUST carry one.
    """

    INSTRUMENT_CHECK_FAILED = "instrument-check-failed"
    NO_FN_SPEC = "no-fn-spec"
    TEST_FAILED = "test-failed"
    NO_GEN = "no-gen"
    NO_ARGS_SPEC = "no-args-spec"
    NO_FN = "no-fn"


class ResultType(StrEnum):
    """Summary category of a generative test result."""

    PASSED = "test-passed"
    FAILED = "test-failed"
    THREW = "test-threw"
    NO_ARGS_SPEC = "no-args-spec"
    NO_GEN = "no-gen"
    NO_FN = "no-fn"
    INSTRUMENT_CHECK_FAILED = "instrument-check-failed"
    NO_FN_SPEC = "no-fn-spec"

    @classmethod
    def from_failure(cls, kind: FailureKind) -> "ResultType":
        """Map a failure tag to its summary category."""
        return _FAILURE_TO_RESULT[kind]


_FAILURE_TO_RESULT: dict[FailureKind, ResultType] = {
    FailureKind.TEST_FAILED: ResultType.FAILED,
    FailureKind.NO_GEN: ResultType.NO_GEN,
    FailureKind.NO_ARGS_SPEC: ResultType.NO_ARGS_SPEC,
    FailureKind.NO_FN: ResultType.NO_FN,
    # Raised by instrumented code called from inside a trial
    FailureKind.INSTRUMENT_CHECK_FAILED: ResultType.INSTRUMENT_CHECK_FAILED,
    FailureKind.NO_FN_SPEC: ResultType.NO_FN_SPEC,
}
