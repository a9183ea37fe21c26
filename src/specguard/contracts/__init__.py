"""Shared contracts for specguard.

This package contains the enums, explain-data schemas, exceptions, frame
records and result types that cross subsystem boundaries. It imports nothing
from the engine so every subsystem can depend on it.
"""

from specguard.contracts.enums import FailureKind, ResultType, Role
from specguard.contracts.errors import (
    ExceptionInfo,
    ExplainData,
    InstrumentCheckFailed,
    NoFnSpecError,
    NoGeneratorError,
    Problem,
    SpecError,
    TestFailure,
    explain_str,
)
from specguard.contracts.frames import CallerFrame, InterpretedFrame, RawFrame
from specguard.contracts.results import PropertyRun, ShrunkCase, Summary, TestResult

__all__ = [
    "CallerFrame",
    "ExceptionInfo",
    "ExplainData",
    "FailureKind",
    "InstrumentCheckFailed",
    "InterpretedFrame",
    "NoFnSpecError",
    "NoGeneratorError",
    "Problem",
    "PropertyRun",
    "RawFrame",
    "ResultType",
    "Role",
    "ShrunkCase",
    "SpecError",
    "Summary",
    "TestFailure",
    "TestResult",
    "explain_str",
]
