"""Instrumentation engine, generative test runner and result reporting."""

from specguard.engine.instrument import (
    InstrumentationManager,
    InstrumentationRecord,
    default_manager,
    instrument,
    instrumentable_names,
    instrumented_names,
    spec_checking_fn,
    unstrument,
    with_instrument_disabled,
)
from specguard.engine.reporting import abbrev_result, result_type, summarize
from specguard.engine.runner import check, check_call, check_callable
from specguard.engine.stack import capture_stack, interpret_frame, nearest_caller, stack_relevant_to_instrument

__all__ = [
    "InstrumentationManager",
    "InstrumentationRecord",
    "abbrev_result",
    "capture_stack",
    "check",
    "check_call",
    "check_callable",
    "default_manager",
    "instrument",
    "instrumentable_names",
    "instrumented_names",
    "interpret_frame",
    "nearest_caller",
    "result_type",
    "spec_checking_fn",
    "stack_relevant_to_instrument",
    "summarize",
    "unstrument",
    "with_instrument_disabled",
]
