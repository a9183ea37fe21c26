"""
Specguard: contract enforcement and generative testing for Python callables.

Attach fn-specs (argument shape, return shape and the relation between them)
to named callables, then either check them live by instrumenting the callable
or generatively test it with hypothesis-driven inputs.
"""

__version__ = "0.1.0"

from specguard.core.bindings import enumerate_module
from specguard.core.logging import configure_logging
from specguard.engine.instrument import (
    instrument,
    instrumentable_names,
    instrumented_names,
    unstrument,
    with_instrument_disabled,
)
from specguard.engine.reporting import abbrev_result, result_type, summarize
from specguard.engine.runner import check as test
from specguard.engine.runner import check_callable as test_callable
from specguard.engine.runner import testable_names
from specguard.spec.registry import fdef, get_spec
from specguard.spec.specs import FnSpec, and_, cat, coll_of, nilable, spec, type_spec

__all__ = [
    "FnSpec",
    "__version__",
    "abbrev_result",
    "and_",
    "cat",
    "coll_of",
    "configure_logging",
    "enumerate_module",
    "fdef",
    "get_spec",
    "instrument",
    "instrumentable_names",
    "instrumented_names",
    "nilable",
    "result_type",
    "spec",
    "summarize",
    "test",
    "test_callable",
    "testable_names",
    "type_spec",
    "unstrument",
    "with_instrument_disabled",
]
