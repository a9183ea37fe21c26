# tests/conftest.py
"""Shared test fixtures.

Isolation:
- spec_registry: a fresh SpecRegistry per test
- cell_resolver: a fresh CellBindingResolver per test
- manager: an InstrumentationManager over both, so tests never touch the
  process-wide default registry or default manager
- module_manager: a manager over a fresh registry that rebinds real module
  attributes (tests/fixtures/units.py); everything it instrumented is
  unstrumented at teardown

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

import os
from collections.abc import Iterator

import pytest
from hypothesis import Phase, Verbosity, settings

from specguard.core.bindings import CellBindingResolver, ModuleBindingResolver
from specguard.core.config import CheckOptions
from specguard.engine.instrument import InstrumentationManager
from specguard.spec.registry import SpecRegistry

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture
def spec_registry() -> SpecRegistry:
    return SpecRegistry()


@pytest.fixture
def cell_resolver() -> CellBindingResolver:
    return CellBindingResolver()


@pytest.fixture
def manager(spec_registry: SpecRegistry, cell_resolver: CellBindingResolver) -> InstrumentationManager:
    return InstrumentationManager(spec_registry=spec_registry, resolver=cell_resolver)


@pytest.fixture
def module_manager(spec_registry: SpecRegistry) -> Iterator[InstrumentationManager]:
    manager = InstrumentationManager(spec_registry=spec_registry, resolver=ModuleBindingResolver())
    try:
        yield manager
    finally:
        manager.unstrument()


@pytest.fixture
def quick_options() -> CheckOptions:
    """Few trials and a fixed seed, for fast deterministic runner tests."""
    return CheckOptions(num_tests=50, engine_options={"seed": 1234})
