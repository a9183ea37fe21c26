"""Spec language, fn-spec registry and hypothesis-backed generation."""

from specguard.spec.gen import generate, generator_for, run_property
from specguard.spec.registry import SpecRegistry, fdef, get_spec, registry, unit_name
from specguard.spec.specs import (
    INVALID,
    FnSpec,
    Spec,
    and_,
    as_spec,
    cat,
    coll_of,
    conform,
    explain_data,
    invalid,
    nilable,
    spec,
    type_spec,
)

__all__ = [
    "INVALID",
    "FnSpec",
    "Spec",
    "SpecRegistry",
    "and_",
    "as_spec",
    "cat",
    "coll_of",
    "conform",
    "explain_data",
    "fdef",
    "generate",
    "generator_for",
    "get_spec",
    "invalid",
    "nilable",
    "registry",
    "run_property",
    "spec",
    "type_spec",
    "unit_name",
]
