"""Core infrastructure: logging, configuration and binding resolution."""

from specguard.core.bindings import (
    BindingCell,
    BindingResolver,
    CellBindingResolver,
    ModuleBindingResolver,
    enumerate_module,
)
from specguard.core.config import CheckOptions, InstrumentOptions, SpecguardSettings, load_settings
from specguard.core.logging import configure_logging, get_logger

__all__ = [
    "BindingCell",
    "BindingResolver",
    "CellBindingResolver",
    "CheckOptions",
    "InstrumentOptions",
    "ModuleBindingResolver",
    "SpecguardSettings",
    "configure_logging",
    "enumerate_module",
    "get_logger",
    "load_settings",
]
