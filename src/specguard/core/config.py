# src/specguard/core/config.py
"""
Configuration schema and loading for specguard.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings and option models are frozen (immutable) after construction.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_validator

from specguard.spec.gen import DEFAULT_NUM_TESTS
from specguard.spec.specs import FnSpec


class SpecguardSettings(BaseModel):
    """Top-level settings, usually loaded from ``specguard.yaml``.

    Example YAML:
        modules:
          - myapp.billing
          - myapp.parsing
        num_tests: 200
        max_workers: 4
        log_level: INFO
        engine_options:
          derandomize: true
    """

    model_config = ConfigDict(frozen=True)

    modules: list[str] = Field(
        default_factory=list,
        description="Modules imported before checking, so their fn-specs get registered",
    )
    num_tests: int = Field(
        default=DEFAULT_NUM_TESTS,
        gt=0,
        description="Generative trials per unit",
    )
    max_workers: int | None = Field(
        default=None,
        gt=0,
        description="Threads used to check units in parallel (None: executor default)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Root log level",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON log lines instead of console output",
    )
    engine_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Keyword overrides forwarded to hypothesis.settings (plus 'seed')",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v


class InstrumentOptions(BaseModel):
    """Options for instrument().

    Options for names not being instrumented are ignored, so one options
    object can be shared across many instrument() calls.

    Fields:
        spec: Unit name -> FnSpec overriding the registered spec
        stub: Unit names replaced by stubs that check args and return a
            value generated from the ret spec
        gen: Spec name -> generator override, used only for stub generation
        replace: Unit name -> replacement callable, checked like the original
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    spec: dict[str, InstanceOf[FnSpec]] = Field(default_factory=dict)
    stub: frozenset[str] = Field(default_factory=frozenset)
    gen: dict[str, Any] = Field(default_factory=dict)
    replace: dict[str, Callable[..., Any]] = Field(default_factory=dict)

    def mentioned_names(self) -> set[str]:
        """Every unit name referenced by these options."""
        return set(self.spec) | set(self.stub) | set(self.replace)


class CheckOptions(BaseModel):
    """Options for generative checking.

    Fields:
        num_tests: Trials per unit
        gen: Spec name -> generator override used when generating args
        spec: Unit name -> FnSpec overriding the registered spec
        engine_options: Keyword overrides for hypothesis.settings
        max_workers: Threads used to check units in parallel
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    num_tests: int = Field(default=DEFAULT_NUM_TESTS, gt=0)
    gen: dict[str, Any] = Field(default_factory=dict)
    spec: dict[str, InstanceOf[FnSpec]] = Field(default_factory=dict)
    engine_options: dict[str, Any] = Field(default_factory=dict)
    max_workers: int | None = Field(default=None, gt=0)

    @classmethod
    def from_settings(cls, settings: SpecguardSettings, **overrides: Any) -> CheckOptions:
        """Build check options from loaded settings, with explicit overrides winning."""
        values: dict[str, Any] = {
            "num_tests": settings.num_tests,
            "engine_options": dict(settings.engine_options),
            "max_workers": settings.max_workers,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


# Dynaconf bookkeeping entries that are not settings
_DYNACONF_INTERNAL_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


def _to_settings(dynaconf_settings: Any) -> SpecguardSettings:
    """Validate loaded Dynaconf values; Dynaconf returns uppercase keys."""
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in _DYNACONF_INTERNAL_KEYS}
    return SpecguardSettings(**raw_config)


def load_settings(config_path: Path) -> SpecguardSettings:
    """Load settings from a YAML file with environment variable overrides.

    Precedence (highest first):
    1. Environment variables (SPECGUARD_*)
    2. Config file
    3. Defaults from the Pydantic schema

    Args:
        config_path: Path to YAML configuration file

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SPECGUARD",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    return _to_settings(dynaconf_settings)


def settings_from_env() -> SpecguardSettings:
    """Settings from SPECGUARD_* environment variables only."""
    from dynaconf import Dynaconf

    dynaconf_settings = Dynaconf(envvar_prefix="SPECGUARD", environments=False, load_dotenv=False)
    return _to_settings(dynaconf_settings)
