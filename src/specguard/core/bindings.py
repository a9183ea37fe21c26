# src/specguard/core/bindings.py
"""Binding resolution for named units.

A unit is named by a string in ``pkgutil.resolve_name`` form, either
``"package.module:Qual.name"`` or ``"package.module.attr"``. Instrumentation
never holds an owning reference to a unit: it resolves the name whenever it
needs the live callable and rebinds the name to install or restore a proxy.

Two resolvers are provided:

- ModuleBindingResolver: rebinds module/class attributes in place, so every
  call site that looks the name up at call time sees the proxy.
- CellBindingResolver: an explicit name -> BindingCell table. Call sites hold
  the cell and indirect through it, which keeps rebinding visible even to
  callers that captured the callable before instrumentation.
"""

from __future__ import annotations

import importlib
import inspect
import pkgutil
import threading
from collections.abc import Callable, Iterable
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class BindingResolver(Protocol):
    """Resolve, read and rebind named units."""

    def resolve(self, name: str) -> Callable[..., Any] | None:
        """Return the live callable for name, or None if it cannot be resolved."""
        ...

    def current_binding(self, name: str) -> Any:
        """Return the stored binding of name, descriptors included."""
        ...

    def set_binding(self, name: str, value: Any) -> None:
        """Rebind name to value."""
        ...


class ModuleBindingResolver:
    """Resolve units as attributes of imported modules (or classes in them)."""

    def resolve(self, name: str) -> Callable[..., Any] | None:
        try:
            target = pkgutil.resolve_name(name)
        except (ImportError, AttributeError, ValueError):
            return None
        if not callable(target):
            return None
        return target

    def current_binding(self, name: str) -> Any:
        """The attribute as stored on its owner.

        Read statically, so staticmethod and classmethod descriptors come back
        as themselves rather than as the function or bound method.
        """
        owner, attr = self._owner_and_attr(name)
        return inspect.getattr_static(owner, attr)

    def set_binding(self, name: str, value: Any) -> None:
        owner, attr = self._owner_and_attr(name)
        setattr(owner, attr, value)

    @staticmethod
    def _owner_and_attr(name: str) -> tuple[Any, str]:
        if ":" in name:
            module_name, _, qualname = name.partition(":")
            owner: Any = importlib.import_module(module_name)
            *parents, attr = qualname.split(".")
            for part in parents:
                owner = getattr(owner, part)
            return owner, attr
        head, _, attr = name.rpartition(".")
        if not head:
            raise ValueError(f"Unit name {name!r} has no owning module")
        return pkgutil.resolve_name(head), attr


class BindingCell:
    """A mutable "current callable" cell that call sites indirect through."""

    __slots__ = ("name", "target")

    def __init__(self, name: str, target: Callable[..., Any]) -> None:
        self.name = name
        self.target = target

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.target(*args, **kwargs)

    def __repr__(self) -> str:
        return f"BindingCell({self.name!r}, {self.target!r})"


class CellBindingResolver:
    """An explicit name -> BindingCell table.

    Example:
        >>> resolver = CellBindingResolver()
        >>> inc = resolver.define("demo:inc", lambda x: x + 1)
        >>> inc(1)
        2
    """

    def __init__(self) -> None:
        self._cells: dict[str, BindingCell] = {}
        self._lock = threading.Lock()

    def define(self, name: str, target: Callable[..., Any]) -> BindingCell:
        """Create (or retarget) the cell for name and return it."""
        with self._lock:
            cell = self._cells.get(name)
            if cell is None:
                cell = BindingCell(name, target)
                self._cells[name] = cell
            else:
                cell.target = target
            return cell

    def cell(self, name: str) -> BindingCell:
        return self._cells[name]

    def names(self) -> set[str]:
        return set(self._cells)

    def resolve(self, name: str) -> Callable[..., Any] | None:
        cell = self._cells.get(name)
        return None if cell is None else cell.target

    def current_binding(self, name: str) -> Any:
        return self._cells[name].target

    def set_binding(self, name: str, value: Callable[..., Any]) -> None:
        self._cells[name].target = value


def enumerate_module(module_names: str | Iterable[str]) -> set[str]:
    """Return the names of all public functions defined in the given modules.

    Functions imported from elsewhere are excluded; names are returned in
    ``module:function`` form, suitable for instrument() and check().

    Args:
        module_names: A module name or an iterable of module names
    """
    if isinstance(module_names, str):
        module_names = [module_names]
    names: set[str] = set()
    for module_name in module_names:
        module = importlib.import_module(module_name)
        for attr, value in vars(module).items():
            if attr.startswith("_") or not inspect.isfunction(value):
                continue
            if value.__module__ != module.__name__:
                continue
            names.add(f"{module_name}:{attr}")
    logger.debug("modules_enumerated", modules=list(module_names), units=len(names))
    return names
