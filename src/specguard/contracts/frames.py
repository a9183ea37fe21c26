"""Stack frame records used for caller attribution."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RawFrame:
    """A frame as captured from the interpreter, innermost first.

    Fields:
        module: Value of ``__name__`` in the frame's globals (None if absent)
        qualname: The code object's qualified name (``co_qualname``)
        filename: Source file of the code object
        lineno: Line currently executing in the frame
    """

    module: str | None
    qualname: str
    filename: str
    lineno: int | None


@dataclass(frozen=True, slots=True)
class InterpretedFrame:
    """A raw frame annotated with the unit that scopes it.

    ``unit`` is the ``module:function`` name of the enclosing named callable,
    ``local_fn`` the nested local function (if the frame belongs to one).
    """

    module: str | None
    qualname: str
    file: str
    line: int | None
    unit: str | None = None
    local_fn: str | None = None

    def as_caller(self) -> CallerFrame:
        """Drop the raw module/qualname, which mean nothing to the end user."""
        return CallerFrame(unit=self.unit, local_fn=self.local_fn, file=self.file, line=self.line)


@dataclass(frozen=True, slots=True)
class CallerFrame:
    """The caller annotation attached to instrumentation failures."""

    unit: str | None
    local_fn: str | None
    file: str
    line: int | None
