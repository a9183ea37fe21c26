# src/specguard/engine/stack.py
"""Caller attribution for instrumentation failures.

When a checking proxy rejects its arguments, the interesting frame is the
code that *called* the instrumented unit, not the proxy itself. This module
captures the current stack, maps each frame to the named unit that scopes
it, and skips the leading run of instrumentation plumbing.

Attribution is best-effort: a frame that cannot be mapped to a unit is
dropped, and an empty result simply means no caller annotation.
"""

from __future__ import annotations

import sys
import traceback
from collections.abc import Iterable, Iterator
from types import FrameType

from specguard.contracts.frames import InterpretedFrame, RawFrame

# Modules whose frames are instrumentation plumbing, never a genuine caller
PLUMBING_MODULES: frozenset[str] = frozenset(
    {
        "specguard.engine.instrument",
        "specguard.engine.stack",
        "specguard.core.bindings",
    }
)

_LOCALS = ".<locals>."


def _raw_frame(frame: FrameType, lineno: int | None) -> RawFrame:
    code = frame.f_code
    return RawFrame(
        module=frame.f_globals.get("__name__"),
        qualname=getattr(code, "co_qualname", code.co_name),
        filename=code.co_filename,
        lineno=lineno,
    )


def capture_stack(frame: FrameType | None = None) -> list[RawFrame]:
    """Capture the stack starting at frame (default: the caller), innermost first."""
    if frame is None:
        frame = sys._getframe(1)
    return [_raw_frame(f, lineno) for f, lineno in traceback.walk_stack(frame)]


def interpret_frame(raw: RawFrame) -> InterpretedFrame:
    """Annotate a raw frame with its enclosing unit and nested local function.

    ``pkg.mod`` + ``Outer.method.<locals>.helper`` interprets to unit
    ``pkg.mod:Outer.method`` with local_fn ``helper``. Module-level code and
    other ``<...>`` pseudo-scopes have no unit.
    """
    frame = InterpretedFrame(module=raw.module, qualname=raw.qualname, file=raw.filename, line=raw.lineno)
    if raw.module is None or raw.qualname.startswith("<"):
        return frame
    head, sep, local = raw.qualname.partition(_LOCALS)
    unit = f"{raw.module}:{head}"
    local_fn = local.replace(_LOCALS, ".") if sep else None
    return InterpretedFrame(
        module=raw.module,
        qualname=raw.qualname,
        file=raw.filename,
        line=raw.lineno,
        unit=unit,
        local_fn=local_fn,
    )


def _is_plumbing(frame: InterpretedFrame) -> bool:
    return frame.module in PLUMBING_MODULES


def stack_relevant_to_instrument(frames: Iterable[RawFrame]) -> Iterator[InterpretedFrame]:
    """Interpreted frames that scope a unit, minus the leading plumbing run."""
    interpreted = (f for f in map(interpret_frame, frames) if f.unit is not None)
    skipping = True
    for frame in interpreted:
        if skipping and _is_plumbing(frame):
            continue
        skipping = False
        yield frame


def nearest_caller(frames: Iterable[RawFrame]) -> InterpretedFrame | None:
    """The first genuine caller frame, or None when nothing is left."""
    return next(stack_relevant_to_instrument(frames), None)
