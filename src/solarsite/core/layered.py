"""Layered field resolution.

Each analysis field (area, shading, temperature, tilt, azimuth) is resolved from
an ordered list of candidate layers. The first layer that yields a value wins,
and the winning layer's name travels with the value so the record can explain
where every number came from.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, Sequence, Tuple, TypeVar, Union

from solarsite.core.debug import DebugCollector, NullDebugCollector

T = TypeVar("T")

Candidate = Union[Optional[T], Callable[[], Optional[T]]]


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T
    layer: str


def resolve_layered(
    field_name: str,
    layers: Sequence[Tuple[str, Candidate]],
    debug: DebugCollector | None = None,
) -> Resolved:
    """Return the first non-``None`` candidate together with its layer name.

    Candidates may be plain values or zero-argument callables; callables are
    evaluated lazily, so expensive layers below the winner never run. The last
    layer must always produce a value.
    """

    debug = debug or NullDebugCollector()
    skipped = []
    for name, candidate in layers:
        value = candidate() if callable(candidate) else candidate
        if value is not None:
            debug.emit(f"resolve.{field_name}", {"layer": name, "value": _loggable(value), "skipped": skipped})
            return Resolved(value=value, layer=name)
        skipped.append(name)
    raise ValueError(f"No layer resolved a value for {field_name}; tried {skipped}")


def _loggable(value: Any) -> Any:
    if isinstance(value, (int, float, str, bool)):
        return value
    return repr(value)


def resolution_summary(resolved: Dict[str, Resolved]) -> Dict[str, str]:
    return {name: res.layer for name, res in resolved.items()}


__all__ = ["Resolved", "resolve_layered", "resolution_summary"]
