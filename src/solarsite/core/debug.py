"""Structured debug events for one analysis.

Every stage of the engine reports what it decided through ``emit(stage,
payload, provider=...)``. Payloads are normalised (enums to values, tuples to
lists, mappings key-sorted) so two runs of the same request produce identical
event streams apart from timestamps.
"""
from __future__ import annotations

import datetime as _dt
import json
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol


class DebugCollector(Protocol):
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        ...


def _plain(val: Any) -> Any:
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, (_dt.datetime, _dt.date, _dt.time)):
        return val.isoformat()
    return val


def normalise_payload(obj: Any) -> Any:
    """Recursively convert ``obj`` to JSON-ready values with sorted mapping keys."""
    if isinstance(obj, dict):
        items = ((str(_plain(k)), v) for k, v in obj.items())
        return {k: normalise_payload(v) for k, v in sorted(items, key=lambda kv: kv[0])}
    if isinstance(obj, (list, tuple)):
        return [normalise_payload(v) for v in obj]
    return _plain(obj)


def _event(stage: str, payload: Dict[str, Any], ts: Any, provider: Optional[str], stamp: bool) -> Dict[str, Any]:
    if ts is None and stamp:
        ts = _dt.datetime.now(_dt.timezone.utc)
    return {"stage": stage, "ts": _plain(ts), "provider": provider, "payload": normalise_payload(payload)}


class NullDebugCollector:
    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        return


@dataclass
class ListDebugCollector:
    """Keeps events in memory; timestamps are only recorded when given."""

    events: List[Dict[str, Any]] = field(default_factory=list)

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        self.events.append(_event(stage, payload, ts, provider, stamp=False))

    def stages(self) -> List[str]:
        return [ev["stage"] for ev in self.events]

    def by_stage(self, stage: str) -> List[Dict[str, Any]]:
        return [ev for ev in self.events if ev["stage"] == stage]


class _FileWriter:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # providers emit from worker threads
        self._lock = threading.Lock()

    def close(self) -> None:
        ...


class JsonlDebugWriter(_FileWriter):
    """Appends one JSON object per event and flushes after each line."""

    def __init__(self, path: str | Path):
        super().__init__(path)
        self._fh = self.path.open("a", encoding="utf-8")

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        line = json.dumps(_event(stage, payload, ts, provider, stamp=True), sort_keys=True) + "\n"
        with self._lock:
            self._fh.write(line)
            self._fh.flush()

    def close(self) -> None:
        with self._lock:
            if not self._fh.closed:
                self._fh.close()


class JsonDebugWriter(_FileWriter):
    """Buffers events and writes a single JSON array on :meth:`close`."""

    def __init__(self, path: str | Path):
        super().__init__(path)
        self._events: List[Dict[str, Any]] = []

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        event = _event(stage, payload, ts, provider, stamp=True)
        with self._lock:
            self._events.append(event)

    def close(self) -> None:
        with self._lock:
            self.path.write_text(json.dumps(self._events, indent=2, sort_keys=True))


def build_debug_collector(path: str | Path) -> JsonDebugWriter | JsonlDebugWriter:
    """``*.json`` gets one JSON array per run, anything else JSON lines."""
    if str(path).lower().endswith(".json"):
        return JsonDebugWriter(path)
    return JsonlDebugWriter(path)


class ScopedDebugCollector:
    """Fills in ``provider`` on every event unless the caller passes one."""

    def __init__(self, inner: DebugCollector, *, provider: Optional[str] = None):
        self.inner = inner
        self.provider = provider

    def emit(self, stage: str, payload: Dict[str, Any], *, ts: Any = None, provider: Optional[str] = None) -> None:
        self.inner.emit(stage, payload, ts=ts, provider=self.provider if provider is None else provider)


__all__ = [
    "DebugCollector",
    "JsonDebugWriter",
    "JsonlDebugWriter",
    "ListDebugCollector",
    "NullDebugCollector",
    "ScopedDebugCollector",
    "build_debug_collector",
    "normalise_payload",
]
