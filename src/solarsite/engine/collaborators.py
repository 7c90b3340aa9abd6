"""Interfaces the engine consumes but does not implement."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import Polygon


@dataclass(frozen=True)
class Footprint:
    polygon: Polygon
    confidence: float = 0.5
    source: str = "footprint"


class FootprintLookup(Protocol):
    """Building-footprint lookup; ``None`` means nothing found and the user must draw the roof."""

    def lookup(self, lat: float, lng: float) -> Optional[Footprint]:
        ...


class AnalysisStore(Protocol):
    """Persists an analysis response and returns its identifier."""

    def save(self, record: Dict[str, Any]) -> str:
        ...


def save_analysis(store: AnalysisStore, record: Dict[str, Any], debug: DebugCollector | None = None) -> str:
    debug = debug or NullDebugCollector()
    record_id = store.save(record)
    debug.emit("analysis.saved", {"id": record_id, "verdict": record.get("verdict")})
    return record_id


__all__ = ["AnalysisStore", "Footprint", "FootprintLookup", "save_analysis"]
