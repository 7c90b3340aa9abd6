"""Primary building-insights source (Google Solar API ``buildingInsights:findClosest``)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from solarsite.core.config import SolarApiSettings
from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import IrradianceSourceId, RoofSegment, ValidationError
from .base import DAY_S, ProviderError, get_json

# Used when the payload omits panel dimensions.
DEFAULT_PANEL_HEIGHT_M = 1.879
DEFAULT_PANEL_WIDTH_M = 1.045
DEFAULT_PANEL_CAPACITY_W = 400.0
WHOLE_ROOF_USABLE_SHARE = 0.7


@dataclass(frozen=True)
class PanelConfig:
    panels_count: int
    yearly_energy_dc_kwh: float


@dataclass(frozen=True)
class SolarInsights:
    """The parts of a building-insights payload the engine consumes."""

    annual_irradiance: float
    usable_area_m2: Optional[float]
    segments: Tuple[RoofSegment, ...]
    measured_shading: Optional[float]
    panel_configs: Tuple[PanelConfig, ...]
    panel_area_m2: float
    panel_capacity_watts: float
    max_panels_count: Optional[int] = None
    imagery_quality: Optional[str] = None


def _measured_shading(quantiles: List[float] | None) -> Optional[float]:
    if not quantiles:
        return None
    peak = float(quantiles[-1])
    if peak <= 0:
        return None
    median = float(quantiles[len(quantiles) // 2])
    return min(max(1.0 - median / peak, 0.0), 1.0)


def _segments(raw: List[Dict[str, Any]]) -> Tuple[RoofSegment, ...]:
    segs = []
    for item in raw or []:
        stats = item.get("stats") or {}
        try:
            segs.append(
                RoofSegment(
                    area_m2=float(stats.get("areaMeters2", 0.0)),
                    tilt_deg=float(item.get("pitchDegrees", 0.0)),
                    azimuth_deg=float(item.get("azimuthDegrees", 0.0)),
                )
            )
        except (TypeError, ValueError, ValidationError):
            # skip segments with out-of-range stats rather than failing the whole payload
            continue
    return tuple(segs)


def parse_building_insights(payload: Dict[str, Any]) -> SolarInsights:
    potential = payload.get("solarPotential")
    if not isinstance(potential, dict):
        raise ProviderError("no solarPotential in building insights response")
    sunshine = potential.get("maxSunshineHoursPerYear")
    if sunshine is None:
        raise ProviderError("building insights response missing maxSunshineHoursPerYear")
    try:
        annual = float(sunshine)
    except (TypeError, ValueError) as exc:
        raise ProviderError("maxSunshineHoursPerYear is not numeric") from exc
    if annual <= 0:
        raise ProviderError(f"non-positive sunshine hours: {annual}")

    whole = potential.get("wholeRoofStats") or {}
    usable = potential.get("maxArrayAreaMeters2")
    if usable is None and whole.get("areaMeters2") is not None:
        usable = float(whole["areaMeters2"]) * WHOLE_ROOF_USABLE_SHARE
    configs = tuple(
        PanelConfig(panels_count=int(c.get("panelsCount", 0)), yearly_energy_dc_kwh=float(c.get("yearlyEnergyDcKwh", 0.0)))
        for c in potential.get("solarPanelConfigs") or []
    )
    max_panels = potential.get("maxArrayPanelsCount")
    height = float(potential.get("panelHeightMeters") or DEFAULT_PANEL_HEIGHT_M)
    width = float(potential.get("panelWidthMeters") or DEFAULT_PANEL_WIDTH_M)
    return SolarInsights(
        annual_irradiance=annual,
        usable_area_m2=float(usable) if usable is not None and float(usable) > 0 else None,
        segments=_segments(potential.get("roofSegmentStats")),
        measured_shading=_measured_shading(whole.get("sunshineQuantiles")),
        panel_configs=configs,
        panel_area_m2=height * width,
        panel_capacity_watts=float(potential.get("panelCapacityWatts") or DEFAULT_PANEL_CAPACITY_W),
        max_panels_count=int(max_panels) if max_panels else None,
        imagery_quality=payload.get("imageryQuality"),
    )


class SolarApiProvider:
    """Building insights: irradiance plus roof area, segments, shading and panel layouts.

    One sun-hour equals 1 kWh/m², so ``maxSunshineHoursPerYear`` is used as the
    annual irradiance directly. The provider is skipped when no API key is set.
    """

    source_id = IrradianceSourceId.PRIMARY_SOLAR_API
    label = "Solar API"

    def __init__(
        self,
        settings: SolarApiSettings | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or SolarApiSettings()
        self.session = session or requests.Session()
        self.timeout_s = self.settings.timeout_s
        self.ttl_s = self.settings.ttl_days * DAY_S

    def is_configured(self) -> bool:
        return self.settings.enabled and bool(self.settings.api_key)

    def cache_params(self) -> Dict[str, Any]:
        return {"radius_m": self.settings.radius_m, "quality": self.settings.required_quality}

    def _build_params(self, lat: float, lng: float) -> Dict[str, str]:
        return {
            "location.latitude": f"{lat:.6f}",
            "location.longitude": f"{lng:.6f}",
            "requiredQuality": self.settings.required_quality,
            "key": self.settings.api_key or "",
        }

    def fetch(self, lat: float, lng: float, debug: DebugCollector | None = None) -> Dict[str, Any]:
        debug = debug or NullDebugCollector()
        params = self._build_params(lat, lng)
        redacted = {k: ("***" if k == "key" else v) for k, v in params.items()}
        debug.emit("source.request", {"url": self.settings.base_url, "params": redacted})
        return get_json(
            self.session,
            self.settings.base_url,
            params,
            self.timeout_s,
            not_found_message="no solar API coverage for this location",
        )

    def annual_irradiance(self, payload: Dict[str, Any]) -> float:
        return parse_building_insights(payload).annual_irradiance


__all__ = ["PanelConfig", "SolarApiProvider", "SolarInsights", "parse_building_insights"]
