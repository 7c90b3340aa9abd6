"""PVGIS PVcalc irradiance source."""

from __future__ import annotations

from typing import Any, Dict

import requests

from solarsite.core.config import PVGISSettings
from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import IrradianceSourceId
from .base import DAY_S, ProviderError, get_json


def compass_to_pvgis_aspect(azimuth_deg: float) -> float:
    """Compass azimuth (0 = N, clockwise) to PVGIS aspect (0 = S, west positive, [-180, 180))."""
    aspect = float(azimuth_deg) % 360.0 - 180.0
    return round(aspect, 6)


class PVGISProvider:
    """Annual in-plane irradiation ``H(i)_y`` from the PVcalc endpoint.

    The engine queries the horizontal plane (``angle=0``) so the value is a GHI
    the production model can transpose itself.
    """

    source_id = IrradianceSourceId.PVGIS
    label = "PVGIS"

    def __init__(
        self,
        settings: PVGISSettings | None = None,
        session: requests.Session | None = None,
        tilt_deg: float = 0.0,
        azimuth_deg: float = 180.0,
    ):
        self.settings = settings or PVGISSettings()
        self.session = session or requests.Session()
        self.tilt_deg = float(tilt_deg)
        self.azimuth_deg = float(azimuth_deg) % 360.0
        self.timeout_s = self.settings.timeout_s
        self.ttl_s = self.settings.ttl_days * DAY_S

    def is_configured(self) -> bool:
        return self.settings.enabled

    def cache_params(self) -> Dict[str, Any]:
        return {
            "angle": round(self.tilt_deg, 2),
            "aspect": compass_to_pvgis_aspect(self.azimuth_deg),
            "peakpower": self.settings.peak_power_kw,
        }

    def _build_params(self, lat: float, lng: float) -> Dict[str, str]:
        return {
            "lat": f"{lat:.6f}",
            "lon": f"{lng:.6f}",
            "peakpower": f"{self.settings.peak_power_kw:g}",
            "loss": f"{self.settings.loss_percent:g}",
            "angle": f"{self.tilt_deg:g}",
            "aspect": f"{compass_to_pvgis_aspect(self.azimuth_deg):g}",
            "outputformat": "json",
        }

    def fetch(self, lat: float, lng: float, debug: DebugCollector | None = None) -> Dict[str, Any]:
        debug = debug or NullDebugCollector()
        params = self._build_params(lat, lng)
        debug.emit("source.request", {"url": self.settings.base_url, "params": params})
        return get_json(self.session, self.settings.base_url, params, self.timeout_s)

    def annual_irradiance(self, payload: Dict[str, Any]) -> float:
        fixed = ((payload.get("outputs") or {}).get("totals") or {}).get("fixed")
        if not isinstance(fixed, dict) or fixed.get("H(i)_y") is None:
            raise ProviderError("PVGIS response missing outputs.totals.fixed['H(i)_y']")
        try:
            value = float(fixed["H(i)_y"])
        except (TypeError, ValueError) as exc:
            raise ProviderError("PVGIS H(i)_y is not numeric") from exc
        if value <= 0:
            raise ProviderError(f"PVGIS returned non-positive irradiation: {value}")
        return value


__all__ = ["PVGISProvider", "compass_to_pvgis_aspect"]
