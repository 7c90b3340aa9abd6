"""NASA POWER daily point source (``ALLSKY_SFC_SW_DWN``)."""

from __future__ import annotations

from typing import Any, Dict

import pandas as pd
import requests

from solarsite.core.config import NasaPowerSettings
from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import IrradianceSourceId
from .base import DAY_S, ProviderError, get_json

PARAMETER = "ALLSKY_SFC_SW_DWN"
MJ_TO_KWH = 0.2778
# Daily values outside this open interval are fill values (-999) or sensor noise.
DAILY_MJ_RANGE = (0.0, 50.0)
ANNUAL_KWH_RANGE = (500.0, 3000.0)


def daily_series(payload: Dict[str, Any]) -> pd.Series:
    """Daily MJ/m²/day values indexed by date."""
    block = ((payload.get("properties") or {}).get("parameter") or {}).get(PARAMETER)
    if not isinstance(block, dict) or not block:
        raise ProviderError(f"NASA POWER response missing properties.parameter.{PARAMETER}")
    series = pd.Series(block, dtype=float)
    series.index = pd.to_datetime(series.index, format="%Y%m%d", errors="coerce")
    return series[series.index.notna()].sort_index()


class NasaPowerProvider:
    """Sum of one calendar year of daily all-sky GHI, converted to kWh/m²/yr."""

    source_id = IrradianceSourceId.NASA_POWER
    label = "NASA POWER"

    def __init__(
        self,
        settings: NasaPowerSettings | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or NasaPowerSettings()
        self.session = session or requests.Session()
        self.timeout_s = self.settings.timeout_s
        self.ttl_s = self.settings.ttl_days * DAY_S

    def is_configured(self) -> bool:
        return self.settings.enabled

    def cache_params(self) -> Dict[str, Any]:
        return {"year": int(self.settings.year)}

    def _build_params(self, lat: float, lng: float) -> Dict[str, str]:
        year = int(self.settings.year)
        return {
            "parameters": PARAMETER,
            "community": "SB",
            "longitude": f"{lng:.6f}",
            "latitude": f"{lat:.6f}",
            "start": f"{year}0101",
            "end": f"{year}1231",
            "format": "JSON",
        }

    def fetch(self, lat: float, lng: float, debug: DebugCollector | None = None) -> Dict[str, Any]:
        debug = debug or NullDebugCollector()
        params = self._build_params(lat, lng)
        debug.emit("source.request", {"url": self.settings.base_url, "params": params})
        return get_json(self.session, self.settings.base_url, params, self.timeout_s)

    def annual_irradiance(self, payload: Dict[str, Any]) -> float:
        series = daily_series(payload)
        lo, hi = DAILY_MJ_RANGE
        valid = series[(series > lo) & (series < hi)]
        if valid.empty:
            raise ProviderError("NASA POWER returned no valid daily values")
        total = float(valid.sum()) * MJ_TO_KWH
        if not (ANNUAL_KWH_RANGE[0] <= total <= ANNUAL_KWH_RANGE[1]):
            raise ProviderError(
                f"NASA POWER annual GHI {total:.0f} kWh/m2/yr outside plausible range "
                f"{ANNUAL_KWH_RANGE[0]:.0f}-{ANNUAL_KWH_RANGE[1]:.0f}"
            )
        return round(total, 1)


__all__ = ["NasaPowerProvider", "daily_series"]
