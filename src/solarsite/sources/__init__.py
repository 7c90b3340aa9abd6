"""Irradiance providers, response caches and the source cascade."""

from __future__ import annotations

from typing import List

import requests

from solarsite.core.config import EngineConfig
from .base import IrradianceProvider, ProviderError
from .cache import CacheEntry, FileResponseCache, MemoryResponseCache, ResponseCache, cache_key
from .cascade import CascadeResult, IrradianceSample, SourceAttempt, SourceTrace, resolve_irradiance
from .nasa_power import NasaPowerProvider
from .pvgis import PVGISProvider
from .solar_api import PanelConfig, SolarApiProvider, SolarInsights, parse_building_insights


def default_providers(
    config: EngineConfig,
    *,
    azimuth_deg: float = 180.0,
    session: requests.Session | None = None,
) -> List[IrradianceProvider]:
    """Providers in cascade order.

    The cascade calls providers from worker threads, so each provider opens its
    own ``requests.Session`` unless a ``session`` is injected (tests).

    PVGIS is asked for the horizontal plane so its value is comparable with the
    other (horizontal) sources.
    """
    return [
        SolarApiProvider(config.solar_api, session=session),
        PVGISProvider(config.pvgis, session=session, tilt_deg=0.0, azimuth_deg=azimuth_deg),
        NasaPowerProvider(config.nasa_power, session=session),
    ]


__all__ = [
    "CacheEntry",
    "CascadeResult",
    "FileResponseCache",
    "IrradianceProvider",
    "IrradianceSample",
    "MemoryResponseCache",
    "NasaPowerProvider",
    "PVGISProvider",
    "PanelConfig",
    "ProviderError",
    "ResponseCache",
    "SolarApiProvider",
    "SolarInsights",
    "SourceAttempt",
    "SourceTrace",
    "cache_key",
    "default_providers",
    "parse_building_insights",
    "resolve_irradiance",
]
