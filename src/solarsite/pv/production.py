"""Annual production model.

``DC = GHI × area × module_efficiency × effective_pr × transposition × (1 − shade)``

Temperature and degradation enter the result only through ``effective_pr``
(``base_pr × temperature_factor × degradation_factor × regional_multiplier``).
They are never applied a second time as explicit multipliers; the regression
test in ``tests/pv/test_production_formula.py`` pins this.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import pvlib

from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import ModuleType, RoofSegment, ValidationError
from solarsite.regional.heuristics import regional_pr_multiplier

STC_TEMP_C = 25.0
DEFAULT_BASE_PR = 0.82
DEFAULT_INVERTER_EFFICIENCY = 0.96
DEFAULT_DEGRADATION_RATE = 0.006
DEFAULT_TEMPERATURE_COEFFICIENT_PCT = 0.4
DEFAULT_MODULE_EFFICIENCY = 0.215
LIFETIME_YEARS = 25
# Relative slack when fitting a panel layout into a measured or manual area.
AREA_FIT_TOLERANCE = 0.01

MODULE_EFFICIENCY = {
    ModuleType.MONO: 0.215,
    ModuleType.POLY: 0.20,
    ModuleType.THIN_FILM: 0.14,
}

LIU_JORDAN_BOUNDS = (0.7, 1.1)
SIMPLE_BOUNDS = (0.5, 1.2)

METHOD_MODELED = "modeled"
METHOD_UPSTREAM = "upstream"


@dataclass(frozen=True)
class ProductionResult:
    dc_kwh: float
    ac_kwh: float
    year1_kwh: float
    year25_kwh: float
    transposition_factor: float
    temperature_loss_percent: float
    degradation_factor: float
    effective_pr: float
    module_efficiency: float
    method: str = METHOD_MODELED


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def liu_jordan_transposition(
    lat: float,
    tilt_deg: float,
    diffuse_ratio: float = 0.2,
    albedo: float = 0.2,
) -> float:
    """Isotropic-sky annual transposition factor for an equator-facing plane.

    ``(1−d)·Rb + d·(1+cos β)/2 + ρ·(1−cos β)/2`` with
    ``Rb = cos(|φ|−β) / cos(|φ|)``, clamped to [0.7, 1.1]. The sky-diffuse and
    ground-reflected terms come from :mod:`pvlib.irradiance` with unit GHI.
    """

    phi = math.radians(abs(lat))
    beta = math.radians(tilt_deg)
    cos_phi = math.cos(phi)
    rb = math.cos(phi - beta) / cos_phi if cos_phi > 1e-6 else 1.0
    sky = float(pvlib.irradiance.isotropic(tilt_deg, diffuse_ratio))
    ground = float(pvlib.irradiance.get_ground_diffuse(tilt_deg, 1.0, albedo=albedo))
    factor = (1.0 - diffuse_ratio) * rb + sky + ground
    return _clamp(factor, *LIU_JORDAN_BOUNDS)


def simple_transposition(lat: float, tilt_deg: float, azimuth_deg: float) -> float:
    """``cos(|φ|−β) · (1 − 0.1·|sin az|)`` clamped to [0.5, 1.2]."""
    base = math.cos(math.radians(abs(lat)) - math.radians(tilt_deg))
    az_factor = 1.0 - abs(math.sin(math.radians(azimuth_deg))) * 0.1
    return _clamp(base * az_factor, *SIMPLE_BOUNDS)


def transposition_factor(
    lat: float,
    tilt_deg: float,
    azimuth_deg: float,
    *,
    segments: Optional[Sequence[RoofSegment]] = None,
    model: str = "liu-jordan",
    diffuse_ratio: float = 0.2,
    albedo: float = 0.2,
) -> float:
    """Single-plane factor, or the area-weighted mean over roof segments."""

    def one(tilt: float, azimuth: float) -> float:
        if model == "simple":
            return simple_transposition(lat, tilt, azimuth)
        if model == "liu-jordan":
            return liu_jordan_transposition(lat, tilt, diffuse_ratio, albedo)
        raise ValueError(f"Unknown transposition model: {model}")

    segs = [s for s in segments or () if s.area_m2 > 0]
    if not segs:
        return one(tilt_deg, azimuth_deg)
    total = sum(s.area_m2 for s in segs)
    return sum(one(s.tilt_deg, s.azimuth_deg) * s.area_m2 for s in segs) / total


def temperature_loss_percent(
    temperature_c: float, coefficient_pct_per_c: float = DEFAULT_TEMPERATURE_COEFFICIENT_PCT
) -> float:
    """``clamp((T − 25) × coefficient, −50, 0)``: a loss in percent, never a gain."""
    return _clamp((temperature_c - STC_TEMP_C) * abs(coefficient_pct_per_c), -50.0, 0.0)


def degradation_factor(age_years: float, rate: float = DEFAULT_DEGRADATION_RATE) -> float:
    if age_years <= 0:
        return 1.0
    return (1.0 - rate) ** age_years


def effective_pr(
    base_pr: float,
    temperature_loss_pct: float,
    degradation: float,
    regional_multiplier: float = 1.0,
) -> float:
    return base_pr * (1.0 + temperature_loss_pct / 100.0) * degradation * regional_multiplier


def module_efficiency_for(module_type: ModuleType | str | None, explicit: float | None = None) -> float:
    if explicit is not None:
        if not (0 < explicit <= 1):
            raise ValidationError("module_efficiency must be in (0, 1]")
        return float(explicit)
    if module_type is None:
        return DEFAULT_MODULE_EFFICIENCY
    return MODULE_EFFICIENCY[ModuleType(module_type)]


def estimate(
    ghi: float,
    area_m2: float,
    shade_index: float,
    tilt_deg: float,
    azimuth_deg: float,
    lat: float,
    temperature_c: float,
    system_age_years: float,
    module_efficiency: float | None = None,
    pr: float | None = None,
    *,
    segments: Optional[Iterable[RoofSegment]] = None,
    lng: float | None = None,
    module_type: ModuleType | str | None = None,
    inverter_efficiency: float = DEFAULT_INVERTER_EFFICIENCY,
    degradation_rate: float = DEFAULT_DEGRADATION_RATE,
    temperature_coefficient_pct: float = DEFAULT_TEMPERATURE_COEFFICIENT_PCT,
    model: str = "liu-jordan",
    diffuse_ratio: float = 0.2,
    albedo: float = 0.2,
    debug: DebugCollector | None = None,
) -> ProductionResult:
    """Model annual DC/AC energy in kWh for one roof.

    ``lng`` enables the regional PR multiplier; without it the multiplier is 1.
    """

    debug = debug or NullDebugCollector()
    if ghi < 0 or not math.isfinite(ghi):
        raise ValidationError("ghi must be a non-negative finite number")
    if area_m2 < 0 or not math.isfinite(area_m2):
        raise ValidationError("area_m2 must be a non-negative finite number")
    if system_age_years < 0:
        raise ValidationError("system_age_years must be non-negative")
    if not (0 < inverter_efficiency <= 1):
        raise ValidationError("inverter_efficiency must be in (0, 1]")

    eff = module_efficiency_for(module_type, module_efficiency)
    base_pr = DEFAULT_BASE_PR if pr is None else float(pr)
    transposition = transposition_factor(
        lat,
        tilt_deg,
        azimuth_deg,
        segments=list(segments) if segments is not None else None,
        model=model,
        diffuse_ratio=diffuse_ratio,
        albedo=albedo,
    )
    temp_loss = temperature_loss_percent(temperature_c, temperature_coefficient_pct)
    degradation = degradation_factor(system_age_years, degradation_rate)
    multiplier = regional_pr_multiplier(lat, lng) if lng is not None else 1.0
    e_pr = effective_pr(base_pr, temp_loss, degradation, multiplier)
    shade_mult = 1.0 - _clamp(float(shade_index), 0.0, 1.0)

    dc = ghi * area_m2 * eff * e_pr * transposition * shade_mult
    ac = dc * inverter_efficiency
    result = ProductionResult(
        dc_kwh=dc,
        ac_kwh=ac,
        year1_kwh=ac,
        year25_kwh=ac * (1.0 - degradation_rate) ** LIFETIME_YEARS,
        transposition_factor=transposition,
        temperature_loss_percent=temp_loss,
        degradation_factor=degradation,
        effective_pr=e_pr,
        module_efficiency=eff,
        method=METHOD_MODELED,
    )
    _emit_summary(debug, result, ghi=ghi, area_m2=area_m2, shade_index=shade_index, regional_multiplier=multiplier)
    return result


def from_upstream_yield(
    dc_kwh: float,
    *,
    inverter_efficiency: float = DEFAULT_INVERTER_EFFICIENCY,
    degradation_rate: float = DEFAULT_DEGRADATION_RATE,
    module_efficiency: float = DEFAULT_MODULE_EFFICIENCY,
    debug: DebugCollector | None = None,
) -> ProductionResult:
    """Wrap a provider-computed DC yield; only the inverter loss is applied."""

    debug = debug or NullDebugCollector()
    if dc_kwh < 0 or not math.isfinite(dc_kwh):
        raise ValidationError("dc_kwh must be a non-negative finite number")
    ac = dc_kwh * inverter_efficiency
    result = ProductionResult(
        dc_kwh=float(dc_kwh),
        ac_kwh=ac,
        year1_kwh=ac,
        year25_kwh=ac * (1.0 - degradation_rate) ** LIFETIME_YEARS,
        transposition_factor=1.0,
        temperature_loss_percent=0.0,
        degradation_factor=1.0,
        effective_pr=1.0,
        module_efficiency=module_efficiency,
        method=METHOD_UPSTREAM,
    )
    _emit_summary(debug, result)
    return result


def select_panel_config(
    configs: Sequence,
    usable_area_m2: float | None = None,
    panel_area_m2: float | None = None,
    *,
    max_panels: int | None = None,
    tolerance: float = AREA_FIT_TOLERANCE,
):
    """Highest-yield panel layout allowed by the caps given, else ``None``.

    ``configs`` items expose ``panels_count`` and ``yearly_energy_dc_kwh``.
    ``max_panels`` caps the panel count directly (the provider's own array
    limit). When ``usable_area_m2`` is given the total panel area must fit it
    within a relative ``tolerance``. With neither cap the best layout wins.
    """
    candidates = [c for c in configs if c.panels_count > 0]
    if max_panels is not None:
        candidates = [c for c in candidates if c.panels_count <= max_panels]
    if usable_area_m2 is not None:
        if not panel_area_m2 or panel_area_m2 <= 0 or usable_area_m2 <= 0:
            return None
        limit = usable_area_m2 * (1.0 + tolerance)
        candidates = [c for c in candidates if c.panels_count * panel_area_m2 <= limit]
    if not candidates:
        return None
    return max(candidates, key=lambda c: (c.yearly_energy_dc_kwh, c.panels_count))


def _emit_summary(debug: DebugCollector, result: ProductionResult, **inputs) -> None:
    payload = {
        "method": result.method,
        "dc_kwh": round(result.dc_kwh, 3),
        "ac_kwh": round(result.ac_kwh, 3),
        "transposition_factor": round(result.transposition_factor, 6),
        "temperature_loss_percent": round(result.temperature_loss_percent, 3),
        "degradation_factor": round(result.degradation_factor, 6),
        "effective_pr": round(result.effective_pr, 6),
        "module_efficiency": result.module_efficiency,
    }
    payload.update({k: v for k, v in inputs.items() if v is not None})
    debug.emit("production.summary", payload)


__all__ = [
    "AREA_FIT_TOLERANCE",
    "MODULE_EFFICIENCY",
    "ProductionResult",
    "degradation_factor",
    "effective_pr",
    "estimate",
    "from_upstream_yield",
    "liu_jordan_transposition",
    "module_efficiency_for",
    "select_panel_config",
    "simple_transposition",
    "temperature_loss_percent",
    "transposition_factor",
]
