"""End-to-end rooftop analysis.

request → geometry → irradiance cascade → layered field resolution →
production → classification → :class:`AnalysisRecord`.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import requests

from solarsite.classify.verdict import Verdict, classify
from solarsite.core.config import DEFAULT_CONFIG, EngineConfig
from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.layered import Resolved, resolution_summary, resolve_layered
from solarsite.core.models import (
    AnalysisRequest,
    AreaSource,
    Confidence,
    IrradianceSourceId,
    Polygon,
    ShadingSource,
    ValidationError,
)
from solarsite.geometry.area import polygon_area
from solarsite.geometry.orientation import (
    average_orientation,
    average_tilt,
    estimate_tilt_from_area,
    facing_from_ridge,
    ring_azimuth,
)
from solarsite.pv.finance import FinancialSummary, efficiency_adjustment, financial_analysis
from solarsite.pv.production import (
    ProductionResult,
    estimate,
    from_upstream_yield,
    module_efficiency_for,
    select_panel_config,
)
from solarsite.regional.heuristics import (
    ideal_azimuth,
    is_target_region,
    regional_temperature,
    shading_from_address,
    shading_from_description,
)
from solarsite.sources import default_providers
from solarsite.sources.base import IrradianceProvider
from solarsite.sources.cache import ResponseCache
from solarsite.sources.cascade import IrradianceSample, SourceTrace, resolve_irradiance
from .collaborators import FootprintLookup

CONFIDENCE_BY_SOURCE = {
    IrradianceSourceId.PRIMARY_SOLAR_API: Confidence.HIGH,
    IrradianceSourceId.PVGIS: Confidence.MEDIUM,
    IrradianceSourceId.NASA_POWER: Confidence.MEDIUM,
    IrradianceSourceId.REGIONAL_DEFAULT: Confidence.LOW,
}

COVERAGE_NOTES = {
    IrradianceSourceId.PRIMARY_SOLAR_API: "Building-level solar data available",
    IrradianceSourceId.PVGIS: "No building-level data; using PVGIS satellite irradiation",
    IrradianceSourceId.NASA_POWER: "No building-level data; using NASA POWER satellite irradiation",
    IrradianceSourceId.REGIONAL_DEFAULT: "No external data available; using regional irradiation estimates",
}

FOOTPRINT_NOT_FOUND = "No building footprint found for this location; draw the roof outline manually"


@dataclass(frozen=True)
class AnalysisRecord:
    request: AnalysisRequest
    polygon: Optional[Polygon]
    polygon_area_m2: Optional[float]
    usable_area_m2: float
    area_source: AreaSource
    usage_factor: float
    irradiance: IrradianceSample
    confidence: Confidence
    shading_index: float
    shading_source: ShadingSource
    temperature_c: float
    tilt_deg: float
    azimuth_deg: float
    production: ProductionResult
    verdict: Verdict
    trace: SourceTrace
    resolution: Dict[str, str]
    sources_used: Tuple[str, ...]
    warnings: Tuple[str, ...] = ()
    financial: Optional[FinancialSummary] = None

    @property
    def all_warnings(self) -> List[str]:
        return list(self.verdict.warnings) + [w for w in self.warnings if w not in self.verdict.warnings]

    def to_dict(self) -> Dict[str, Any]:
        """camelCase response consumed by the dashboard."""
        p = self.production
        out: Dict[str, Any] = {
            "address": self.request.address,
            "coordinates": {"lat": self.request.lat, "lng": self.request.lng},
            "polygon": [list(pt) for pt in self.polygon.ring] if self.polygon else None,
            "usableArea": round(self.usable_area_m2, 2),
            "areaSource": self.area_source.value,
            "usageFactor": self.usage_factor,
            "annualIrradiation": round(self.irradiance.value_kwh_m2_year, 1),
            "irradiationSource": self.irradiance.label,
            "confidence": self.confidence.value,
            "coverage": {
                "primary": self.irradiance.source == IrradianceSourceId.PRIMARY_SOLAR_API,
                "note": COVERAGE_NOTES[self.irradiance.source],
            },
            "shadingIndex": round(self.shading_index, 4),
            "shadingLoss": round(self.shading_index * 100.0, 1),
            "shadingSource": self.shading_source.value,
            "averageTemperature": self.temperature_c,
            "tiltDeg": round(self.tilt_deg, 2),
            "azimuthDeg": round(self.azimuth_deg, 2),
            "estimatedProduction": round(p.ac_kwh),
            "estimatedProductionAC": round(p.ac_kwh),
            "estimatedProductionDC": round(p.dc_kwh),
            "estimatedProductionYear1": round(p.year1_kwh),
            "estimatedProductionYear25": round(p.year25_kwh),
            "temperatureLosses": round(p.temperature_loss_percent, 1),
            "degradationFactor": round(p.degradation_factor, 3),
            "effectivePR": round(p.effective_pr, 3),
            "transpositionFactor": round(p.transposition_factor, 3),
            "moduleEfficiency": round(p.module_efficiency, 3),
            "productionMethod": p.method,
            "verdict": self.verdict.classification.value,
            "reasons": list(self.verdict.reasons),
            "recommendations": list(self.verdict.recommendations),
            "warnings": self.all_warnings,
            "sourcesUsed": list(self.sources_used),
            "responseTimes": self.trace.response_times(),
            "errors": self.trace.errors(),
            "fallbackReasons": list(self.trace.fallback_reasons),
            "resolution": dict(self.resolution),
        }
        if self.financial is not None:
            out["financial"] = self.financial.to_dict()
        return out


def _usage_factor(area_source: AreaSource, config: EngineConfig) -> float:
    if area_source == AreaSource.MANUAL:
        return 1.0
    if area_source == AreaSource.PRIMARY_SOURCE:
        return config.model.primary_usage_factor
    return config.model.footprint_usage_factor


def analyze(
    request: AnalysisRequest,
    *,
    providers: Optional[Sequence[IrradianceProvider]] = None,
    cache: Optional[ResponseCache] = None,
    config: EngineConfig | None = None,
    debug: DebugCollector | None = None,
    footprint_lookup: Optional[FootprintLookup] = None,
    session: requests.Session | None = None,
) -> AnalysisRecord:
    """Analyse one rooftop.

    Only :class:`ValidationError` propagates; provider failures are recorded in
    the trace and degrade to the next source. ``providers=None`` builds the
    default HTTP providers; pass ``[]`` to run offline on regional defaults.
    """

    if not isinstance(request, AnalysisRequest):
        raise ValidationError("analyze() requires an AnalysisRequest")
    config = config or DEFAULT_CONFIG
    debug = debug or NullDebugCollector()
    m = config.model
    lat, lng = request.lat, request.lng
    target = is_target_region(lat, lng)
    ideal = ideal_azimuth(target)
    engine_warnings: List[str] = []

    polygon = request.polygon
    footprint_used = False
    if polygon is None and footprint_lookup is not None:
        found = footprint_lookup.lookup(lat, lng)
        if found is None:
            engine_warnings.append(FOOTPRINT_NOT_FOUND)
        else:
            polygon = found.polygon
            footprint_used = True
            debug.emit("footprint.found", {"confidence": found.confidence, "source": found.source})

    poly_area: Optional[float] = None
    ridge: Optional[float] = None
    if polygon is not None:
        poly_area = polygon_area(polygon.ring, debug)
        ridge = ring_azimuth(polygon.ring)

    if providers is None:
        providers = default_providers(config, azimuth_deg=ideal, session=session)
    cascade = resolve_irradiance(
        lat, lng, request.preferred_source, providers=providers, cache=cache, config=config, debug=debug
    )
    sample = cascade.sample
    primary = cascade.primary
    segments = primary.segments if primary is not None else ()

    resolved: Dict[str, Resolved] = {}
    resolved["area"] = resolve_layered(
        "area",
        [
            (AreaSource.MANUAL.value, request.usable_area_override),
            (AreaSource.PRIMARY_SOURCE.value, primary.usable_area_m2 if primary is not None else None),
            (AreaSource.FOOTPRINT.value, poly_area * m.footprint_usage_factor if poly_area else None),
            (AreaSource.ESTIMATE.value, m.default_roof_area_m2 * m.footprint_usage_factor),
        ],
        debug,
    )
    resolved["shading"] = resolve_layered(
        "shading",
        [
            (ShadingSource.USER_INPUT.value, request.shading_override),
            (ShadingSource.MEASURED.value, primary.measured_shading if primary is not None else None),
            (
                ShadingSource.DESCRIPTION.value,
                lambda: shading_from_description(request.shading_description) if request.shading_description else None,
            ),
            (ShadingSource.HEURISTIC.value, lambda: shading_from_address(request.address)[0]),
        ],
        debug,
    )
    resolved["temperature"] = resolve_layered(
        "temperature",
        [("user_input", request.average_temperature), ("regional", lambda: regional_temperature(lat, lng))],
        debug,
    )
    resolved["tilt"] = resolve_layered(
        "tilt",
        [
            ("user_input", request.tilt_estimated),
            ("primary-segments", lambda: average_tilt(segments) if segments else None),
            ("footprint", lambda: estimate_tilt_from_area(poly_area) if poly_area else None),
            ("default", m.default_tilt_deg),
        ],
        debug,
    )
    resolved["azimuth"] = resolve_layered(
        "azimuth",
        [
            ("primary-segments", lambda: average_orientation(segments) if segments else None),
            ("footprint", lambda: facing_from_ridge(ridge, ideal) if ridge is not None else None),
            ("regional-ideal", ideal),
        ],
        debug,
    )

    area_source = AreaSource(resolved["area"].layer)
    area = float(resolved["area"].value)
    shade = float(resolved["shading"].value)
    temperature = float(resolved["temperature"].value)
    tilt = float(resolved["tilt"].value)
    azimuth = float(resolved["azimuth"].value)

    efficiency = module_efficiency_for(request.module_type)
    inverter = m.inverter_efficiency if request.inverter_efficiency is None else request.inverter_efficiency
    if request.financial is not None:
        efficiency *= efficiency_adjustment(
            request.financial.panel_count, request.financial.panel_capacity_watts, area, efficiency
        )

    production: Optional[ProductionResult] = None
    if primary is not None and primary.panel_configs:
        if area_source is AreaSource.PRIMARY_SOURCE:
            # capped by the provider array size, not re-fitted to the rounded area
            chosen = select_panel_config(primary.panel_configs, max_panels=primary.max_panels_count)
        else:
            chosen = select_panel_config(primary.panel_configs, area, primary.panel_area_m2)
        if chosen is not None:
            debug.emit(
                "production.panel_config",
                {"panels_count": chosen.panels_count, "yearly_energy_dc_kwh": chosen.yearly_energy_dc_kwh},
            )
            production = from_upstream_yield(
                chosen.yearly_energy_dc_kwh,
                inverter_efficiency=inverter,
                degradation_rate=m.degradation_rate,
                module_efficiency=efficiency,
                debug=debug,
            )
    if production is None:
        production = estimate(
            sample.value_kwh_m2_year,
            area,
            shade,
            tilt,
            azimuth,
            lat,
            temperature,
            request.system_age,
            module_efficiency=efficiency,
            pr=m.base_pr,
            segments=segments if resolved["azimuth"].layer == "primary-segments" else None,
            lng=lng,
            inverter_efficiency=inverter,
            degradation_rate=m.degradation_rate,
            temperature_coefficient_pct=m.temperature_coefficient_pct,
            model=m.transposition_model,
            diffuse_ratio=m.diffuse_ratio,
            albedo=m.albedo,
            debug=debug,
        )

    verdict = classify(area, shade, azimuth, tilt, lat, target, config.thresholds, debug)
    financial = financial_analysis(production.ac_kwh, request.financial) if request.financial is not None else None

    sources_used = [sample.source.value]
    if footprint_used:
        sources_used.append("footprint")
    resolution = {"irradiance": sample.source.value, **resolution_summary(resolved)}

    record = AnalysisRecord(
        request=request,
        polygon=polygon,
        polygon_area_m2=poly_area,
        usable_area_m2=area,
        area_source=area_source,
        usage_factor=_usage_factor(area_source, config),
        irradiance=sample,
        confidence=CONFIDENCE_BY_SOURCE[sample.source],
        shading_index=shade,
        shading_source=ShadingSource(resolved["shading"].layer),
        temperature_c=temperature,
        tilt_deg=tilt,
        azimuth_deg=azimuth,
        production=production,
        verdict=verdict,
        trace=cascade.trace,
        resolution=resolution,
        sources_used=tuple(sources_used),
        warnings=tuple(engine_warnings),
        financial=financial,
    )
    debug.emit(
        "analysis.summary",
        {
            "verdict": verdict.classification,
            "confidence": record.confidence,
            "usable_area_m2": area,
            "annual_irradiation": sample.value_kwh_m2_year,
            "ac_kwh": production.ac_kwh,
            "resolution": resolution,
        },
    )
    return record


__all__ = ["AnalysisRecord", "CONFIDENCE_BY_SOURCE", "analyze"]
