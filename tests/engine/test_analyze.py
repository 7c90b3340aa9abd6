import json
import math
from pathlib import Path

import pytest

from solarsite.core.debug import ListDebugCollector
from solarsite.core.models import (
    AnalysisRequest,
    AreaSource,
    Classification,
    Confidence,
    FinancialInputs,
    IrradianceSourceId,
    Polygon,
    ShadingSource,
    ValidationError,
)
from solarsite.engine import Footprint, analyze, save_analysis
from solarsite.engine.analyze import FOOTPRINT_NOT_FOUND
from solarsite.sources.base import ProviderError

FIXTURES = Path(__file__).parents[1] / "fixtures"
SP_LAT, SP_LNG = -23.5505, -46.6333


def _rect(lng0, lat0, east_m, north_m):
    dlat = north_m / 111_320.0
    dlng = east_m / (111_320.0 * math.cos(math.radians(lat0)))
    return Polygon.from_ring([(lng0, lat0), (lng0 + dlng, lat0), (lng0 + dlng, lat0 + dlat), (lng0, lat0 + dlat)])


# 12.5 m east-west by 8 m north-south: ridge runs east-west
SP_ROOF = _rect(SP_LNG, SP_LAT, 12.5, 8.0)


class FixturePrimary:
    source_id = IrradianceSourceId.PRIMARY_SOLAR_API
    label = "Solar API"
    timeout_s = 1.0
    ttl_s = 3600.0

    def __init__(self, error=None, **potential):
        self.error = error
        self.potential = potential

    def is_configured(self):
        return True

    def cache_params(self):
        return {}

    def fetch(self, lat, lng, debug):
        if self.error:
            raise ProviderError(self.error)
        payload = json.loads((FIXTURES / "solar_api_building_insights.json").read_text())
        payload["solarPotential"].update(self.potential)
        return payload

    def annual_irradiance(self, payload):
        return float(payload["solarPotential"]["maxSunshineHoursPerYear"])


class StaticFootprints:
    def __init__(self, footprint):
        self.footprint = footprint
        self.calls = []

    def lookup(self, lat, lng):
        self.calls.append((lat, lng))
        return self.footprint


def test_sao_paulo_offline_uses_footprint_and_regional_defaults():
    debug = ListDebugCollector()
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF), providers=[], debug=debug)

    assert record.polygon_area_m2 == pytest.approx(100.0, rel=0.01)
    assert record.area_source is AreaSource.FOOTPRINT
    assert record.usable_area_m2 == pytest.approx(75.0, rel=0.01)
    assert record.usage_factor == 0.75
    assert record.irradiance.source is IrradianceSourceId.REGIONAL_DEFAULT
    assert record.irradiance.value_kwh_m2_year == 1700.0
    assert record.confidence is Confidence.LOW
    assert record.shading_index == 0.18
    assert record.shading_source is ShadingSource.HEURISTIC
    assert record.temperature_c == 23.0
    assert record.tilt_deg == 15.0
    assert record.azimuth_deg == pytest.approx(0.0)
    assert record.verdict.classification is Classification.SUITABLE
    assert record.production.ac_kwh > 0
    assert record.sources_used == ("regional-default",)
    assert record.resolution == {
        "irradiance": "regional-default",
        "area": "footprint",
        "shading": "heuristic",
        "temperature": "regional",
        "tilt": "footprint",
        "azimuth": "footprint",
    }
    assert debug.stages()[-1] == "analysis.summary"

    data = record.to_dict()
    assert data["verdict"] == "Suitable"
    assert data["irradiationSource"] == "Regional estimate (regional default)"
    assert data["coverage"]["primary"] is False
    assert data["estimatedProduction"] == data["estimatedProductionAC"]
    assert data["fallbackReasons"] == ["No irradiance providers configured, using regional default"]
    json.dumps(data)


def test_user_inputs_take_precedence():
    record = analyze(
        AnalysisRequest(
            lat=SP_LAT,
            lng=SP_LNG,
            polygon=SP_ROOF,
            usable_area_override=30.0,
            shading_override=0.05,
            average_temperature=30.0,
            tilt_estimated=20.0,
        ),
        providers=[],
    )
    assert record.area_source is AreaSource.MANUAL
    assert record.usable_area_m2 == 30.0
    assert record.usage_factor == 1.0
    assert record.shading_source is ShadingSource.USER_INPUT
    assert record.temperature_c == 30.0
    assert record.tilt_deg == 20.0
    assert record.resolution["tilt"] == "user_input"


def test_shading_description_beats_address_heuristic():
    record = analyze(
        AnalysisRequest(lat=SP_LAT, lng=SP_LNG, address="Centro", shading_description="minimal"), providers=[]
    )
    assert record.shading_source is ShadingSource.DESCRIPTION
    assert record.shading_index == 0.08


def test_primary_building_insights_short_circuit_production():
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG), providers=[FixturePrimary()])
    assert record.irradiance.source is IrradianceSourceId.PRIMARY_SOLAR_API
    assert record.confidence is Confidence.HIGH
    assert record.area_source is AreaSource.PRIMARY_SOURCE
    assert record.usable_area_m2 == pytest.approx(47.1)
    assert record.usage_factor == 0.8
    assert record.shading_source is ShadingSource.MEASURED
    assert record.shading_index == pytest.approx(1 - 1402.8 / 1712.4)
    assert record.resolution["azimuth"] == "primary-segments"
    assert record.azimuth_deg == pytest.approx(352.0, abs=0.5)
    assert record.tilt_deg == pytest.approx(18.5)
    assert record.production.method == "upstream"
    assert record.production.dc_kwh == pytest.approx(11890.2)
    assert record.production.ac_kwh == pytest.approx(11890.2 * 0.96)
    assert record.verdict.classification is Classification.SUITABLE
    assert record.to_dict()["coverage"]["primary"] is True


def test_primary_layout_survives_rounded_array_area():
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG), providers=[FixturePrimary(maxArrayAreaMeters2=47.125)])
    assert record.area_source is AreaSource.PRIMARY_SOURCE
    assert record.production.dc_kwh == pytest.approx(11890.2)


def test_primary_layout_capped_by_array_panel_count():
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG), providers=[FixturePrimary(maxArrayPanelsCount=12)])
    assert record.production.dc_kwh == pytest.approx(6402.9)


def test_manual_area_refits_primary_layouts():
    record = analyze(
        AnalysisRequest(lat=SP_LAT, lng=SP_LNG, usable_area_override=30.0), providers=[FixturePrimary()]
    )
    assert record.area_source is AreaSource.MANUAL
    # 24 panels need about 47 m2, 12 need about 23.6 m2
    assert record.production.method == "upstream"
    assert record.production.dc_kwh == pytest.approx(6402.9)


def test_request_inverter_efficiency_overrides_config():
    modeled = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF, inverter_efficiency=0.9), providers=[])
    assert modeled.production.ac_kwh == pytest.approx(modeled.production.dc_kwh * 0.9)

    upstream = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG, inverter_efficiency=0.9), providers=[FixturePrimary()])
    assert upstream.production.ac_kwh == pytest.approx(11890.2 * 0.9)


def test_primary_failure_is_recorded_and_demoted():
    record = analyze(
        AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF),
        providers=[FixturePrimary(error="no solar API coverage for this location")],
    )
    assert record.irradiance.source is IrradianceSourceId.REGIONAL_DEFAULT
    assert record.production.method == "modeled"
    assert record.trace.errors() == {"primary-solar-api": "no solar API coverage for this location"}


def test_footprint_lookup_not_found_warns_and_estimates():
    lookup = StaticFootprints(None)
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG), providers=[], footprint_lookup=lookup)
    assert lookup.calls == [(SP_LAT, SP_LNG)]
    assert record.area_source is AreaSource.ESTIMATE
    assert record.usable_area_m2 == pytest.approx(75.0)
    assert FOOTPRINT_NOT_FOUND in record.all_warnings
    assert record.resolution["azimuth"] == "regional-ideal"


def test_footprint_lookup_supplies_polygon():
    lookup = StaticFootprints(Footprint(polygon=SP_ROOF, confidence=0.9))
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG), providers=[], footprint_lookup=lookup)
    assert record.area_source is AreaSource.FOOTPRINT
    assert record.sources_used == ("regional-default", "footprint")


def test_footprint_lookup_is_skipped_when_polygon_given():
    lookup = StaticFootprints(None)
    analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF), providers=[], footprint_lookup=lookup)
    assert lookup.calls == []


def test_financial_block_is_included():
    financial = FinancialInputs(energy_cost_per_kwh=0.9, installation_cost_per_watt=4.0, panel_capacity_watts=550, panel_count=10)
    record = analyze(AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF, financial=financial), providers=[])
    assert record.financial is not None
    assert record.financial.total_system_watts == 5500.0
    assert record.to_dict()["financial"]["annualSavings"] == pytest.approx(record.production.ac_kwh * 0.9, abs=0.01)


def test_same_request_gives_same_record():
    req = AnalysisRequest(lat=SP_LAT, lng=SP_LNG, polygon=SP_ROOF, address="Jardim Europa")
    a = analyze(req, providers=[]).to_dict()
    b = analyze(req, providers=[]).to_dict()
    assert a == b


def test_rejects_non_request():
    with pytest.raises(ValidationError):
        analyze({"lat": 0, "lng": 0}, providers=[])


def test_save_analysis_emits_event():
    class Store:
        def __init__(self):
            self.saved = []

        def save(self, record):
            self.saved.append(record)
            return "abc123"

    store = Store()
    debug = ListDebugCollector()
    record_id = save_analysis(store, {"verdict": "Suitable"}, debug)
    assert record_id == "abc123"
    assert store.saved == [{"verdict": "Suitable"}]
    assert debug.events[0]["payload"] == {"id": "abc123", "verdict": "Suitable"}
