import json
from pathlib import Path

import pandas as pd
import pytest
import requests

from solarsite.core.config import EngineConfig, NasaPowerSettings, PVGISSettings, SolarApiSettings
from solarsite.core.debug import ListDebugCollector
from solarsite.sources import default_providers
from solarsite.sources.base import ProviderError, get_json
from solarsite.sources.nasa_power import NasaPowerProvider, daily_series
from solarsite.sources.pvgis import PVGISProvider, compass_to_pvgis_aspect
from solarsite.sources.solar_api import SolarApiProvider, parse_building_insights

FIXTURES = Path(__file__).parents[1] / "fixtures"


class DummyResp:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, payload=None, status_code=200, exc=None):
        self.payload = payload
        self.status_code = status_code
        self.exc = exc
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if self.exc is not None:
            raise self.exc
        return DummyResp(self.payload, self.status_code)


def _nasa_payload(daily_mj):
    days = pd.date_range("2024-01-01", "2024-12-31", freq="D")
    values = {d.strftime("%Y%m%d"): daily_mj for d in days}
    return {"properties": {"parameter": {"ALLSKY_SFC_SW_DWN": values}}}


def test_get_json_maps_transport_errors():
    with pytest.raises(ProviderError, match="timed out"):
        get_json(DummySession(exc=requests.Timeout()), "u", {}, 3)
    with pytest.raises(ProviderError, match="request failed"):
        get_json(DummySession(exc=requests.ConnectionError("refused")), "u", {}, 3)
    with pytest.raises(ProviderError, match="HTTP 503"):
        get_json(DummySession({}, status_code=503), "u", {}, 3)
    with pytest.raises(ProviderError, match="no coverage"):
        get_json(DummySession({}, status_code=404), "u", {}, 3, not_found_message="no coverage")
    with pytest.raises(ProviderError, match="not valid JSON"):
        get_json(DummySession(ValueError("bad")), "u", {}, 3)
    with pytest.raises(ProviderError, match="not an object"):
        get_json(DummySession([1, 2]), "u", {}, 3)


def test_parse_building_insights_fixture():
    insights = parse_building_insights(json.loads((FIXTURES / "solar_api_building_insights.json").read_text()))
    assert insights.annual_irradiance == pytest.approx(1712.4)
    assert insights.usable_area_m2 == pytest.approx(47.1)
    # the segment with an out-of-range pitch is dropped
    assert len(insights.segments) == 2
    assert insights.measured_shading == pytest.approx(1 - 1402.8 / 1712.4)
    assert [c.panels_count for c in insights.panel_configs] == [4, 12, 24]
    assert insights.max_panels_count == 24
    assert insights.panel_area_m2 == pytest.approx(1.879 * 1.045)
    assert insights.imagery_quality == "HIGH"


def test_parse_building_insights_requires_sunshine():
    with pytest.raises(ProviderError):
        parse_building_insights({})
    with pytest.raises(ProviderError):
        parse_building_insights({"solarPotential": {"wholeRoofStats": {}}})
    with pytest.raises(ProviderError):
        parse_building_insights({"solarPotential": {"maxSunshineHoursPerYear": 0}})


def test_parse_building_insights_falls_back_to_whole_roof_share():
    insights = parse_building_insights(
        {"solarPotential": {"maxSunshineHoursPerYear": 1500, "wholeRoofStats": {"areaMeters2": 100}}}
    )
    assert insights.usable_area_m2 == pytest.approx(70.0)
    assert insights.measured_shading is None
    assert insights.segments == ()


def test_solar_api_requires_key_and_redacts_it():
    assert not SolarApiProvider(SolarApiSettings()).is_configured()
    payload = json.loads((FIXTURES / "solar_api_building_insights.json").read_text())
    session = DummySession(payload)
    debug = ListDebugCollector()
    provider = SolarApiProvider(SolarApiSettings(api_key="abc"), session=session)
    assert provider.is_configured()
    data = provider.fetch(-23.55052, -46.633308, debug)
    assert provider.annual_irradiance(data) == pytest.approx(1712.4)
    params = session.calls[0]["params"]
    assert params["location.latitude"] == "-23.550520"
    assert params["key"] == "abc"
    assert debug.events[0]["payload"]["params"]["key"] == "***"
    assert session.calls[0]["timeout"] == 8.0


def test_solar_api_not_found_has_coverage_message():
    provider = SolarApiProvider(SolarApiSettings(api_key="abc"), session=DummySession({}, status_code=404))
    with pytest.raises(ProviderError, match="no solar API coverage"):
        provider.fetch(0.0, 0.0)


@pytest.mark.parametrize("azimuth,aspect", [(180, 0), (0, -180), (90, -90), (270, 90), (360, -180)])
def test_compass_to_pvgis_aspect(azimuth, aspect):
    assert compass_to_pvgis_aspect(azimuth) == aspect


def test_pvgis_params_and_fixture():
    payload = json.loads((FIXTURES / "pvgis_pvcalc_sample.json").read_text())
    session = DummySession(payload)
    provider = PVGISProvider(PVGISSettings(), session=session)
    value = provider.annual_irradiance(provider.fetch(-23.55, -46.63))
    assert value == pytest.approx(1696.9)
    params = session.calls[0]["params"]
    assert params["angle"] == "0"
    assert params["aspect"] == "0"
    assert params["peakpower"] == "1"
    assert params["loss"] == "14"
    assert params["outputformat"] == "json"
    assert provider.cache_params() == {"angle": 0.0, "aspect": 0.0, "peakpower": 1.0}


def test_pvgis_rejects_missing_or_non_positive_totals():
    provider = PVGISProvider()
    with pytest.raises(ProviderError):
        provider.annual_irradiance({"outputs": {"totals": None}})
    with pytest.raises(ProviderError):
        provider.annual_irradiance({"outputs": {"totals": {"fixed": {"H(i)_y": 0}}}})


def test_nasa_power_sums_valid_days():
    session = DummySession(_nasa_payload(16.0))
    provider = NasaPowerProvider(NasaPowerSettings(), session=session)
    value = provider.annual_irradiance(provider.fetch(-23.55, -46.63))
    assert value == pytest.approx(round(366 * 16.0 * 0.2778, 1))
    params = session.calls[0]["params"]
    assert params["start"] == "20240101"
    assert params["end"] == "20241231"
    assert params["community"] == "SB"


def test_nasa_power_drops_fill_values():
    payload = _nasa_payload(16.0)
    block = payload["properties"]["parameter"]["ALLSKY_SFC_SW_DWN"]
    block["20240101"] = -999.0
    block["20240102"] = 75.0
    series = daily_series(payload)
    assert len(series) == 366
    value = NasaPowerProvider().annual_irradiance(payload)
    assert value == pytest.approx(round(364 * 16.0 * 0.2778, 1))


def test_nasa_power_rejects_implausible_totals():
    with pytest.raises(ProviderError, match="outside plausible range"):
        NasaPowerProvider().annual_irradiance(_nasa_payload(1.0))
    with pytest.raises(ProviderError):
        NasaPowerProvider().annual_irradiance({"properties": {}})


def test_default_providers_each_open_their_own_session():
    providers = default_providers(EngineConfig())
    sessions = [p.session for p in providers]
    assert all(isinstance(s, requests.Session) for s in sessions)
    assert len({id(s) for s in sessions}) == len(sessions)


def test_default_providers_share_an_injected_session():
    session = DummySession({})
    providers = default_providers(EngineConfig(), azimuth_deg=0.0, session=session)
    assert all(p.session is session for p in providers)
    assert [p.source_id.value for p in providers] == ["primary-solar-api", "pvgis", "nasa-power"]
