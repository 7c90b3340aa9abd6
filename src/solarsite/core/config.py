"""Configuration loader for the engine and for analysis requests.

Engine settings (model constants, classifier thresholds, provider settings) and
request files are read from YAML or JSON.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import yaml
except ModuleNotFoundError as exc:  # pragma: no cover
    raise ImportError("PyYAML is required to load YAML configs") from exc

from solarsite.classify.verdict import ClassifierThresholds
from .models import AnalysisRequest, FinancialInputs, Polygon, ValidationError

SOLAR_API_URL = "https://solar.googleapis.com/v1/buildingInsights:findClosest"
PVGIS_URL = "https://re.jrc.ec.europa.eu/api/v5_2/PVcalc"
NASA_POWER_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"

API_KEY_ENV = "SOLARSITE_SOLAR_API_KEY"


class ConfigError(ValueError):
    """Raised when configuration cannot be parsed into engine settings."""


@dataclass(frozen=True)
class ProviderSettings:
    enabled: bool = True
    timeout_s: float = 10.0
    ttl_days: float = 30.0
    base_url: str = ""

    def __post_init__(self):
        if self.timeout_s <= 0:
            raise ValidationError("timeout_s must be positive")
        if self.ttl_days < 0:
            raise ValidationError("ttl_days must be non-negative")


@dataclass(frozen=True)
class SolarApiSettings(ProviderSettings):
    timeout_s: float = 8.0
    base_url: str = SOLAR_API_URL
    api_key: Optional[str] = None
    radius_m: float = 100.0
    required_quality: str = "LOW"


@dataclass(frozen=True)
class PVGISSettings(ProviderSettings):
    ttl_days: float = 90.0
    base_url: str = PVGIS_URL
    peak_power_kw: float = 1.0
    loss_percent: float = 14.0

    def __post_init__(self):
        super().__post_init__()
        if self.peak_power_kw <= 0:
            raise ValidationError("peak_power_kw must be positive")
        if not (0 <= self.loss_percent < 100):
            raise ValidationError("loss_percent must be within [0, 100)")


@dataclass(frozen=True)
class NasaPowerSettings(ProviderSettings):
    base_url: str = NASA_POWER_URL
    year: int = 2024

    def __post_init__(self):
        super().__post_init__()
        if not (1981 <= int(self.year) <= 2100):
            raise ValidationError("year must be a full calendar year covered by NASA POWER (>= 1981)")


@dataclass(frozen=True)
class ModelSettings:
    base_pr: float = 0.82
    inverter_efficiency: float = 0.96
    degradation_rate: float = 0.006
    temperature_coefficient_pct: float = 0.4
    module_efficiency: float = 0.215
    transposition_model: str = "liu-jordan"
    diffuse_ratio: float = 0.2
    albedo: float = 0.2
    footprint_usage_factor: float = 0.75
    primary_usage_factor: float = 0.8
    default_roof_area_m2: float = 100.0
    default_tilt_deg: float = 15.0

    def __post_init__(self):
        for name in ("base_pr", "inverter_efficiency", "module_efficiency", "footprint_usage_factor", "primary_usage_factor"):
            val = getattr(self, name)
            if not (0 < val <= 1):
                raise ValidationError(f"{name} must be in (0, 1]")
        for name in ("degradation_rate", "diffuse_ratio", "albedo"):
            val = getattr(self, name)
            if not (0 <= val < 1):
                raise ValidationError(f"{name} must be in [0, 1)")
        if self.temperature_coefficient_pct < 0:
            raise ValidationError("temperature_coefficient_pct must be non-negative (loss per degree C)")
        if self.transposition_model not in {"liu-jordan", "simple"}:
            raise ValidationError("transposition_model must be 'liu-jordan' or 'simple'")
        if self.default_roof_area_m2 <= 0:
            raise ValidationError("default_roof_area_m2 must be positive")
        if not (0 <= self.default_tilt_deg <= 90):
            raise ValidationError("default_tilt_deg must be between 0 and 90")


@dataclass(frozen=True)
class EngineConfig:
    model: ModelSettings = field(default_factory=ModelSettings)
    thresholds: ClassifierThresholds = field(default_factory=ClassifierThresholds)
    solar_api: SolarApiSettings = field(default_factory=SolarApiSettings)
    pvgis: PVGISSettings = field(default_factory=PVGISSettings)
    nasa_power: NasaPowerSettings = field(default_factory=NasaPowerSettings)
    error_ttl_days: float = 1.0
    grace_s: float = 1.0

    def __post_init__(self):
        if self.error_ttl_days < 0:
            raise ValidationError("error_ttl_days must be non-negative")
        if self.grace_s < 0:
            raise ValidationError("grace_s must be non-negative")

    def with_api_key(self, api_key: Optional[str]) -> "EngineConfig":
        if not api_key:
            return self
        return replace(self, solar_api=replace(self.solar_api, api_key=api_key))


DEFAULT_CONFIG = EngineConfig()


def _load_raw(path: Path) -> Dict[str, Any]:
    text = path.read_text()
    if path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(text) or {}
    elif path.suffix.lower() == ".json":
        raw = json.loads(text)
    else:
        raise ConfigError(f"Unsupported config extension: {path.suffix}")
    if not isinstance(raw, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the top level")
    return raw


def _build(cls, raw: Any, section: str):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Section '{section}' must be a mapping")
    allowed = {f.name for f in fields(cls)}
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigError(f"Unknown {section} fields: {sorted(unknown)}")
    try:
        return cls(**raw)
    except (TypeError, ValidationError) as exc:
        raise ConfigError(f"Invalid {section}: {exc}") from exc


_TOP_LEVEL_KEYS = {"model", "thresholds", "providers", "cache", "cascade"}
_PROVIDER_SECTIONS = {"solar_api": SolarApiSettings, "pvgis": PVGISSettings, "nasa_power": NasaPowerSettings}


def parse_engine_config(raw: Dict[str, Any]) -> EngineConfig:
    unknown = set(raw) - _TOP_LEVEL_KEYS
    if unknown:
        raise ConfigError(f"Unknown config sections: {sorted(unknown)}")
    providers_raw = raw.get("providers") or {}
    if not isinstance(providers_raw, dict):
        raise ConfigError("Section 'providers' must be a mapping")
    unknown = set(providers_raw) - set(_PROVIDER_SECTIONS)
    if unknown:
        raise ConfigError(f"Unknown providers: {sorted(unknown)}")
    providers = {
        name: _build(cls, providers_raw.get(name), f"providers.{name}") for name, cls in _PROVIDER_SECTIONS.items()
    }
    cache_raw = raw.get("cache") or {}
    cascade_raw = raw.get("cascade") or {}
    try:
        return EngineConfig(
            model=_build(ModelSettings, raw.get("model"), "model"),
            thresholds=_build(ClassifierThresholds, raw.get("thresholds"), "thresholds"),
            error_ttl_days=float(cache_raw.get("error_ttl_days", 1.0)),
            grace_s=float(cascade_raw.get("grace_s", 1.0)),
            **providers,
        )
    except (TypeError, ValueError) as exc:
        if isinstance(exc, ConfigError):
            raise
        raise ConfigError(f"Invalid engine config: {exc}") from exc


def load_engine_config(path: str | Path) -> EngineConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    return parse_engine_config(_load_raw(path))


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

_REQUEST_KEYS = {
    "lat",
    "lng",
    "address",
    "polygon",
    "usable_area_override",
    "shading_override",
    "shading_description",
    "average_temperature",
    "module_type",
    "system_age",
    "tilt_estimated",
    "preferred_source",
    "financial",
    "inverter_efficiency",
}


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def parse_polygon(raw: Any) -> Optional[Polygon]:
    """Accept ``{"ring": [...]}``, a GeoJSON ``Polygon`` or a bare list of ``[lng, lat]`` pairs."""
    if raw is None:
        return None
    if isinstance(raw, dict):
        if "ring" in raw:
            ring = raw["ring"]
        elif raw.get("type") == "Polygon":
            coords = raw.get("coordinates") or []
            if not coords:
                raise ValidationError("GeoJSON Polygon has no coordinates")
            ring = coords[0]
        elif raw.get("type") == "Feature":
            return parse_polygon(raw.get("geometry"))
        else:
            raise ValidationError("polygon must contain 'ring' or be a GeoJSON Polygon")
    elif isinstance(raw, (list, tuple)):
        ring = raw
    else:
        raise ValidationError("polygon must be a mapping or a list of [lng, lat] pairs")
    if not isinstance(ring, (list, tuple)):
        raise ValidationError("polygon ring must be a list of [lng, lat] pairs")
    return Polygon.from_ring(ring)


def _parse_financial(raw: Any) -> Optional[FinancialInputs]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("financial must be a mapping")
    data = {_snake(k): v for k, v in raw.items()}
    allowed = {f.name for f in fields(FinancialInputs)}
    unknown = set(data) - allowed
    if unknown:
        raise ValidationError(f"Unknown financial fields: {sorted(unknown)}")
    try:
        return FinancialInputs(**data)
    except TypeError as exc:
        raise ValidationError(f"Invalid financial block: {exc}") from exc


def request_from_dict(raw: Dict[str, Any]) -> AnalysisRequest:
    """Build an :class:`AnalysisRequest` from camelCase or snake_case keys."""
    data = {_snake(k): v for k, v in raw.items()}
    unknown = set(data) - _REQUEST_KEYS
    if unknown:
        raise ValidationError(f"Unknown request fields: {sorted(unknown)}")
    if "lat" not in data or "lng" not in data:
        raise ValidationError("Request requires lat and lng")
    data["polygon"] = parse_polygon(data.get("polygon"))
    data["financial"] = _parse_financial(data.get("financial"))
    if data.get("address") is None:
        data["address"] = ""
    if data.get("system_age") is None:
        data["system_age"] = 0.0
    return AnalysisRequest(**data)


def load_request(path: str | Path) -> AnalysisRequest:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Request file not found: {path}")
    raw = _load_raw(path)
    try:
        return request_from_dict(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid request: {exc}") from exc


__all__ = [
    "API_KEY_ENV",
    "ConfigError",
    "DEFAULT_CONFIG",
    "EngineConfig",
    "ModelSettings",
    "NasaPowerSettings",
    "PVGISSettings",
    "ProviderSettings",
    "SolarApiSettings",
    "load_engine_config",
    "load_request",
    "parse_engine_config",
    "parse_polygon",
    "request_from_dict",
]
