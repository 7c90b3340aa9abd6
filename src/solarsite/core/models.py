"""Domain models for the rooftop production engine.

Provides validated value types for coordinates, roof polygons and segments, the
analysis request, and the enums shared by every stage.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple


class ValidationError(ValueError):
    """Raised when request inputs violate constraints."""


class IrradianceSourceId(str, Enum):
    PRIMARY_SOLAR_API = "primary-solar-api"
    PVGIS = "pvgis"
    NASA_POWER = "nasa-power"
    REGIONAL_DEFAULT = "regional-default"


class AreaSource(str, Enum):
    PRIMARY_SOURCE = "primary-source"
    FOOTPRINT = "footprint"
    MANUAL = "manual"
    ESTIMATE = "estimate"


class ShadingSource(str, Enum):
    MEASURED = "measured"
    USER_INPUT = "user_input"
    DESCRIPTION = "description"
    HEURISTIC = "heuristic"


class ShadingDescription(str, Enum):
    NONE = "none"
    MINIMAL = "minimal"
    PARTIAL = "partial"
    MODERATE = "moderate"
    SEVERE = "severe"


class ModuleType(str, Enum):
    MONO = "mono"
    POLY = "poly"
    THIN_FILM = "thin-film"


class Classification(str, Enum):
    SUITABLE = "Suitable"
    PARTIAL = "Partial"
    UNSUITABLE = "Unsuitable"


class Confidence(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def _parse_enum(enum_cls, value, name: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationError(f"{name} must be one of: {allowed}") from exc


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float

    def __post_init__(self):
        for name in ("lat", "lng"):
            val = getattr(self, name)
            if isinstance(val, bool) or not isinstance(val, (int, float)) or not math.isfinite(val):
                raise ValidationError(f"{name} must be a finite number")
        if not (-90.0 <= self.lat <= 90.0):
            raise ValidationError("Latitude must be between -90 and 90 degrees")
        if not (-180.0 <= self.lng <= 180.0):
            raise ValidationError("Longitude must be between -180 and 180 degrees")


@dataclass(frozen=True)
class Polygon:
    """Roof outline as (lng, lat) vertices, implicitly closed.

    ``vertices`` keeps the caller's order without the closing vertex; ``ring``
    returns the closed form. An input that already repeats its first vertex at
    the end is accepted and not closed twice.
    """

    vertices: Tuple[Tuple[float, float], ...]

    def __post_init__(self):
        cleaned = []
        for pt in self.vertices:
            try:
                lng, lat = float(pt[0]), float(pt[1])
            except (TypeError, ValueError, IndexError) as exc:
                raise ValidationError(f"Polygon vertex must be a (lng, lat) pair: {pt!r}") from exc
            Coordinate(lat=lat, lng=lng)
            cleaned.append((lng, lat))
        if len(cleaned) > 1 and cleaned[0] == cleaned[-1]:
            cleaned = cleaned[:-1]
        if len(set(cleaned)) < 3:
            raise ValidationError("Polygon must have at least 3 distinct vertices")
        object.__setattr__(self, "vertices", tuple(cleaned))

    @property
    def ring(self) -> List[Tuple[float, float]]:
        return list(self.vertices) + [self.vertices[0]]

    @classmethod
    def from_ring(cls, ring: Sequence[Sequence[float]]) -> "Polygon":
        return cls(vertices=tuple(tuple(pt) for pt in ring))


@dataclass(frozen=True)
class RoofSegment:
    area_m2: float
    tilt_deg: float
    azimuth_deg: float

    def __post_init__(self):
        if self.area_m2 < 0:
            raise ValidationError("Segment area must be non-negative")
        if not (0.0 <= self.tilt_deg <= 90.0):
            raise ValidationError("Segment tilt must be between 0 and 90 degrees")
        object.__setattr__(self, "azimuth_deg", float(self.azimuth_deg) % 360.0)


@dataclass(frozen=True)
class FinancialInputs:
    energy_cost_per_kwh: float
    installation_cost_per_watt: float
    panel_capacity_watts: float
    panel_count: int
    incentives_percent: float = 0.0
    system_lifetime_years: int = 25
    annual_energy_cost_increase_percent: float = 5.0
    discount_rate_percent: float = 6.0

    def __post_init__(self):
        if self.energy_cost_per_kwh <= 0:
            raise ValidationError("energy_cost_per_kwh must be positive")
        if self.installation_cost_per_watt <= 0:
            raise ValidationError("installation_cost_per_watt must be positive")
        if self.panel_capacity_watts <= 0 or self.panel_count <= 0:
            raise ValidationError("panel_capacity_watts and panel_count must be positive")
        if not (0 <= self.incentives_percent <= 100):
            raise ValidationError("incentives_percent must be between 0 and 100")
        if self.system_lifetime_years <= 0:
            raise ValidationError("system_lifetime_years must be positive")


@dataclass(frozen=True)
class AnalysisRequest:
    lat: float
    lng: float
    address: str = ""
    polygon: Optional[Polygon] = None
    usable_area_override: Optional[float] = None
    shading_override: Optional[float] = None
    shading_description: Optional[ShadingDescription] = None
    average_temperature: Optional[float] = None
    module_type: Optional[ModuleType] = None
    system_age: float = 0.0
    tilt_estimated: Optional[float] = None
    preferred_source: Optional[IrradianceSourceId] = None
    financial: Optional[FinancialInputs] = None
    inverter_efficiency: Optional[float] = None
    coordinate: Coordinate = field(init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "coordinate", Coordinate(lat=self.lat, lng=self.lng))
        if self.usable_area_override is not None and self.usable_area_override <= 0:
            raise ValidationError("usable_area_override must be positive")
        if self.shading_override is not None and not (0.0 <= self.shading_override <= 1.0):
            raise ValidationError("shading_override must be between 0 and 1")
        if self.system_age is None or self.system_age < 0:
            raise ValidationError("system_age must be non-negative")
        if self.tilt_estimated is not None and not (0.0 <= self.tilt_estimated <= 90.0):
            raise ValidationError("tilt_estimated must be between 0 and 90 degrees")
        if self.average_temperature is not None and not (-60.0 <= self.average_temperature <= 60.0):
            raise ValidationError("average_temperature seems invalid (outside -60..60 C)")
        if self.inverter_efficiency is not None and not (0.0 < self.inverter_efficiency <= 1.0):
            raise ValidationError("inverter_efficiency must be in (0, 1]")
        object.__setattr__(
            self, "shading_description", _parse_enum(ShadingDescription, self.shading_description, "shading_description")
        )
        object.__setattr__(self, "module_type", _parse_enum(ModuleType, self.module_type, "module_type"))
        object.__setattr__(
            self, "preferred_source", _parse_enum(IrradianceSourceId, self.preferred_source, "preferred_source")
        )


__all__ = [
    "ValidationError",
    "IrradianceSourceId",
    "AreaSource",
    "ShadingSource",
    "ShadingDescription",
    "ModuleType",
    "Classification",
    "Confidence",
    "Coordinate",
    "Polygon",
    "RoofSegment",
    "FinancialInputs",
    "AnalysisRequest",
]
