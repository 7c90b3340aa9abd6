"""Last-resort regional defaults.

Everything here is a pure function of coordinates or free text. These values
are only used when no measured or user-supplied value exists for a field.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Optional, Tuple

from solarsite.core.models import ShadingDescription

# Brazil bounding box: the tuned region for every table below.
TARGET_LAT_RANGE = (-35.0, 5.0)
TARGET_LNG_RANGE = (-75.0, -30.0)

# South-east Brazil (SP/RJ/MG/ES) has a slightly higher typical GHI than the
# national band.
_SOUTHEAST_LAT_RANGE = (-25.0, -14.0)
_SOUTHEAST_LNG_RANGE = (-52.0, -39.0)

DEFAULT_ADDRESS_SHADING = 0.18
MAX_ADDRESS_SHADING = 0.6

# (rule name, tokens, shading index); first match wins, so order matters.
ADDRESS_SHADING_RULES: Tuple[Tuple[str, Tuple[str, ...], float], ...] = (
    ("wooded", ("floresta", "mata", "bosque", "forest", "wooded", "woods"), 0.45),
    ("urban", ("centro", "downtown", "urban", "city center"), 0.28),
    ("dense-housing", ("vila", "conjunto", "favela", "comunidade", "apartment", "condominio"), 0.18),
    ("suburban", ("residencial", "jardim", "suburb", "suburban", "loteamento"), 0.08),
    ("rural", ("fazenda", "sitio", "chacara", "rural", "farm", "estrada", "ranch"), 0.02),
)

SHADING_BY_DESCRIPTION = {
    ShadingDescription.NONE: 0.02,
    ShadingDescription.MINIMAL: 0.08,
    ShadingDescription.PARTIAL: 0.18,
    ShadingDescription.MODERATE: 0.28,
    ShadingDescription.SEVERE: 0.45,
}


def is_target_region(lat: float, lng: float) -> bool:
    return TARGET_LAT_RANGE[0] <= lat <= TARGET_LAT_RANGE[1] and TARGET_LNG_RANGE[0] <= lng <= TARGET_LNG_RANGE[1]


def ideal_azimuth(is_target: bool) -> float:
    """North-facing roofs are ideal south of the equator (the target region), south-facing elsewhere."""
    return 0.0 if is_target else 180.0


def regional_temperature(lat: float, lng: float) -> float:
    """Typical annual mean ambient temperature in °C."""
    a = abs(lat)
    if is_target_region(lat, lng):
        if a <= 5:
            return 27.0
        if a <= 15:
            return 26.0
        if a <= 25:
            return 23.0
        return 20.0
    if a <= 15:
        return 27.0
    if a <= 30:
        return 22.0
    if a <= 45:
        return 15.0
    if a <= 60:
        return 8.0
    return 0.0


def typical_ghi(lat: float, lng: float) -> float:
    """Banded annual global horizontal irradiation in kWh/m²/yr."""
    if is_target_region(lat, lng):
        if (
            _SOUTHEAST_LAT_RANGE[0] <= lat <= _SOUTHEAST_LAT_RANGE[1]
            and _SOUTHEAST_LNG_RANGE[0] <= lng <= _SOUTHEAST_LNG_RANGE[1]
        ):
            return 1700.0
        return 1650.0
    a = abs(lat)
    if a <= 15:
        return 1800.0
    if a <= 30:
        return 1650.0
    if a <= 45:
        return 1400.0
    if a <= 60:
        return 1100.0
    return 900.0


def regional_pr_multiplier(lat: float, lng: float) -> float:
    if not is_target_region(lat, lng):
        return 1.0
    a = abs(lat)
    if a <= 5:
        return 0.97
    if a <= 15:
        return 1.02
    if a <= 25:
        return 1.00
    return 0.98


def _fold(text: str) -> str:
    # strip accents so "Sítio" and "sitio" match the same token
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def _matches(token: str, folded: str) -> bool:
    if " " in token or not token.isalnum():
        return token in folded
    return re.search(rf"\b{re.escape(token)}\b", folded) is not None


def shading_from_address(address: Optional[str]) -> Tuple[float, str]:
    """Shading index guessed from address keywords, with the rule that matched."""
    if not address or not address.strip():
        return DEFAULT_ADDRESS_SHADING, "default"
    folded = _fold(address)
    for name, tokens, value in ADDRESS_SHADING_RULES:
        if any(_matches(tok, folded) for tok in tokens):
            return min(max(value, 0.0), MAX_ADDRESS_SHADING), name
    return DEFAULT_ADDRESS_SHADING, "default"


def shading_from_description(description: ShadingDescription | str) -> float:
    if not isinstance(description, ShadingDescription):
        description = ShadingDescription(str(description).strip().lower())
    return SHADING_BY_DESCRIPTION[description]


__all__ = [
    "ADDRESS_SHADING_RULES",
    "DEFAULT_ADDRESS_SHADING",
    "is_target_region",
    "ideal_azimuth",
    "regional_temperature",
    "typical_ghi",
    "regional_pr_multiplier",
    "shading_from_address",
    "shading_from_description",
]
