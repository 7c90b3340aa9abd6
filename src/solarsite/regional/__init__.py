"""Regional defaults used when nothing measured is available."""

from .heuristics import (
    ideal_azimuth,
    is_target_region,
    regional_pr_multiplier,
    regional_temperature,
    shading_from_address,
    shading_from_description,
    typical_ghi,
)

__all__ = [
    "ideal_azimuth",
    "is_target_region",
    "regional_pr_multiplier",
    "regional_temperature",
    "shading_from_address",
    "shading_from_description",
    "typical_ghi",
]
