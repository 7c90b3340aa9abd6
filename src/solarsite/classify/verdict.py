"""Rule-based suitability classifier.

Three ordered tiers (Suitable, then Partial, then Unsuitable) evaluated over
four dimensions: usable area, shading, orientation and tilt. Every threshold
lives on :class:`ClassifierThresholds` so alternative threshold sets can be
loaded from configuration.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from solarsite.core.debug import DebugCollector, NullDebugCollector
from solarsite.core.models import Classification, ValidationError
from solarsite.geometry.orientation import angular_distance
from solarsite.regional.heuristics import ideal_azimuth


@dataclass(frozen=True)
class ClassifierThresholds:
    area_excellent_m2: float = 20.0
    area_good_m2: float = 15.0
    area_acceptable_m2: float = 12.0
    area_minimum_m2: float = 8.0
    shading_excellent: float = 0.15
    shading_good: float = 0.30
    shading_acceptable: float = 0.45
    orientation_excellent_deg: float = 20.0
    orientation_good_deg: float = 45.0
    orientation_acceptable_deg: float = 90.0
    orientation_poor_deg: float = 135.0
    tilt_min_deg: float = 5.0
    tilt_max_deg: float = 45.0
    tilt_max_over_latitude_deg: float = 20.0
    tilt_tolerance_deg: float = 20.0
    tilt_excellent_deg: float = 10.0
    # Partial-tier shading warnings
    shading_review_above: float = 0.35
    shading_high_above: float = 0.40

    def __post_init__(self):
        area = (self.area_excellent_m2, self.area_good_m2, self.area_acceptable_m2, self.area_minimum_m2)
        if any(a < 0 for a in area) or list(area) != sorted(area, reverse=True):
            raise ValidationError("area thresholds must be non-negative and ordered excellent >= good >= acceptable >= minimum")
        shading = (self.shading_excellent, self.shading_good, self.shading_acceptable)
        if any(not (0 <= s <= 1) for s in shading) or list(shading) != sorted(shading):
            raise ValidationError("shading thresholds must be within [0,1] and ordered excellent <= good <= acceptable")
        orientation = (
            self.orientation_excellent_deg,
            self.orientation_good_deg,
            self.orientation_acceptable_deg,
            self.orientation_poor_deg,
        )
        if any(not (0 <= o <= 180) for o in orientation) or list(orientation) != sorted(orientation):
            raise ValidationError("orientation thresholds must be within [0,180] and increasing")
        if self.tilt_min_deg < 0 or self.tilt_max_deg > 90 or self.tilt_min_deg > self.tilt_max_deg:
            raise ValidationError("tilt bounds must satisfy 0 <= tilt_min_deg <= tilt_max_deg <= 90")


DEFAULT_THRESHOLDS = ClassifierThresholds()


@dataclass(frozen=True)
class Verdict:
    classification: Classification
    reasons: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


@dataclass
class _Notes:
    reasons: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def verdict(self, classification: Classification) -> Verdict:
        return Verdict(
            classification=classification,
            reasons=tuple(self.reasons),
            recommendations=tuple(self.recommendations),
            warnings=tuple(self.warnings),
        )


def _capacity_bracket(area: float, t: ClassifierThresholds) -> str | None:
    if area >= 25:
        return "Consider a 5-8 kWp system to make full use of the roof"
    if area >= t.area_excellent_m2:
        return "A 4-6 kWp system suits this roof"
    if area >= t.area_good_m2:
        return "A 3-4 kWp system is recommended (typical residential size)"
    if area >= t.area_acceptable_m2:
        return "A compact 2-3 kWp system is viable"
    return None


def classify(
    usable_area_m2: float,
    shade_index: float,
    azimuth_deg: float | None,
    tilt_deg: float | None,
    latitude: float,
    is_target_region: bool,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
    debug: DebugCollector | None = None,
) -> Verdict:
    """Classify a roof as Suitable, Partial or Unsuitable.

    ``azimuth_deg`` defaults to the ideal heading for the region and ``tilt_deg``
    to 15° when unknown. The shading index is clamped to [0, 1].
    """

    debug = debug or NullDebugCollector()
    t = thresholds
    area = float(usable_area_m2)
    shade = min(max(float(shade_index), 0.0), 1.0)
    ideal = ideal_azimuth(is_target_region)
    az = ideal if azimuth_deg is None else float(azimuth_deg) % 360.0
    tilt = 15.0 if tilt_deg is None else float(tilt_deg)

    az_dev = angular_distance(az, ideal)
    optimal_tilt = abs(latitude)
    tilt_dev = abs(tilt - optimal_tilt)
    max_tilt = min(t.tilt_max_deg, abs(latitude) + t.tilt_max_over_latitude_deg)
    tilt_excellent = tilt >= t.tilt_min_deg and tilt_dev <= t.tilt_excellent_deg
    tilt_acceptable = t.tilt_min_deg <= tilt <= max_tilt and tilt_dev <= t.tilt_tolerance_deg

    shade_excellent = shade < t.shading_excellent
    shade_good = shade < t.shading_good
    shade_acceptable = shade < t.shading_acceptable

    area_excellent = area >= t.area_excellent_m2
    area_good = area >= t.area_good_m2
    area_acceptable = area >= t.area_acceptable_m2
    area_minimum = area >= t.area_minimum_m2

    orientation_excellent = az_dev <= t.orientation_excellent_deg
    orientation_good = az_dev <= t.orientation_good_deg
    orientation_acceptable = az_dev <= t.orientation_acceptable_deg
    orientation_poor = az_dev > t.orientation_poor_deg

    notes = _Notes()
    if (area_good or area_acceptable) and shade_good and orientation_good and tilt_acceptable and not orientation_poor:
        classification = Classification.SUITABLE
        notes.reasons.append(f"{'Excellent' if area_excellent else 'Adequate'} area for installation ({area:.1f} m²)")
        notes.reasons.append("Excellent shading conditions" if shade_excellent else "Good shading conditions")
        if orientation_excellent:
            notes.reasons.append(f"Ideal orientation ({az:.0f}° azimuth)")
        else:
            notes.reasons.append(f"Good solar orientation ({az:.0f}°)")
        if tilt_excellent:
            notes.reasons.append(f"Tilt close to optimal ({tilt:.0f}° vs {optimal_tilt:.0f}° optimal)")
        else:
            notes.reasons.append(f"Acceptable tilt ({tilt:.0f}°)")

        notes.recommendations.append("System with excellent generation potential")
        bracket = _capacity_bracket(area, t)
        if bracket:
            notes.recommendations.append(bracket)
        if not tilt_excellent:
            notes.recommendations.append(f"For maximum efficiency, adjust tilt to {optimal_tilt:.0f}°")

    elif area_minimum and shade_acceptable and orientation_acceptable and not orientation_poor:
        classification = Classification.PARTIAL
        if not area_acceptable:
            notes.reasons.append(
                f"Area at the minimum viable limit ({area:.1f} m², minimum {t.area_minimum_m2:.0f} m²)"
            )
            notes.recommendations.append("A compact 1.5-2 kWp system is recommended")
            notes.recommendations.append("Use high-efficiency modules (550 W+) to maximise generation")
        elif not area_good:
            notes.reasons.append(f"Area suitable for a medium system ({area:.1f} m²)")
            notes.recommendations.append("A 2-3 kWp system suits this roof")

        if not shade_good:
            notes.reasons.append(f"Moderate shading present ({shade * 100:.0f}% losses)")
            if shade <= t.shading_review_above:
                notes.recommendations.append("Consider power optimisers to compensate for shading")
            else:
                notes.recommendations.append("Micro-inverters recommended for high shading")
                notes.recommendations.append("A detailed shading analysis is needed")
            if shade > t.shading_high_above:
                notes.warnings.append("High shading: viability depends on module-level electronics")
            elif shade > t.shading_review_above:
                notes.warnings.append("Consider removing obstacles if economically viable")

        if not orientation_good:
            notes.reasons.append(f"Orientation {az_dev:.0f}° away from ideal ({az:.0f}° azimuth)")
        if not tilt_acceptable:
            notes.reasons.append(f"Tilt outside the acceptable range ({tilt:.0f}° vs {optimal_tilt:.0f}° optimal)")

    else:
        classification = Classification.UNSUITABLE
        if not area_minimum:
            notes.reasons.append(f"Insufficient area for a viable installation ({area:.1f} m²)")
            notes.warnings.append(
                f"Recommended minimum: {t.area_minimum_m2:.0f} m² for a basic 1.5 kWp system"
            )
        if not shade_acceptable:
            notes.reasons.append(f"Excessive shading detected ({shade * 100:.0f}% losses)")
            notes.warnings.append("Shading losses make the system uneconomic")
        if orientation_poor:
            direction = "South" if is_target_region else "North"
            notes.reasons.append(f"Unfavourable orientation: roof faces {direction}")
            notes.warnings.append("Directional losses above 30% make the installation unviable")
        elif not orientation_acceptable:
            notes.reasons.append(
                f"Orientation {az_dev:.0f}° away from ideal exceeds the acceptable {t.orientation_acceptable_deg:.0f}°"
                f" ({az:.0f}° azimuth)"
            )
            notes.warnings.append("Expect significant directional losses on this roof face")
        notes.recommendations.append("Seek an alternative location for the installation")

    verdict = notes.verdict(classification)
    debug.emit(
        "classify.verdict",
        {
            "classification": classification,
            "area_m2": area,
            "shade_index": shade,
            "azimuth_deviation_deg": az_dev,
            "tilt_deg": tilt,
            "tilt_acceptable": tilt_acceptable,
            "reasons": list(verdict.reasons),
        },
    )
    return verdict


__all__ = ["ClassifierThresholds", "DEFAULT_THRESHOLDS", "Verdict", "classify"]
