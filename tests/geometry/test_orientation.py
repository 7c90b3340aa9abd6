import pytest

from solarsite.core.models import RoofSegment
from solarsite.geometry.orientation import (
    angular_distance,
    average_orientation,
    average_tilt,
    circular_mean,
    estimate_tilt_from_area,
    facing_from_ridge,
    ring_azimuth,
)


def test_angular_distance_wraps():
    assert angular_distance(350, 10) == pytest.approx(20)
    assert angular_distance(0, 180) == pytest.approx(180)
    assert angular_distance(90, 90) == 0


def test_circular_mean_wraps_through_north():
    assert circular_mean([350, 10]) == pytest.approx(0.0, abs=1e-9)
    assert circular_mean([80, 100]) == pytest.approx(90.0)
    assert 0.0 <= circular_mean([359.9999999999, 0.0000000001]) < 360.0


def test_circular_mean_weights():
    assert circular_mean([0, 90], [3, 1]) == pytest.approx(18.4349, abs=1e-3)
    with pytest.raises(ValueError):
        circular_mean([0, 90], [1])
    with pytest.raises(ValueError):
        circular_mean([])


def test_average_orientation_is_area_weighted():
    segs = [RoofSegment(40, 20, 350), RoofSegment(40, 20, 10), RoofSegment(0, 20, 180)]
    assert average_orientation(segs) == pytest.approx(0.0, abs=1e-9)


def test_average_orientation_zero_areas_fall_back_to_unweighted():
    segs = [RoofSegment(0, 20, 80), RoofSegment(0, 20, 100)]
    assert average_orientation(segs) == pytest.approx(90.0)


def test_average_tilt():
    segs = [RoofSegment(30, 10, 0), RoofSegment(10, 30, 0)]
    assert average_tilt(segs) == pytest.approx(15.0)
    assert average_tilt([RoofSegment(0, 10, 0), RoofSegment(0, 20, 0)]) == pytest.approx(15.0)


def test_ring_azimuth_uses_longest_edge():
    # long edge runs east-west at the equator
    ring = [(0.0, 0.0), (0.0002, 0.0), (0.0002, 0.0001), (0.0, 0.0001)]
    assert ring_azimuth(ring) == pytest.approx(90.0)
    # long edge runs north-south
    ring = [(0.0, 0.0), (0.0001, 0.0), (0.0001, 0.0002), (0.0, 0.0002)]
    assert ring_azimuth(ring) in (0.0, 180.0)


def test_facing_from_ridge_picks_face_closest_to_ideal():
    # east-west ridge: faces north (0) and south (180)
    assert facing_from_ridge(90.0, 0.0) == 0.0
    assert facing_from_ridge(90.0, 180.0) == 180.0
    # north-south ridge: faces east/west are equally far from north; tie goes to the smaller heading
    assert facing_from_ridge(0.0, 0.0) == 90.0


@pytest.mark.parametrize("area,expected", [(30, 25.0), (49.9, 25.0), (50, 15.0), (200, 15.0), (250, 10.0)])
def test_estimate_tilt_from_area(area, expected):
    assert estimate_tilt_from_area(area) == expected
