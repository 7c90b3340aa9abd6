import math

import pytest

from solarsite.core.models import RoofSegment
from solarsite.pv.production import liu_jordan_transposition, simple_transposition, transposition_factor


def test_horizontal_plane_is_unity():
    assert liu_jordan_transposition(-23.55, 0.0) == pytest.approx(1.0)


def test_liu_jordan_sao_paulo_latitude_tilt():
    beta = math.radians(15)
    phi = math.radians(23.55)
    rb = math.cos(phi - beta) / math.cos(phi)
    expected = 0.8 * rb + 0.2 * (1 + math.cos(beta)) / 2 + 0.2 * (1 - math.cos(beta)) / 2
    assert liu_jordan_transposition(-23.55, 15.0) == pytest.approx(expected)
    assert liu_jordan_transposition(-23.55, 15.0) == pytest.approx(1.063, abs=1e-3)


def test_liu_jordan_is_symmetric_in_hemisphere_and_clamped():
    assert liu_jordan_transposition(23.55, 15.0) == pytest.approx(liu_jordan_transposition(-23.55, 15.0))
    assert liu_jordan_transposition(60.0, 60.0) == 1.1
    assert liu_jordan_transposition(0.0, 80.0) == 0.7


def test_simple_transposition():
    base = math.cos(math.radians(23.55 - 15.0))
    assert simple_transposition(-23.55, 15.0, 0.0) == pytest.approx(base)
    assert simple_transposition(-23.55, 15.0, 90.0) == pytest.approx(base * 0.9)
    assert simple_transposition(0.0, 90.0, 0.0) == 0.5


def test_segments_are_area_weighted():
    segs = [RoofSegment(30, 0, 0), RoofSegment(10, 15, 0), RoofSegment(0, 45, 0)]
    expected = (30 * 1.0 + 10 * liu_jordan_transposition(-23.55, 15.0)) / 40
    assert transposition_factor(-23.55, 99.0, 99.0, segments=segs) == pytest.approx(expected)


def test_model_selection():
    assert transposition_factor(-23.55, 15.0, 90.0, model="simple") == pytest.approx(
        simple_transposition(-23.55, 15.0, 90.0)
    )
    with pytest.raises(ValueError):
        transposition_factor(-23.55, 15.0, 0.0, model="perez")
