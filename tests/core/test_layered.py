import pytest

from solarsite.core.debug import ListDebugCollector
from solarsite.core.layered import resolution_summary, resolve_layered


def test_first_non_none_layer_wins_and_is_named():
    res = resolve_layered("area", [("manual", None), ("footprint", 42.0), ("estimate", 75.0)])
    assert res.value == 42.0
    assert res.layer == "footprint"


def test_zero_is_a_value_not_a_miss():
    res = resolve_layered("shading", [("user_input", 0.0), ("heuristic", 0.18)])
    assert res.value == 0.0
    assert res.layer == "user_input"


def test_callables_below_the_winner_are_not_evaluated():
    calls = []

    def expensive():
        calls.append(1)
        return 1.0

    resolve_layered("tilt", [("user_input", 12.0), ("segments", expensive)])
    assert calls == []


def test_emits_layer_and_skipped():
    debug = ListDebugCollector()
    resolve_layered("temperature", [("user_input", None), ("regional", lambda: 23.0)], debug)
    event = debug.events[0]
    assert event["stage"] == "resolve.temperature"
    assert event["payload"]["layer"] == "regional"
    assert event["payload"]["skipped"] == ["user_input"]


def test_raises_when_nothing_resolves():
    with pytest.raises(ValueError):
        resolve_layered("azimuth", [("a", None), ("b", lambda: None)])


def test_resolution_summary():
    resolved = {
        "area": resolve_layered("area", [("manual", 10.0)]),
        "tilt": resolve_layered("tilt", [("user_input", None), ("default", 15.0)]),
    }
    assert resolution_summary(resolved) == {"area": "manual", "tilt": "default"}
