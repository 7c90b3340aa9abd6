import json
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from solarsite.core.debug import (
    JsonDebugWriter,
    JsonlDebugWriter,
    ListDebugCollector,
    NullDebugCollector,
    ScopedDebugCollector,
    build_debug_collector,
    normalise_payload,
)


class Color(str, Enum):
    RED = "red"


def test_list_collector_records_events():
    collector = ListDebugCollector()
    collector.emit("stage1", {"b": 2, "a": 1}, ts="2025-01-01T00:00:00Z", provider="pvgis")
    assert len(collector.events) == 1
    event = collector.events[0]
    assert event["stage"] == "stage1"
    assert event["provider"] == "pvgis"
    # payload should be key-sorted for determinism
    assert list(event["payload"].keys()) == ["a", "b"]


def test_list_collector_converts_enums_and_tuples():
    collector = ListDebugCollector()
    collector.emit("stage", {"color": Color.RED, "pair": (1, 2)})
    assert collector.events[0]["payload"] == {"color": "red", "pair": [1, 2]}


def test_jsonl_writer(tmp_path):
    path = tmp_path / "debug.jsonl"
    writer = JsonlDebugWriter(path)
    writer.emit("stage1", {"z": 1, "y": {"b": 1, "a": 2}}, ts=1)
    writer.emit("stage2", {"b": [2, 1]}, ts=2, provider="nasa-power")
    writer.close()

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    events = [json.loads(line) for line in lines]
    assert events[0]["stage"] == "stage1"
    assert list(events[0]["payload"]["y"].keys()) == ["a", "b"]
    assert events[1]["provider"] == "nasa-power"


def test_json_writer_writes_array_on_close(tmp_path):
    path = tmp_path / "debug.json"
    writer = build_debug_collector(path)
    assert isinstance(writer, JsonDebugWriter)
    writer.emit("a", {"x": 1})
    writer.emit("b", {"x": 2})
    assert not path.exists()
    writer.close()
    events = json.loads(path.read_text())
    assert [e["stage"] for e in events] == ["a", "b"]
    assert all(e["ts"] for e in events)


def test_factory_defaults_to_jsonl(tmp_path):
    writer = build_debug_collector(tmp_path / "events.log")
    assert isinstance(writer, JsonlDebugWriter)
    writer.close()


def test_scoped_collector_injects_provider_unless_overridden():
    inner = ListDebugCollector()
    scoped = ScopedDebugCollector(inner, provider="pvgis")
    scoped.emit("one", {})
    scoped.emit("two", {}, provider="other")
    assert [e["provider"] for e in inner.events] == ["pvgis", "other"]


def test_null_collector_noop():
    NullDebugCollector().emit("stage", {"x": 1}, ts=0)
    # nothing to assert; just ensure no exceptions


def test_normalise_payload_sorts_nested_keys_and_stringifies_enum_keys():
    out = normalise_payload({"z": [{"b": 1, "a": (Color.RED,)}], Color.RED: 1})
    assert list(out) == ["red", "z"]
    assert list(out["z"][0]) == ["a", "b"]
    assert out["z"][0]["a"] == ["red"]


def test_jsonl_writer_keeps_lines_whole_across_threads(tmp_path):
    path = tmp_path / "threads.jsonl"
    writer = JsonlDebugWriter(path)
    blob = "x" * 4096

    def emit_many(worker):
        for i in range(50):
            writer.emit("source.result", {"blob": blob, "i": i}, provider=f"worker-{worker}")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(emit_many, range(8)))
    writer.close()

    events = [json.loads(line) for line in path.read_text().splitlines()]
    assert len(events) == 400
    assert all(e["payload"]["blob"] == blob for e in events)
