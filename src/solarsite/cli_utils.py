"""Shared CLI helpers: request assembly, record output and the JSON-directory store."""
from __future__ import annotations

import datetime as dt
import json
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from solarsite.core.config import ConfigError, _load_raw, parse_polygon, request_from_dict
from solarsite.core.models import AnalysisRequest, Polygon, ValidationError


def load_polygon_file(path: Path) -> Polygon:
    """Read a polygon from YAML/JSON: ``{"ring": ...}``, GeoJSON, or a bare list of pairs."""
    if not path.exists():
        raise ConfigError(f"Polygon file not found: {path}")
    if path.suffix.lower() in {".json", ".geojson"}:
        raw: Any = json.loads(path.read_text())
    elif path.suffix.lower() in {".yaml", ".yml"}:
        raw = yaml.safe_load(path.read_text())
    else:
        raise ConfigError(f"Unsupported polygon extension: {path.suffix}")
    if isinstance(raw, dict) and raw.get("type") == "FeatureCollection":
        features = raw.get("features") or []
        if not features:
            raise ConfigError(f"{path.name} contains no features")
        raw = features[0]
    try:
        polygon = parse_polygon(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid polygon in {path.name}: {exc}") from exc
    if polygon is None:
        raise ConfigError(f"{path.name} does not contain a polygon")
    return polygon


def build_request(request_path: Optional[Path] = None, **overrides: Any) -> AnalysisRequest:
    """Request file (if any) with non-``None`` CLI overrides layered on top."""
    raw: Dict[str, Any] = {}
    if request_path is not None:
        if not request_path.exists():
            raise ConfigError(f"Request file not found: {request_path}")
        raw = dict(_load_raw(request_path))
    polygon = overrides.pop("polygon", None)
    for key, value in overrides.items():
        if value is not None:
            raw[key] = value
    if polygon is not None:
        raw["polygon"] = {"ring": [list(pt) for pt in polygon.ring]}
    return request_from_dict(raw)


def write_record(path: Path, record: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(record, sort_keys=False, allow_unicode=True))
    elif path.suffix.lower() in {".json", ""}:
        path.write_text(json.dumps(record, indent=2, ensure_ascii=False))
    else:
        raise ConfigError(f"Unsupported output extension: {path.suffix}")


class JsonDirectoryStore:
    """Analysis store writing one ``<id>.json`` per saved record."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def save(self, record: Dict[str, Any]) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        record_id = uuid.uuid4().hex
        doc = {
            "id": record_id,
            "saved_at": dt.datetime.now(dt.timezone.utc).isoformat(),
            "record": record,
        }
        (self.root / f"{record_id}.json").write_text(json.dumps(doc, indent=2, ensure_ascii=False))
        return record_id

    def load(self, record_id: str) -> Dict[str, Any]:
        path = self.root / f"{record_id}.json"
        if not path.exists():
            raise ConfigError(f"No stored analysis with id {record_id}")
        return json.loads(path.read_text())["record"]


__all__ = ["JsonDirectoryStore", "build_request", "load_polygon_file", "write_record"]
