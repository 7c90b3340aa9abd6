"""Command line entrypoint for solarsite.

Commands:

* ``analyze``: full rooftop analysis (irradiance cascade, production, verdict).
* ``classify``: run the suitability classifier alone on known roof figures.
"""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

import typer

from solarsite.classify.verdict import classify as classify_roof
from solarsite.cli_utils import JsonDirectoryStore, build_request, load_polygon_file, write_record
from solarsite.core.config import API_KEY_ENV, DEFAULT_CONFIG, ConfigError, EngineConfig, load_engine_config
from solarsite.core.debug import NullDebugCollector, build_debug_collector
from solarsite.core.models import ValidationError
from solarsite.engine.analyze import analyze as run_analysis
from solarsite.engine.collaborators import save_analysis
from solarsite.regional.heuristics import ideal_azimuth, is_target_region
from solarsite.sources import FileResponseCache, MemoryResponseCache, default_providers
from solarsite.sources.base import IrradianceProvider

__version__ = "0.1.0"

app = typer.Typer(add_completion=False, help="Rooftop solar production and suitability CLI")


def build_providers(config: EngineConfig, azimuth_deg: float) -> List[IrradianceProvider]:
    """Factory separated for easy monkeypatching in tests."""

    return default_providers(config, azimuth_deg=azimuth_deg)


def _exit_with_error(msg: str) -> None:
    typer.echo(f"Error: {msg}", err=True)
    raise typer.Exit(code=1)


def _load_config(path: Optional[Path], api_key: Optional[str]) -> EngineConfig:
    config = load_engine_config(path) if path else DEFAULT_CONFIG
    return config.with_api_key(api_key or os.environ.get(API_KEY_ENV))


@app.command()
def analyze(
    lat: Optional[float] = typer.Option(None, help="Latitude in degrees"),
    lng: Optional[float] = typer.Option(None, help="Longitude in degrees"),
    address: Optional[str] = typer.Option(None, help="Free-text address (feeds the shading heuristic)"),
    polygon: Optional[Path] = typer.Option(None, help="Roof outline file: JSON/GeoJSON/YAML ring of [lng, lat]"),
    request: Optional[Path] = typer.Option(None, help="Request YAML/JSON; CLI options override its fields"),
    config: Optional[Path] = typer.Option(None, help="Engine config YAML/JSON"),
    api_key: Optional[str] = typer.Option(None, help=f"Solar API key (default: ${API_KEY_ENV})"),
    preferred_source: Optional[str] = typer.Option(None, help="pvgis, nasa-power or regional-default"),
    tilt: Optional[float] = typer.Option(None, help="Roof tilt in degrees"),
    area: Optional[float] = typer.Option(None, help="Usable area override in m²"),
    shading: Optional[float] = typer.Option(None, help="Shading index override (0..1)"),
    shading_description: Optional[str] = typer.Option(None, help="none, minimal, partial, moderate or severe"),
    temperature: Optional[float] = typer.Option(None, help="Average ambient temperature in °C"),
    module_type: Optional[str] = typer.Option(None, help="mono, poly or thin-film"),
    system_age: Optional[float] = typer.Option(None, help="System age in years"),
    inverter_efficiency: Optional[float] = typer.Option(None, help="DC to AC conversion factor (0..1]"),
    cache_dir: Optional[Path] = typer.Option(None, help="Cache provider responses as JSON files in this directory"),
    offline: bool = typer.Option(False, "--offline", help="Skip external providers; use regional defaults"),
    debug: Optional[Path] = typer.Option(None, help="Write debug events (.json array or JSONL) to this path"),
    output: Optional[Path] = typer.Option(None, help="Write the analysis record (.json or .yaml)"),
    store_dir: Optional[Path] = typer.Option(None, help="Also save the record into this directory"),
):
    """Analyse one rooftop and print a summary."""

    if request is None and (lat is None or lng is None):
        _exit_with_error("Provide --lat and --lng, or --request")
    try:
        cfg = _load_config(config, api_key)
        poly = load_polygon_file(polygon) if polygon else None
        req = build_request(
            request,
            lat=lat,
            lng=lng,
            address=address,
            polygon=poly,
            preferred_source=preferred_source,
            tilt_estimated=tilt,
            usable_area_override=area,
            shading_override=shading,
            shading_description=shading_description,
            average_temperature=temperature,
            module_type=module_type,
            system_age=system_age,
            inverter_efficiency=inverter_efficiency,
        )
    except (ConfigError, ValidationError) as exc:
        _exit_with_error(str(exc))

    writer = build_debug_collector(debug) if debug else None
    cache = FileResponseCache(cache_dir) if cache_dir else MemoryResponseCache()
    providers = [] if offline else build_providers(cfg, ideal_azimuth(is_target_region(req.lat, req.lng)))
    try:
        record = run_analysis(req, providers=providers, cache=cache, config=cfg, debug=writer or NullDebugCollector())
    except ValidationError as exc:
        _exit_with_error(str(exc))
    finally:
        if writer is not None:
            writer.close()

    payload = record.to_dict()
    typer.echo(
        f"{payload['verdict']}: {payload['estimatedProductionAC']} kWh/yr AC from {payload['usableArea']} m² "
        f"({payload['areaSource']}), irradiation {payload['annualIrradiation']} kWh/m²/yr via "
        f"{payload['irradiationSource']}, confidence {payload['confidence']}"
    )
    for reason in payload["reasons"]:
        typer.echo(f"  - {reason}")
    for warning in payload["warnings"]:
        typer.echo(f"  ! {warning}")
    for reason in payload["fallbackReasons"]:
        typer.echo(f"  > {reason}")

    if output:
        try:
            write_record(output, payload)
        except ConfigError as exc:
            _exit_with_error(str(exc))
        typer.echo(f"Wrote analysis to {output}")
    if store_dir:
        record_id = save_analysis(JsonDirectoryStore(store_dir), payload)
        typer.echo(f"Saved analysis {record_id}")


@app.command()
def classify(
    area: float = typer.Option(..., help="Usable area in m²"),
    shading: float = typer.Option(..., help="Shading index (0..1)"),
    lat: float = typer.Option(..., help="Latitude in degrees"),
    lng: float = typer.Option(..., help="Longitude in degrees"),
    azimuth: Optional[float] = typer.Option(None, help="Roof azimuth (0 = N, clockwise); default: ideal"),
    tilt: Optional[float] = typer.Option(None, help="Roof tilt in degrees; default 15"),
    config: Optional[Path] = typer.Option(None, help="Engine config with classifier thresholds"),
    as_json: bool = typer.Option(False, "--json", help="Print the verdict as JSON"),
):
    """Classify roof suitability from known figures."""

    try:
        cfg = load_engine_config(config) if config else DEFAULT_CONFIG
    except ConfigError as exc:
        _exit_with_error(str(exc))
    verdict = classify_roof(area, shading, azimuth, tilt, lat, is_target_region(lat, lng), cfg.thresholds)
    if as_json:
        typer.echo(
            json.dumps(
                {
                    "verdict": verdict.classification.value,
                    "reasons": list(verdict.reasons),
                    "recommendations": list(verdict.recommendations),
                    "warnings": list(verdict.warnings),
                },
                indent=2,
                ensure_ascii=False,
            )
        )
        return
    typer.echo(verdict.classification.value)
    for reason in verdict.reasons:
        typer.echo(f"  - {reason}")
    for rec in verdict.recommendations:
        typer.echo(f"  + {rec}")
    for warning in verdict.warnings:
        typer.echo(f"  ! {warning}")


@app.callback()
def version_callback(
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
):
    if version:
        typer.echo(__version__)
        raise typer.Exit()


def main() -> None:  # pragma: no cover - thin wrapper for console_script
    app()


__all__ = ["app", "main", "build_providers"]


if __name__ == "__main__":  # pragma: no cover
    main()
