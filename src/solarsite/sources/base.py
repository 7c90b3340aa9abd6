"""Irradiance provider protocol and the shared HTTP helper."""

from __future__ import annotations

from typing import Any, Dict, Protocol

import requests

from solarsite.core.debug import DebugCollector
from solarsite.core.models import IrradianceSourceId


class ProviderError(RuntimeError):
    """Transient provider failure: timeout, non-2xx status or malformed payload."""


class IrradianceProvider(Protocol):
    """Interface implemented by every external irradiance source.

    ``fetch`` returns the raw JSON payload (it is what gets cached);
    ``annual_irradiance`` turns a payload into kWh/m²/yr and raises
    :class:`ProviderError` when the payload is unusable.
    """

    source_id: IrradianceSourceId
    label: str
    timeout_s: float
    ttl_s: float

    def is_configured(self) -> bool:
        ...

    def cache_params(self) -> Dict[str, Any]:
        ...

    def fetch(self, lat: float, lng: float, debug: DebugCollector) -> Dict[str, Any]:
        ...

    def annual_irradiance(self, payload: Dict[str, Any]) -> float:
        ...


def get_json(
    session: requests.Session,
    url: str,
    params: Dict[str, Any],
    timeout_s: float,
    *,
    not_found_message: str | None = None,
) -> Dict[str, Any]:
    """GET ``url`` and decode JSON, mapping every transport problem to :class:`ProviderError`."""
    try:
        resp = session.get(url, params=params, timeout=timeout_s)
    except requests.Timeout as exc:
        raise ProviderError(f"timed out after {timeout_s:g}s") from exc
    except requests.RequestException as exc:
        raise ProviderError(f"request failed: {exc}") from exc
    status = getattr(resp, "status_code", 200)
    if status == 404 and not_found_message:
        raise ProviderError(not_found_message)
    if status >= 400:
        raise ProviderError(f"HTTP {status}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise ProviderError("response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise ProviderError("response JSON is not an object")
    return data


DAY_S = 86_400.0


__all__ = ["DAY_S", "IrradianceProvider", "ProviderError", "get_json"]
