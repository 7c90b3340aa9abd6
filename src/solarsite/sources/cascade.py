"""Irradiance source cascade.

All configured providers run concurrently, each behind the cache and its own
HTTP timeout. Once every provider has settled (or the overall deadline has
passed) a single value is selected:

1. a usable primary building-insights response wins outright;
2. otherwise a preferred fallback source, when it succeeded;
3. otherwise the default order PVGIS, NASA POWER, regional default.

Every demotion is recorded as a human-readable fallback reason on the
:class:`SourceTrace`, which is returned even when the first choice succeeds.
"""

from __future__ import annotations

import time
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from solarsite.core.config import DEFAULT_CONFIG, EngineConfig
from solarsite.core.debug import DebugCollector, NullDebugCollector, ScopedDebugCollector
from solarsite.core.models import IrradianceSourceId
from solarsite.regional.heuristics import typical_ghi
from .base import DAY_S, IrradianceProvider, ProviderError
from .cache import CacheEntry, ResponseCache, cache_key
from .solar_api import SolarInsights, parse_building_insights

FALLBACK_ORDER = (IrradianceSourceId.PVGIS, IrradianceSourceId.NASA_POWER)
REGIONAL_LABEL = "Regional estimate"

ROLE_PRIMARY = "primary"
ROLE_PREFERRED = "preferred"
ROLE_FALLBACK = "fallback"
ROLE_REGIONAL = "regional default"


@dataclass
class SourceAttempt:
    attempted: bool = False
    succeeded: bool = False
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    from_cache: bool = False
    value: Optional[float] = None


@dataclass
class SourceTrace:
    """Ordered provider attempts plus the reasons for each fallback taken."""

    attempts: Dict[str, SourceAttempt] = field(default_factory=dict)
    fallback_reasons: List[str] = field(default_factory=list)

    def response_times(self) -> Dict[str, float]:
        return {name: a.latency_ms for name, a in self.attempts.items() if a.attempted and a.latency_ms is not None}

    def errors(self) -> Dict[str, str]:
        return {name: a.error for name, a in self.attempts.items() if a.error}

    def to_dict(self) -> Dict[str, object]:
        return {
            "attempts": {
                name: {
                    "attempted": a.attempted,
                    "succeeded": a.succeeded,
                    "latencyMs": a.latency_ms,
                    "error": a.error,
                    "fromCache": a.from_cache,
                }
                for name, a in self.attempts.items()
            },
            "fallbackReasons": list(self.fallback_reasons),
        }


@dataclass(frozen=True)
class IrradianceSample:
    value_kwh_m2_year: float
    source: IrradianceSourceId
    from_cache: bool
    label: str
    role: str


@dataclass(frozen=True)
class CascadeResult:
    sample: IrradianceSample
    trace: SourceTrace
    primary: Optional[SolarInsights] = None


@dataclass
class _Outcome:
    attempt: SourceAttempt
    payload: Optional[dict] = None


def _run_provider(
    provider: IrradianceProvider,
    lat: float,
    lng: float,
    cache: Optional[ResponseCache],
    error_ttl_s: float,
    clock: Callable[[], float],
    debug: DebugCollector,
) -> _Outcome:
    """Cache-or-fetch for one provider; never raises for provider failures."""

    key = cache_key(provider.source_id.value, lat, lng, provider.cache_params())
    start = time.perf_counter()
    if cache is not None:
        entry = cache.get(key)
        if entry is not None:
            debug.emit("source.cache", {"hit": True, "ok": entry.ok, "key": key})
            attempt = SourceAttempt(attempted=True, from_cache=True, latency_ms=_elapsed_ms(start))
            if not entry.ok:
                attempt.error = entry.error or "cached failure"
                return _Outcome(attempt=attempt)
            try:
                attempt.value = provider.annual_irradiance(entry.payload or {})
                attempt.succeeded = True
            except ProviderError as exc:
                attempt.error = str(exc)
            return _Outcome(attempt=attempt, payload=entry.payload if attempt.succeeded else None)
        debug.emit("source.cache", {"hit": False, "key": key})

    attempt = SourceAttempt(attempted=True)
    payload = None
    try:
        payload = provider.fetch(lat, lng, debug)
        attempt.value = provider.annual_irradiance(payload)
        attempt.succeeded = True
    except ProviderError as exc:
        attempt.error = str(exc)
    attempt.latency_ms = _elapsed_ms(start)

    if cache is not None:
        now = clock()
        if attempt.succeeded:
            cache.put(key, CacheEntry(payload=payload, ok=True, error=None, expires_at=now + provider.ttl_s))
        else:
            cache.put(key, CacheEntry(payload=None, ok=False, error=attempt.error, expires_at=now + error_ttl_s))
    return _Outcome(attempt=attempt, payload=payload if attempt.succeeded else None)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 1)


def _settle(
    providers: Sequence[IrradianceProvider],
    lat: float,
    lng: float,
    cache: Optional[ResponseCache],
    config: EngineConfig,
    clock: Callable[[], float],
    debug: DebugCollector,
) -> Dict[IrradianceSourceId, _Outcome]:
    """Run every configured provider in parallel and wait for all of them to settle."""

    outcomes: Dict[IrradianceSourceId, _Outcome] = {}
    runnable = []
    for provider in providers:
        if provider.is_configured():
            runnable.append(provider)
        else:
            outcomes[provider.source_id] = _Outcome(attempt=SourceAttempt(attempted=False))
    if not runnable:
        return outcomes

    deadline = max(p.timeout_s for p in runnable) + config.grace_s
    error_ttl_s = config.error_ttl_days * DAY_S
    executor = ThreadPoolExecutor(max_workers=len(runnable), thread_name_prefix="irradiance")
    try:
        futures: Dict[IrradianceSourceId, Future] = {
            p.source_id: executor.submit(
                _run_provider,
                p,
                lat,
                lng,
                cache,
                error_ttl_s,
                clock,
                ScopedDebugCollector(debug, provider=p.source_id.value),
            )
            for p in runnable
        }
        # settle all: a failing provider must not cut the others short
        wait(list(futures.values()), timeout=deadline, return_when=ALL_COMPLETED)
        for source_id, future in futures.items():
            if not future.done():
                outcomes[source_id] = _Outcome(
                    attempt=SourceAttempt(attempted=True, error=f"timed out after {deadline:g}s", latency_ms=deadline * 1000.0)
                )
                continue
            exc = future.exception()
            if exc is not None:
                outcomes[source_id] = _Outcome(attempt=SourceAttempt(attempted=True, error=f"{type(exc).__name__}: {exc}"))
                continue
            outcomes[source_id] = future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return outcomes


def _label(source: IrradianceSourceId, providers: Dict[IrradianceSourceId, IrradianceProvider]) -> str:
    if source == IrradianceSourceId.REGIONAL_DEFAULT:
        return REGIONAL_LABEL
    provider = providers.get(source)
    return provider.label if provider is not None else source.value


def _select_fallback(
    candidates: Sequence[IrradianceSourceId],
    outcomes: Dict[IrradianceSourceId, _Outcome],
    labels: Callable[[IrradianceSourceId], str],
    reasons: List[str],
    lead_reason: Optional[Callable[[IrradianceSourceId], str]] = None,
) -> IrradianceSourceId:
    """Pick the first succeeded candidate (else regional default) and explain each failure."""

    attempted = [c for c in candidates if c in outcomes and outcomes[c].attempt.attempted]
    chosen = next((c for c in attempted if outcomes[c].attempt.succeeded), IrradianceSourceId.REGIONAL_DEFAULT)
    if lead_reason is not None:
        reasons.append(lead_reason(chosen))
    failed = [c for c in attempted if not outcomes[c].attempt.succeeded]
    chosen_idx = attempted.index(chosen) if chosen in attempted else len(attempted)
    for source in failed:
        err = outcomes[source].attempt.error
        idx = attempted.index(source)
        if idx < chosen_idx:
            nxt = attempted[idx + 1] if idx + 1 < len(attempted) else chosen
            reasons.append(f"{labels(source)} failed ({err}), falling back to {labels(nxt)}")
        else:
            reasons.append(f"{labels(source)} failed ({err}); not used")
    return chosen


def resolve_irradiance(
    lat: float,
    lng: float,
    preferred_source: Optional[IrradianceSourceId] = None,
    *,
    providers: Sequence[IrradianceProvider] = (),
    cache: Optional[ResponseCache] = None,
    config: EngineConfig = DEFAULT_CONFIG,
    debug: DebugCollector | None = None,
    clock: Callable[[], float] = time.time,
) -> CascadeResult:
    """Resolve one annual irradiance value (kWh/m²/yr) for a location.

    Provider errors never propagate; when everything fails the banded regional
    GHI is returned with role ``regional default``.
    """

    debug = debug or NullDebugCollector()
    by_id = {p.source_id: p for p in providers}
    outcomes = _settle(providers, lat, lng, cache, config, clock, debug)

    trace = SourceTrace()
    for p in providers:
        trace.attempts[p.source_id.value] = outcomes[p.source_id].attempt
        a = outcomes[p.source_id].attempt
        ScopedDebugCollector(debug, provider=p.source_id.value).emit(
            "source.result",
            {
                "attempted": a.attempted,
                "succeeded": a.succeeded,
                "error": a.error,
                "from_cache": a.from_cache,
                "latency_ms": a.latency_ms,
                "value": a.value,
            },
        )

    def labels(source: IrradianceSourceId) -> str:
        return _label(source, by_id)

    reasons = trace.fallback_reasons
    primary_insights: Optional[SolarInsights] = None
    primary = outcomes.get(IrradianceSourceId.PRIMARY_SOLAR_API)
    chosen: IrradianceSourceId
    role: str

    if primary is not None and primary.attempt.succeeded:
        primary_insights = parse_building_insights(primary.payload or {})
        chosen, role = IrradianceSourceId.PRIMARY_SOLAR_API, ROLE_PRIMARY
    else:
        if primary is not None and primary.attempt.attempted:
            reasons.append(f"Primary solar API unavailable ({primary.attempt.error})")
        if not providers:
            reasons.append("No irradiance providers configured, using regional default")
        fallbacks = [s for s in FALLBACK_ORDER if s in by_id]
        if preferred_source == IrradianceSourceId.REGIONAL_DEFAULT:
            chosen, role = IrradianceSourceId.REGIONAL_DEFAULT, ROLE_PREFERRED
        elif preferred_source in fallbacks:
            pref = outcomes[preferred_source].attempt
            if pref.succeeded:
                chosen, role = preferred_source, ROLE_PREFERRED
            else:
                why = pref.error if pref.attempted else "not attempted"
                chosen = _select_fallback(
                    [s for s in fallbacks if s != preferred_source],
                    outcomes,
                    labels,
                    reasons,
                    lead_reason=lambda c: f"{labels(preferred_source)} preferred but failed ({why}), using {labels(c)}",
                )
                role = ROLE_REGIONAL if chosen == IrradianceSourceId.REGIONAL_DEFAULT else ROLE_FALLBACK
        else:
            chosen = _select_fallback(fallbacks, outcomes, labels, reasons)
            role = ROLE_REGIONAL if chosen == IrradianceSourceId.REGIONAL_DEFAULT else ROLE_FALLBACK

    if chosen == IrradianceSourceId.REGIONAL_DEFAULT:
        value = typical_ghi(lat, lng)
        from_cache = False
    else:
        attempt = outcomes[chosen].attempt
        value = float(attempt.value)
        from_cache = attempt.from_cache

    sample = IrradianceSample(
        value_kwh_m2_year=value,
        source=chosen,
        from_cache=from_cache,
        label=f"{labels(chosen)} ({role})",
        role=role,
    )
    debug.emit(
        "cascade.select",
        {
            "source": chosen,
            "role": role,
            "value": value,
            "from_cache": from_cache,
            "fallback_reasons": list(reasons),
        },
    )
    return CascadeResult(sample=sample, trace=trace, primary=primary_insights)


__all__ = [
    "CascadeResult",
    "FALLBACK_ORDER",
    "IrradianceSample",
    "SourceAttempt",
    "SourceTrace",
    "resolve_irradiance",
]
