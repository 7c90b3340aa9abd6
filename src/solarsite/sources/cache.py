"""Provider response caches.

Entries are keyed by provider, coordinates rounded to 6 decimals, and the
provider's own request parameters. Failures are cached too (with a shorter
TTL) so a location without coverage is not hammered on every request.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol

COORD_DECIMALS = 6


@dataclass(frozen=True)
class CacheEntry:
    payload: Optional[Dict[str, Any]]
    ok: bool
    error: Optional[str]
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]:
        ...

    def put(self, key: str, entry: CacheEntry) -> None:
        ...


def cache_key(source: str, lat: float, lng: float, params: Dict[str, Any] | None = None) -> str:
    parts = [str(source), f"{round(float(lat), COORD_DECIMALS):.{COORD_DECIMALS}f}", f"{round(float(lng), COORD_DECIMALS):.{COORD_DECIMALS}f}"]
    for name in sorted(params or {}):
        parts.append(f"{name}={params[name]}")
    return "|".join(parts)


class MemoryResponseCache:
    """In-process cache; expired entries are dropped on read."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expired(self._clock()):
                del self._entries[key]
                return None
            return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def __len__(self) -> int:
        return len(self._entries)


class FileResponseCache:
    """One JSON file per key under ``cache_dir``."""

    def __init__(self, cache_dir: str | Path, clock: Callable[[], float] = time.time):
        self.cache_dir = Path(cache_dir)
        self._clock = clock

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{key.split('|', 1)[0]}_{digest}.json"

    def get(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            raw = json.loads(path.read_text())
            entry = CacheEntry(
                payload=raw.get("payload"),
                ok=bool(raw["ok"]),
                error=raw.get("error"),
                expires_at=float(raw["expires_at"]),
            )
        except (ValueError, KeyError, TypeError):
            # unreadable entry behaves like a miss and is overwritten on the next put
            return None
        if raw.get("key") != key or entry.expired(self._clock()):
            return None
        return entry

    def put(self, key: str, entry: CacheEntry) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        record = {"key": key, **asdict(entry)}
        tmp = self._path(key).with_suffix(".tmp")
        tmp.write_text(json.dumps(record, sort_keys=True))
        tmp.replace(self._path(key))


__all__ = ["CacheEntry", "ResponseCache", "MemoryResponseCache", "FileResponseCache", "cache_key"]
