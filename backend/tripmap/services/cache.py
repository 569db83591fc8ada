from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

import redis

from tripmap.utils.errors import InvalidInputError
from tripmap.utils.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

DAY_SECONDS = 24 * 3600
PLACES_SEARCH_TTL_SECONDS = 7 * DAY_SECONDS
PLACE_DETAILS_TTL_SECONDS = 14 * DAY_SECONDS
PLACE_PHOTO_TTL_SECONDS = 30 * DAY_SECONDS
DIRECTIONS_TTL_SECONDS = 3 * DAY_SECONDS

CACHE_TTL = {
    "places_search": PLACES_SEARCH_TTL_SECONDS,
    "place_details": PLACE_DETAILS_TTL_SECONDS,
    "place_photo": PLACE_PHOTO_TTL_SECONDS,
    "directions": DIRECTIONS_TTL_SECONDS,
}

SNAPSHOT_VERSION = 1
_WHITESPACE = re.compile(r"\s+")


def _extract_lat_lng(node: Any) -> tuple[float, float]:
    if isinstance(node, dict):
        lat = node.get("lat", node.get("latitude"))
        lng = node.get("lng", node.get("lon", node.get("longitude")))
    else:
        lat = getattr(node, "lat", None)
        lng = getattr(node, "lng", None)
    if lat is None or lng is None:
        raise InvalidInputError("Stop is missing coordinates", details={"stop": repr(node)})
    return float(lat), float(lng)


def directions_cache_key(stops: Iterable[Any], mode: str = "driving") -> str:
    coords = "|".join(f"{lat:.6f},{lng:.6f}" for lat, lng in (_extract_lat_lng(stop) for stop in stops))
    return f"directions:{mode}:{coords}"


def normalize_query_text(query: str) -> str:
    return _WHITESPACE.sub("_", str(query).strip().lower())


def place_search_cache_key(query: str) -> str:
    return f"places:search:{normalize_query_text(query)}"


def place_details_cache_key(place_id: str) -> str:
    # Place ids are case-sensitive, so they are only trimmed.
    return f"places:details:{str(place_id).strip()}"


def place_photo_cache_key(photo_reference: str, max_width: int) -> str:
    return f"places:photo:{str(photo_reference).strip()}|{int(max_width)}"


class CacheBackend:
    # True when get/set do network I/O and must not run on the event loop.
    blocking_io = False

    def get(self, key: str) -> Any:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def keys(self) -> list[str]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def stats(self) -> dict[str, Any]:
        raise NotImplementedError

    def flush(self) -> bool:
        return True

    def close(self) -> None:
        return None


@dataclass(frozen=True)
class _Entry:
    raw: str
    ttl_seconds: int
    inserted_at: float

    @property
    def expires_at(self) -> float | None:
        if self.ttl_seconds == 0:
            return None
        return self.inserted_at + self.ttl_seconds

    def expired(self, now: float) -> bool:
        expires_at = self.expires_at
        return expires_at is not None and expires_at <= now


class SnapshotCache(CacheBackend):
    """In-memory TTL cache persisted to a JSON snapshot file.

    The in-memory store is authoritative. Every ``snapshot_every`` sets a
    background thread writes all live entries to ``snapshot_path``; ``close()``
    writes a final snapshot synchronously. On construction the snapshot is
    reloaded and entries whose TTL ran out meanwhile are dropped.
    """

    def __init__(
        self,
        *,
        snapshot_path: Path | str | None = None,
        snapshot_every: int = 25,
        sweep_interval_seconds: float = 600,
        clock: Callable[[], float] = time.time,
        start_sweeper: bool = True,
    ) -> None:
        self.snapshot_path = Path(snapshot_path) if snapshot_path is not None else None
        self.snapshot_every = max(1, int(snapshot_every))
        self.sweep_interval_seconds = float(sweep_interval_seconds)
        self._clock = clock
        self._store: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._snapshot_lock = threading.Lock()
        self._snapshot_thread: threading.Thread | None = None
        self._sweeper: threading.Thread | None = None
        self._stop = threading.Event()
        self._set_count = 0
        self._hits = 0
        self._misses = 0
        self._closed = False

        if self.snapshot_path is not None:
            self.load_snapshot()
        if start_sweeper:
            self._start_sweeper()

    @property
    def persistence_enabled(self) -> bool:
        return self.snapshot_path is not None

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                return None
            if entry.expired(self._clock()):
                self._store.pop(key, None)
                self._misses += 1
                return None
            self._hits += 1
            raw = entry.raw
        return json.loads(raw)

    def has(self, key: str) -> bool:
        with self._lock:
            entry = self._store.get(key)
            return entry is not None and not entry.expired(self._clock())

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = int(ttl_seconds or 0)
        if ttl < 0:
            raise InvalidInputError("Cache TTL must be >= 0 seconds", details={"key": key, "ttl_seconds": ttl})
        # Stored as JSON text so callers never share objects with the cache.
        entry = _Entry(raw=json.dumps(value, default=str), ttl_seconds=ttl, inserted_at=self._clock())
        with self._lock:
            self._store[key] = entry
            self._set_count += 1
            due = self._set_count % self.snapshot_every == 0
        if due and self.persistence_enabled:
            self.schedule_snapshot()

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def keys(self) -> list[str]:
        now = self._clock()
        with self._lock:
            return [key for key, entry in self._store.items() if not entry.expired(now)]

    def clear(self) -> None:
        with self._lock:
            self._store.clear()
        if self.persistence_enabled:
            self.flush()

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._store.items() if entry.expired(now)]
            for key in expired:
                self._store.pop(key, None)
        if expired:
            LOGGER.debug("Cache sweep removed %s expired entries", len(expired))
        return len(expired)

    def stats(self) -> dict[str, Any]:
        now = self._clock()
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "backend": "memory",
                "keys": sum(1 for entry in self._store.values() if not entry.expired(now)),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": (self._hits / lookups) * 100 if lookups else 0.0,
                "sets_count": self._set_count,
                "persistence": self.persistence_enabled,
            }

    def _live_entries(self) -> list[dict[str, Any]]:
        now = self._clock()
        with self._lock:
            items = list(self._store.items())
        return [
            {
                "key": key,
                "payload": json.loads(entry.raw),
                "ttl_seconds": entry.ttl_seconds,
                "inserted_at": entry.inserted_at,
            }
            for key, entry in items
            if not entry.expired(now)
        ]

    def write_snapshot(self) -> int:
        if self.snapshot_path is None:
            return 0
        with self._snapshot_lock:
            entries = self._live_entries()
            document = {"version": SNAPSHOT_VERSION, "saved_at": self._clock(), "entries": entries}
            raw = json.dumps(document, default=str)
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.snapshot_path.with_name(f"{self.snapshot_path.name}.tmp")
            tmp_path.write_text(raw, encoding="utf-8")
            tmp_path.replace(self.snapshot_path)
        LOGGER.info("Saved %s cache entries to %s", len(entries), self.snapshot_path)
        return len(entries)

    def _write_snapshot_safely(self) -> bool:
        try:
            self.write_snapshot()
            return True
        except (OSError, TypeError, ValueError) as exc:
            LOGGER.warning("Cache snapshot write failed (path=%s): %s", self.snapshot_path, exc)
            return False

    def schedule_snapshot(self) -> threading.Thread | None:
        with self._lock:
            running = self._snapshot_thread
            if running is not None and running.is_alive():
                LOGGER.debug("Cache snapshot already in progress; skipping")
                return None
            thread = threading.Thread(target=self._write_snapshot_safely, name="cache-snapshot", daemon=True)
            self._snapshot_thread = thread
        thread.start()
        return thread

    def wait_for_snapshot(self, timeout: float | None = None) -> None:
        thread = self._snapshot_thread
        if thread is not None:
            thread.join(timeout=timeout)

    def load_snapshot(self) -> int:
        if self.snapshot_path is None or not self.snapshot_path.exists():
            return 0
        try:
            document = json.loads(self.snapshot_path.read_text(encoding="utf-8"))
            raw_entries = document["entries"]
            if not isinstance(raw_entries, list):
                raise ValueError("snapshot entries must be a list")
            now = self._clock()
            restored: dict[str, _Entry] = {}
            for item in raw_entries:
                ttl_seconds = int(item["ttl_seconds"])
                inserted_at = float(item["inserted_at"])
                remaining = ttl_seconds - (now - inserted_at)
                if ttl_seconds != 0 and remaining <= 0:
                    continue
                restored[str(item["key"])] = _Entry(
                    raw=json.dumps(item["payload"], default=str),
                    ttl_seconds=ttl_seconds,
                    inserted_at=inserted_at,
                )
        except (OSError, ValueError, TypeError, KeyError) as exc:
            LOGGER.warning("Failed to load cache snapshot from %s; starting empty: %s", self.snapshot_path, exc)
            return 0

        with self._lock:
            self._store.update(restored)
        LOGGER.info("Restored %s cached entries from %s", len(restored), self.snapshot_path)
        return len(restored)

    def _sweep_loop(self) -> None:
        while not self._stop.wait(timeout=self.sweep_interval_seconds):
            self.sweep()

    def _start_sweeper(self) -> None:
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="cache-sweeper", daemon=True)
        self._sweeper.start()

    def flush(self) -> bool:
        if not self.persistence_enabled:
            return True
        self.wait_for_snapshot()
        return self._write_snapshot_safely()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
        self.flush()


class RedisCache(CacheBackend):
    blocking_io = True

    def __init__(self, redis_url: str, *, namespace: str = "tripmap:"):
        self.client = redis.Redis.from_url(redis_url, decode_responses=True)
        self.client.ping()
        self.namespace = namespace
        self._hits = 0
        self._misses = 0
        self._set_count = 0

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get(self, key: str) -> Any:
        raw = self.client.get(self._key(key))
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        raw = json.dumps(value, default=str)
        if ttl_seconds:
            self.client.setex(self._key(key), int(ttl_seconds), raw)
        else:
            self.client.set(self._key(key), raw)
        self._set_count += 1

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def keys(self) -> list[str]:
        prefix_len = len(self.namespace)
        return [key[prefix_len:] for key in self.client.scan_iter(match=f"{self.namespace}*")]

    def clear(self) -> None:
        for key in list(self.client.scan_iter(match=f"{self.namespace}*")):
            self.client.delete(key)

    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "backend": "redis",
            "keys": len(self.keys()),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": (self._hits / lookups) * 100 if lookups else 0.0,
            "sets_count": self._set_count,
            "persistence": True,
        }

    def close(self) -> None:
        self.client.close()


async def cache_io(cache: CacheBackend, method: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run a cache method, off the event loop when the backend does network I/O.

    In-memory hits return without suspending.
    """
    if cache.blocking_io:
        return await asyncio.to_thread(method, *args, **kwargs)
    return method(*args, **kwargs)


async def with_cache(
    cache: CacheBackend,
    key: str,
    call: Callable[[], Awaitable[Any]],
    ttl_seconds: int,
) -> Any:
    cached = await cache_io(cache, cache.get, key)
    if cached is not None:
        return cached
    result = await call()
    await cache_io(cache, cache.set, key, result, ttl_seconds=ttl_seconds)
    return result


def build_cache(settings: Settings) -> CacheBackend:
    if settings.cache_backend.lower() == "redis":
        try:
            return RedisCache(settings.redis_url)
        except (redis.RedisError, ValueError) as exc:
            LOGGER.warning("Redis cache unavailable (%s); using in-memory cache", exc)

    snapshot_path = None
    if settings.cache_persistence:
        snapshot_path = Path(settings.cache_dir) / settings.cache_snapshot_file
    return SnapshotCache(
        snapshot_path=snapshot_path,
        snapshot_every=settings.cache_snapshot_every,
        sweep_interval_seconds=settings.cache_sweep_interval_seconds,
    )


_CACHE: CacheBackend | None = None


def get_cache() -> CacheBackend:
    global _CACHE
    if _CACHE is None:
        _CACHE = build_cache(get_settings())
    return _CACHE


def close_cache() -> None:
    global _CACHE
    if _CACHE is not None:
        _CACHE.close()
        _CACHE = None
