"""TTL snapshot cache with single-flight refresh and explicit invalidation.

The façade caches three kinds of immutable snapshots: module subtrees,
per-role grant indexes and per-module requirement sets. ``SnapshotCache``
provides:

- Lazy expiry: an entry older than the TTL is reloaded on next access,
  there is no background sweeper.
- Single-flight: concurrent misses for one key trigger one loader call;
  the other callers wait for the leader's result (or error).
- Stale-if-error: if a reload fails and the expired entry is still within
  the grace window, the stale value is served and a warning logged.
  Otherwise ``CacheRefreshFailure`` is raised.
- Hierarchical invalidation: ``invalidate("grants")`` drops every key
  under ``grants:``. Unknown keys are a no-op.

Two storage backends are provided: an in-process dictionary (default) and
Redis (shared between workers of one deployment, installed via the
``redis`` extra).
"""

from __future__ import annotations

import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel

from .exceptions import CacheRefreshFailure, ConfigurationError, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheKeys:
    """Key families used by the access façade.

    Keys are colon-separated; invalidating a prefix drops every key below
    it, e.g. ``invalidate(CacheKeys.GRANTS)`` clears all role indexes.
    Role ids and module codes are escaped, so a ``:`` inside one never
    makes its key look like a child of another.
    """

    HIERARCHY = "hierarchy"
    GRANTS = "grants"
    REQUIREMENTS = "requirements"

    MODULE_LIST = "hierarchy:modules"

    @staticmethod
    def module(module_code: str) -> str:
        return f"hierarchy:module:{_segment(module_code)}"

    @staticmethod
    def role_grants(role_id: str) -> str:
        return f"grants:role:{_segment(role_id)}"

    @staticmethod
    def module_requirements(module_code: str) -> str:
        return f"requirements:module:{_segment(module_code)}"


def _segment(value: str) -> str:
    return value.replace("%", "%25").replace(":", "%3A")


def key_matches(key: str, scope_key: str) -> bool:
    """True if ``key`` equals ``scope_key`` or lives below it."""
    return key == scope_key or key.startswith(f"{scope_key}:")


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float


# ── Backends ─────────────────────────────────────────────────────


class CacheBackend(ABC):
    """Storage for cache entries. Expiry decisions belong to SnapshotCache."""

    @abstractmethod
    def get(self, key: str, model: Optional[type[BaseModel]] = None) -> CacheEntry | None:
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete_prefix(self, scope_key: str) -> int:
        """Delete ``scope_key`` and every key below it. Returns the count."""
        raise NotImplementedError

    @abstractmethod
    def clear(self) -> None:
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    """In-process dictionary backend. Values are stored as-is."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str, model: Optional[type[BaseModel]] = None) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = entry

    def delete_prefix(self, scope_key: str) -> int:
        with self._lock:
            doomed = [k for k in self._entries if key_matches(k, scope_key)]
            for k in doomed:
                del self._entries[k]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)


class RedisCacheBackend(CacheBackend):
    """Redis backend storing snapshots as JSON under ``{prefix}:{key}``.

    Values must be Pydantic models; ``get`` needs the model class to
    rebuild them. Read and write errors degrade to cache misses, while
    deletion errors raise ``StorageError`` because a failed invalidation
    would leave other workers on stale data.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        *,
        client: Any = None,
        prefix: str = "moduleaccess",
    ) -> None:
        if client is None:
            if not redis_url:
                raise ConfigurationError("RedisCacheBackend needs a redis_url or a client")
            try:
                import redis as redis_sync
            except ImportError as e:
                raise ConfigurationError(
                    "redis is not installed; install moduleaccess[redis] or unset REDIS_URL"
                ) from e
            client = redis_sync.from_url(redis_url, decode_responses=True)
        self._client = client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def get(self, key: str, model: Optional[type[BaseModel]] = None) -> CacheEntry | None:
        if model is None:
            raise ConfigurationError(f"RedisCacheBackend.get('{key}') needs a model class")
        try:
            raw = self._client.get(self._key(key))
        except Exception as e:
            logger.warning("Redis cache read failed for %s: %s", key, e)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
            return CacheEntry(value=model.model_validate(data["payload"]), fetched_at=float(data["fetched_at"]))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Invalid cached snapshot for %s: %s", key, e)
            return None

    def set(self, key: str, entry: CacheEntry, ttl_seconds: int) -> None:
        payload = json.dumps(
            {
                "fetched_at": entry.fetched_at,
                "payload": entry.value.model_dump(mode="json"),
            }
        )
        try:
            self._client.setex(self._key(key), max(int(ttl_seconds), 1), payload)
        except Exception as e:
            logger.warning("Redis cache write failed for %s: %s", key, e)

    def delete_prefix(self, scope_key: str) -> int:
        try:
            keys = [self._key(scope_key), *self._client.scan_iter(match=f"{self._key(scope_key)}:*")]
            return int(self._client.delete(*keys))
        except Exception as e:
            raise StorageError(f"Redis cache invalidation failed for '{scope_key}': {e}", key=scope_key) from e

    def clear(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=f"{self._prefix}:*"))
            if keys:
                self._client.delete(*keys)
        except Exception as e:
            raise StorageError(f"Redis cache clear failed: {e}") from e


# ── Snapshot cache ───────────────────────────────────────────────


class _Flight:
    """One in-progress load that concurrent callers wait on."""

    def __init__(self) -> None:
        self._done = threading.Event()
        self._value: Any = None
        self._error: BaseException | None = None

    def resolve(self, value: Any) -> None:
        self._value = value
        self._done.set()

    def fail(self, error: BaseException) -> None:
        self._error = error
        self._done.set()

    def wait(self) -> Any:
        self._done.wait()
        if self._error is not None:
            raise self._error
        return self._value


class SnapshotCache:
    """TTL cache of immutable snapshots with single-flight loading.

    Args:
        ttl_seconds: Lifetime of an entry.
        stale_grace_seconds: How long past expiry a value may still be
            served when its refresh fails.
        backend: Storage backend (default: in-process dictionary).
        clock: Time source in seconds (wall clock, shared with Redis).

    Example::

        cache = SnapshotCache(ttl_seconds=300)
        tree = cache.get_or_load(
            CacheKeys.module("hrm"),
            lambda: HierarchyTree(nodes=tuple(repo.load_module("hrm"))),
            HierarchyTree,
        )
        cache.invalidate(CacheKeys.HIERARCHY)
    """

    def __init__(
        self,
        ttl_seconds: int = 300,
        stale_grace_seconds: int = 60,
        backend: Optional[CacheBackend] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.stale_grace_seconds = stale_grace_seconds
        self.backend = backend or MemoryCacheBackend()
        self._clock = clock
        self._lock = threading.Lock()
        self._inflight: dict[str, _Flight] = {}
        # Bumped on every invalidation; loads started before a bump are not stored
        self._generation = 0

    def _is_fresh(self, entry: CacheEntry | None) -> bool:
        return entry is not None and self._clock() < entry.fetched_at + self.ttl_seconds

    def get_or_load(self, key: str, loader: Callable[[], T], model: Optional[type[BaseModel]] = None) -> T:
        """Return the cached value for ``key``, loading it on miss or expiry.

        Raises:
            CacheRefreshFailure: if the loader fails and no value within
                the grace window exists.
        """
        entry = self.backend.get(key, model)
        if self._is_fresh(entry):
            return entry.value  # type: ignore[union-attr]

        with self._lock:
            flight = self._inflight.get(key)
            leader = flight is None
            if leader:
                flight = _Flight()
                self._inflight[key] = flight
                generation = self._generation

        if not leader:
            return flight.wait()  # type: ignore[union-attr]

        try:
            value = self._load(key, loader, model, generation)
        except Exception as e:
            flight.fail(e)  # type: ignore[union-attr]
            raise
        else:
            flight.resolve(value)  # type: ignore[union-attr]
            return value
        finally:
            with self._lock:
                if self._inflight.get(key) is flight:
                    del self._inflight[key]

    def _load(self, key: str, loader: Callable[[], T], model: Optional[type[BaseModel]], generation: int) -> T:
        # Another leader may have stored the key between our miss and our lead
        entry = self.backend.get(key, model)
        if self._is_fresh(entry):
            return entry.value  # type: ignore[union-attr]

        try:
            value = loader()
        except Exception as e:
            if entry is not None and self._clock() <= entry.fetched_at + self.ttl_seconds + self.stale_grace_seconds:
                logger.warning("Refresh of %s failed, serving stale snapshot: %s", key, e)
                return entry.value
            raise CacheRefreshFailure(f"Refreshing '{key}' failed: {e}", key=key) from e

        with self._lock:
            if generation == self._generation:
                self.backend.set(
                    key,
                    CacheEntry(value=value, fetched_at=self._clock()),
                    self.ttl_seconds + self.stale_grace_seconds,
                )
            else:
                logger.debug("Not caching %s: invalidated while loading", key)
        return value

    def invalidate(self, scope_key: str) -> int:
        """Drop ``scope_key`` and every key below it.

        Idempotent: unknown keys and repeated calls return 0.
        """
        with self._lock:
            self._generation += 1
        removed = self.backend.delete_prefix(scope_key)
        logger.debug("Invalidated %s (%d entries)", scope_key, removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._generation += 1
        self.backend.clear()


__all__ = [
    "CacheBackend",
    "CacheEntry",
    "CacheKeys",
    "MemoryCacheBackend",
    "RedisCacheBackend",
    "SnapshotCache",
    "key_matches",
]
