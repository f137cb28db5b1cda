"""Explicit read-through cache with TTL expiry and tag invalidation.

Entries never change on their own: writers call ``invalidate_tag`` after they
commit anything a cached read depends on.
"""

import json
import threading
import time
from datetime import date, datetime
from typing import Any, Callable, Iterable


def _default(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def cache_key(namespace: str, filters: dict[str, Any] | None = None) -> str:
    payload = {k: v for k, v in (filters or {}).items() if v is not None}
    return f"{namespace}:{json.dumps(payload, sort_keys=True, default=_default)}"


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._tags: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def _drop(self, key: str) -> None:
        # Caller holds the lock.
        self._entries.pop(key, None)
        for tag in [t for t, keys in self._tags.items() if key in keys]:
            self._tags[tag].discard(key)
            if not self._tags[tag]:
                del self._tags[tag]

    def _sweep(self) -> None:
        now = self._clock()
        for key in [k for k, (expires_at, _) in self._entries.items() if expires_at <= now]:
            self._drop(key)

    def get(self, key: str, default=None):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if expires_at <= self._clock():
                self._drop(key)
                return default
            return value

    def set(self, key: str, value: Any, ttl: float, tags: Iterable[str] = ()) -> None:
        with self._lock:
            self._sweep()
            self._entries[key] = (self._clock() + ttl, value)
            for tag in tags:
                self._tags.setdefault(tag, set()).add(key)

    def tag_size(self, tag: str) -> int:
        with self._lock:
            return len(self._tags.get(tag, ()))

    def get_or_set(self, key: str, loader: Callable[[], Any], ttl: float, tags: Iterable[str] = ()):
        missing = object()
        value = self.get(key, missing)
        if value is not missing:
            return value
        value = loader()
        self.set(key, value, ttl, tags)
        return value

    def invalidate_tag(self, tag: str) -> int:
        with self._lock:
            keys = self._tags.pop(tag, set())
            for key in keys:
                self._entries.pop(key, None)
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def __len__(self) -> int:
        return len(self._entries)


ATTENDANCE_STATS_TAG = "attendance-stats"
TEACHER_DASHBOARD_TAG = "teacher-dashboard"
CLASSES_TAG = "classes"

read_cache = TTLCache()


def invalidate_attendance() -> None:
    read_cache.invalidate_tag(ATTENDANCE_STATS_TAG)
    read_cache.invalidate_tag(TEACHER_DASHBOARD_TAG)


def invalidate_classes() -> None:
    read_cache.invalidate_tag(CLASSES_TAG)
    read_cache.invalidate_tag(TEACHER_DASHBOARD_TAG)
