# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Bounded in-memory LRU cache with sliding expiration.

- An entry expires `ttl_sec` after it was last written or read.
- When full, the least recently used entry is evicted first.
- Hits and misses are counted per cache for observability.

State is process-local and intentionally lost on restart.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

from truai_core.schema.stats import CacheTierStats

V = TypeVar("V")

Clock = Callable[[], float]


class TTLCache(Generic[V]):
    def __init__(
        self,
        *,
        name: str,
        max_entries: int,
        ttl_sec: float,
        clock: Clock = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.name = name
        self._max = int(max_entries)
        self._ttl = float(ttl_sec)
        self._clock = clock
        self._data: OrderedDict[str, tuple[V, float]] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _expired(self, touched_at: float, now: float) -> bool:
        return now - touched_at >= self._ttl

    def get(self, key: str) -> Optional[V]:
        """Return the cached value or None on miss. A hit refreshes the entry's TTL."""
        with self._lock:
            now = self._clock()
            entry = self._data.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, touched_at = entry
            if self._expired(touched_at, now):
                del self._data[key]
                self.misses += 1
                return None
            self._data[key] = (value, now)
            self._data.move_to_end(key)
            self.hits += 1
            return value

    def has(self, key: str) -> bool:
        """Presence check that neither refreshes the TTL nor counts as a lookup."""
        with self._lock:
            entry = self._data.get(key)
            return entry is not None and not self._expired(entry[1], self._clock())

    def set(self, key: str, value: V) -> None:
        with self._lock:
            self._data[key] = (value, self._clock())
            self._data.move_to_end(key)
            while len(self._data) > self._max:
                self._data.popitem(last=False)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def _purge_expired(self) -> None:
        now = self._clock()
        stale = [k for k, (_, touched_at) in self._data.items() if self._expired(touched_at, now)]
        for k in stale:
            del self._data[k]

    @property
    def size(self) -> int:
        with self._lock:
            self._purge_expired()
            return len(self._data)

    @property
    def max_size(self) -> int:
        return self._max

    @property
    def ttl_sec(self) -> float:
        return self._ttl

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return 0.0 if total == 0 else round(self.hits / total * 100, 2)

    def stats(self) -> CacheTierStats:
        return CacheTierStats(size=self.size, max=self.max_size, hit_rate=self.hit_rate)

    def reset_metrics(self) -> None:
        with self._lock:
            self.hits = 0
            self.misses = 0

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        return self.size
