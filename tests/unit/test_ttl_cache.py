# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import pytest

from truai_core.cache.registry import CacheRegistry
from truai_core.cache.ttl_cache import TTLCache
from truai_core.runtime_config import CacheTierConfig, EngineCacheConfig
from truai_core.schema.sources import Credibility


def _cache(clock, max_entries=3, ttl_sec=10.0):
    return TTLCache(name="test", max_entries=max_entries, ttl_sec=ttl_sec, clock=clock)


class TestTTLCache:
    def test_set_then_get_returns_value(self, fake_clock):
        cache = _cache(fake_clock)
        cache.set("k", "v")
        assert cache.get("k") == "v"

    def test_entry_expires_after_ttl(self, fake_clock):
        cache = _cache(fake_clock, ttl_sec=10.0)
        cache.set("k", "v")

        fake_clock.advance(9.9)
        assert cache.get("k") == "v"

        fake_clock.advance(10.5)
        assert cache.get("k") is None

    def test_read_slides_expiration(self, fake_clock):
        cache = _cache(fake_clock, ttl_sec=10.0)
        cache.set("k", "v")

        for _ in range(5):
            fake_clock.advance(8.0)
            assert cache.get("k") == "v"

        fake_clock.advance(10.5)
        assert cache.get("k") is None

    def test_has_does_not_refresh_or_count(self, fake_clock):
        cache = _cache(fake_clock, ttl_sec=10.0)
        cache.set("k", "v")
        fake_clock.advance(8.0)
        assert cache.has("k") is True
        fake_clock.advance(3.0)
        assert cache.has("k") is False
        assert cache.hits == 0
        assert cache.misses == 0

    def test_capacity_evicts_least_recently_used(self, fake_clock):
        cache = _cache(fake_clock, max_entries=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        # Touch "a" so "b" becomes the oldest unused entry.
        assert cache.get("a") == 1
        cache.set("d", 4)

        assert cache.size == 3
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.get("d") == 4

    def test_overwrite_does_not_grow(self, fake_clock):
        cache = _cache(fake_clock, max_entries=2)
        cache.set("a", 1)
        cache.set("a", 2)
        assert cache.size == 1
        assert cache.get("a") == 2

    def test_hit_rate_is_percentage_rounded(self, fake_clock):
        cache = _cache(fake_clock)
        assert cache.hit_rate == 0.0

        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")
        cache.get("missing")
        assert cache.hits == 1
        assert cache.misses == 2
        assert cache.hit_rate == 33.33

    def test_size_ignores_expired_entries(self, fake_clock):
        cache = _cache(fake_clock, ttl_sec=5.0)
        cache.set("a", 1)
        fake_clock.advance(3.0)
        cache.set("b", 2)
        fake_clock.advance(3.0)
        assert cache.size == 1
        assert len(cache) == 1

    def test_clear_keeps_counters_reset_metrics_drops_them(self, fake_clock):
        cache = _cache(fake_clock)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()
        assert cache.size == 0
        assert cache.hits == 1

        cache.reset_metrics()
        assert cache.hits == 0
        assert cache.misses == 0

    def test_delete(self, fake_clock):
        cache = _cache(fake_clock)
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        assert cache.get("a") is None

    def test_rejects_zero_capacity(self, fake_clock):
        with pytest.raises(ValueError):
            _cache(fake_clock, max_entries=0)


class TestCacheRegistry:
    def test_default_tiers(self, caches):
        stats = caches.stats()
        assert stats.source_content.max == 1000
        assert stats.verification.max == 500
        assert stats.credibility.max == 2000

        assert caches.source_content.ttl_sec == 7 * 24 * 3600
        assert caches.verification.ttl_sec == 24 * 3600
        assert caches.credibility.ttl_sec == 90 * 24 * 3600

    def test_tiers_are_independent(self, caches):
        caches.credibility.set("example.com", Credibility.NEWS)
        assert caches.source_content.get("example.com") is None
        assert caches.verification.get("example.com") is None
        assert caches.credibility.get("example.com") is Credibility.NEWS

    def test_clear_all_resets_data_and_counters(self, caches):
        caches.credibility.set("example.com", Credibility.NEWS)
        caches.credibility.get("example.com")
        caches.verification.get("nope")

        caches.clear_all()

        stats = caches.stats()
        assert stats.credibility.size == 0
        assert stats.credibility.hit_rate == 0.0
        assert caches.verification.misses == 0

    def test_custom_config(self, fake_clock):
        config = EngineCacheConfig(verification=CacheTierConfig(max_entries=2, ttl_sec=1.0))
        registry = CacheRegistry(config, clock=fake_clock)
        assert registry.verification.max_size == 2
        assert registry.source_content.max_size == 1000

    def test_stats_serialize(self, caches):
        caches.source_content.get("missing")
        data = caches.stats().to_dict()
        assert data["source_content"] == {"size": 0, "max": 1000, "hit_rate": 0.0}
        assert set(data) == {"source_content", "verification", "credibility"}
