# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging
import time

from truai_core.cache.ttl_cache import Clock, TTLCache
from truai_core.runtime_config import EngineCacheConfig
from truai_core.schema.sources import Credibility, SourceContent
from truai_core.schema.stats import CacheStats
from truai_core.schema.verification import VerificationOutput

logger = logging.getLogger(__name__)


class CacheRegistry:
    """
    The three independent caches of the verification core.

    - source_content: normalized URL -> SourceContent (days)
    - verification: content hash -> VerificationOutput (about a day)
    - credibility: bare domain -> Credibility (months)

    One registry is constructed per service and injected into the fetcher,
    the classifier and the engine.
    """

    def __init__(self, config: EngineCacheConfig | None = None, *, clock: Clock = time.monotonic):
        config = config or EngineCacheConfig()
        self.source_content: TTLCache[SourceContent] = TTLCache(
            name="source_content",
            max_entries=config.source_content.max_entries,
            ttl_sec=config.source_content.ttl_sec,
            clock=clock,
        )
        self.verification: TTLCache[VerificationOutput] = TTLCache(
            name="verification",
            max_entries=config.verification.max_entries,
            ttl_sec=config.verification.ttl_sec,
            clock=clock,
        )
        self.credibility: TTLCache[Credibility] = TTLCache(
            name="credibility",
            max_entries=config.credibility.max_entries,
            ttl_sec=config.credibility.ttl_sec,
            clock=clock,
        )

    def stats(self) -> CacheStats:
        return CacheStats(
            source_content=self.source_content.stats(),
            verification=self.verification.stats(),
            credibility=self.credibility.stats(),
        )

    def clear_all(self) -> None:
        """Drop every entry and reset hit/miss counters together."""
        for cache in (self.source_content, self.verification, self.credibility):
            cache.clear()
            cache.reset_metrics()
        logger.debug("[Cache] All caches cleared")
