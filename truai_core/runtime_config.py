# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

_DAY_SEC = 60 * 60 * 24


def _parse_bool(raw: Any, *, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    s = str(raw).strip().lower()
    if not s:
        return default
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return default


def _parse_int(raw: Any, *, default: int, min_v: int, max_v: int) -> int:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, int):
            v = raw
        else:
            v = int(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


def _parse_float(raw: Any, *, default: float, min_v: float, max_v: float) -> float:
    try:
        if raw is None:
            v = default
        elif isinstance(raw, (int, float)):
            v = float(raw)
        else:
            v = float(str(raw).strip())
    except Exception:
        v = default
    return max(min_v, min(max_v, v))


@dataclass(frozen=True)
class EngineFeatureFlags:
    # Trace is a local-only debug feature; it is enabled by default and can be disabled via env.
    trace_enabled: bool = True


@dataclass(frozen=True)
class CacheTierConfig:
    max_entries: int
    ttl_sec: float


@dataclass(frozen=True)
class EngineCacheConfig:
    source_content: CacheTierConfig = field(
        default_factory=lambda: CacheTierConfig(max_entries=1000, ttl_sec=7 * _DAY_SEC)
    )
    verification: CacheTierConfig = field(
        default_factory=lambda: CacheTierConfig(max_entries=500, ttl_sec=_DAY_SEC)
    )
    # Domain classification rarely changes.
    credibility: CacheTierConfig = field(
        default_factory=lambda: CacheTierConfig(max_entries=2000, ttl_sec=90 * _DAY_SEC)
    )


@dataclass(frozen=True)
class EngineFetchConfig:
    timeout_sec: float = 15.0
    max_urls: int = 5
    concurrency: int = 7
    max_content_chars: int = 10_000
    user_agent: str = "Mozilla/5.0 (compatible; TruAI/1.0)"


@dataclass(frozen=True)
class EngineLLMConfig:
    timeout_sec: float = 60.0
    max_output_tokens: int = 1000
    max_source_chars: int = 2000


@dataclass(frozen=True)
class EngineRetryConfig:
    max_retries: int = 2
    base_delay_sec: float = 1.0


@dataclass(frozen=True)
class EngineOrchestratorConfig:
    sequential: bool = True
    # Pacing between paragraphs in sequential mode.
    delay_ms: int = 1000


@dataclass(frozen=True)
class EngineRuntimeConfig:
    features: EngineFeatureFlags = field(default_factory=EngineFeatureFlags)
    cache: EngineCacheConfig = field(default_factory=EngineCacheConfig)
    fetch: EngineFetchConfig = field(default_factory=EngineFetchConfig)
    llm: EngineLLMConfig = field(default_factory=EngineLLMConfig)
    retry: EngineRetryConfig = field(default_factory=EngineRetryConfig)
    orchestrator: EngineOrchestratorConfig = field(default_factory=EngineOrchestratorConfig)

    @staticmethod
    def load_from_env() -> "EngineRuntimeConfig":
        features = EngineFeatureFlags(
            trace_enabled=not _parse_bool(os.getenv("TRUAI_TRACE_DISABLE"), default=False),
        )

        cache = EngineCacheConfig(
            source_content=CacheTierConfig(
                max_entries=_parse_int(os.getenv("TRUAI_CONTENT_CACHE_MAX"), default=1000, min_v=1, max_v=100_000),
                ttl_sec=_parse_float(
                    os.getenv("TRUAI_CONTENT_CACHE_TTL_SEC"), default=7 * _DAY_SEC, min_v=1.0, max_v=365 * _DAY_SEC
                ),
            ),
            verification=CacheTierConfig(
                max_entries=_parse_int(os.getenv("TRUAI_VERIFICATION_CACHE_MAX"), default=500, min_v=1, max_v=100_000),
                ttl_sec=_parse_float(
                    os.getenv("TRUAI_VERIFICATION_CACHE_TTL_SEC"), default=_DAY_SEC, min_v=1.0, max_v=365 * _DAY_SEC
                ),
            ),
            credibility=CacheTierConfig(
                max_entries=_parse_int(os.getenv("TRUAI_CREDIBILITY_CACHE_MAX"), default=2000, min_v=1, max_v=100_000),
                ttl_sec=_parse_float(
                    os.getenv("TRUAI_CREDIBILITY_CACHE_TTL_SEC"), default=90 * _DAY_SEC, min_v=1.0, max_v=365 * _DAY_SEC
                ),
            ),
        )

        fetch = EngineFetchConfig(
            timeout_sec=_parse_float(os.getenv("TRUAI_FETCH_TIMEOUT"), default=15.0, min_v=1.0, max_v=120.0),
            max_urls=_parse_int(os.getenv("TRUAI_FETCH_MAX_URLS"), default=5, min_v=1, max_v=20),
            concurrency=_parse_int(os.getenv("TRUAI_FETCH_CONCURRENCY"), default=7, min_v=1, max_v=7),
            max_content_chars=_parse_int(
                os.getenv("TRUAI_FETCH_MAX_CONTENT_CHARS"), default=10_000, min_v=500, max_v=10_000
            ),
            user_agent=(os.getenv("TRUAI_FETCH_USER_AGENT") or EngineFetchConfig.user_agent).strip(),
        )

        llm = EngineLLMConfig(
            timeout_sec=_parse_float(os.getenv("OPENAI_TIMEOUT"), default=60.0, min_v=5.0, max_v=300.0),
            max_output_tokens=_parse_int(
                os.getenv("TRUAI_LLM_MAX_OUTPUT_TOKENS"), default=1000, min_v=200, max_v=4000
            ),
            max_source_chars=_parse_int(os.getenv("TRUAI_LLM_MAX_SOURCE_CHARS"), default=2000, min_v=200, max_v=2000),
        )

        retry = EngineRetryConfig(
            max_retries=_parse_int(os.getenv("TRUAI_VERIFY_MAX_RETRIES"), default=2, min_v=0, max_v=5),
            base_delay_sec=_parse_float(os.getenv("TRUAI_VERIFY_BACKOFF_SEC"), default=1.0, min_v=0.0, max_v=30.0),
        )

        orchestrator = EngineOrchestratorConfig(
            sequential=_parse_bool(os.getenv("TRUAI_SEQUENTIAL"), default=True),
            delay_ms=_parse_int(os.getenv("TRUAI_PARAGRAPH_DELAY_MS"), default=1000, min_v=0, max_v=60_000),
        )

        return EngineRuntimeConfig(
            features=features,
            cache=cache,
            fetch=fetch,
            llm=llm,
            retry=retry,
            orchestrator=orchestrator,
        )

    def to_safe_log_dict(self) -> dict[str, Any]:
        return {
            "features": {
                "trace_enabled": bool(self.features.trace_enabled),
            },
            "cache": {
                name: {"max_entries": int(tier.max_entries), "ttl_sec": float(tier.ttl_sec)}
                for name, tier in (
                    ("source_content", self.cache.source_content),
                    ("verification", self.cache.verification),
                    ("credibility", self.cache.credibility),
                )
            },
            "fetch": {
                "timeout_sec": float(self.fetch.timeout_sec),
                "max_urls": int(self.fetch.max_urls),
                "concurrency": int(self.fetch.concurrency),
                "max_content_chars": int(self.fetch.max_content_chars),
            },
            "llm": {
                "timeout_sec": float(self.llm.timeout_sec),
                "max_output_tokens": int(self.llm.max_output_tokens),
                "max_source_chars": int(self.llm.max_source_chars),
            },
            "retry": {
                "max_retries": int(self.retry.max_retries),
                "base_delay_sec": float(self.retry.base_delay_sec),
            },
            "orchestrator": {
                "sequential": bool(self.orchestrator.sequential),
                "delay_ms": int(self.orchestrator.delay_ms),
            },
        }
