# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# TruAI Verifier - main entry point for transports (HTTP, WebSocket, CLI)

import asyncio
import json
import logging
import time
from typing import Optional, Sequence

from truai_core.agents.llm_client import LLMClient
from truai_core.cache.registry import CacheRegistry
from truai_core.cache.ttl_cache import Clock
from truai_core.config import TruAIConfig
from truai_core.llm.retry import RetryPolicy
from truai_core.schema.jobs import ProgressSnapshot, VerificationJob
from truai_core.schema.paragraph import Paragraph
from truai_core.schema.stats import CacheStats
from truai_core.schema.verification import VerificationResult
from truai_core.storage.job_store import CompleteListener, ErrorListener, JobStore, Unsubscribe, UpdateListener
from truai_core.tools.credibility import ClassifyFn, CredibilityClassifier, classify_url
from truai_core.tools.page_client import PageClient
from truai_core.tools.source_fetcher import SourceFetcher
from truai_core.verification.engine import VerificationEngine
from truai_core.verification.orchestrator import SleepFn, VerificationOrchestrator

logger = logging.getLogger(__name__)


class TruAIService:
    """
    Wires caches, fetcher, engine, job store and orchestrator into one
    explicitly constructed instance. Every collaborator can be injected, so
    tests and separate tenants get independent state.
    """

    def __init__(
        self,
        config: Optional[TruAIConfig] = None,
        *,
        store: Optional[JobStore] = None,
        caches: Optional[CacheRegistry] = None,
        classify: ClassifyFn = classify_url,
        page_client: Optional[PageClient] = None,
        llm_client: Optional[LLMClient] = None,
        fetcher: Optional[SourceFetcher] = None,
        engine: Optional[VerificationEngine] = None,
        clock: Clock = time.monotonic,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.config = config or TruAIConfig()
        runtime = self.config.runtime

        self.store = store or JobStore()
        self.caches = caches or CacheRegistry(runtime.cache, clock=clock)

        if fetcher is None:
            self._page_client = page_client or PageClient(
                timeout_s=runtime.fetch.timeout_sec,
                user_agent=runtime.fetch.user_agent,
                scrapingbee_api_key=self.config.scrapingbee_api_key,
            )
            fetcher = SourceFetcher(
                cache=self.caches.source_content,
                credibility=CredibilityClassifier(self.caches.credibility, classify=classify),
                page_client=self._page_client,
                config=runtime.fetch,
            )
        else:
            self._page_client = page_client
        self.fetcher = fetcher

        if engine is None:
            if llm_client is None and self.config.llm_configured:
                llm_client = LLMClient(
                    openai_api_key=self.config.openai_api_key,
                    default_timeout=runtime.llm.timeout_sec,
                )
            if llm_client is None:
                logger.warning("[Service] OPENAI_API_KEY not set; verification returns stand-in results")
            engine = VerificationEngine(
                cache=self.caches.verification,
                llm_client=llm_client,
                model=self.config.openai_model,
                llm_config=runtime.llm,
                retry_policy=RetryPolicy.from_config(runtime.retry, sleep=sleep),
            )
        self._llm_client = llm_client
        self.engine = engine

        self.orchestrator = VerificationOrchestrator(
            store=self.store,
            fetcher=self.fetcher,
            engine=self.engine,
            config=runtime.orchestrator,
            runtime=runtime,
            sleep=sleep,
        )

        try:
            logger.debug("Effective config: %s", json.dumps(runtime.to_safe_log_dict(), ensure_ascii=False))
        except (TypeError, ValueError):
            logger.debug("Effective config is not JSON serializable")

    # -- submission ------------------------------------------------------

    def submit(
        self,
        doc_id: str,
        paragraphs: Sequence[Paragraph],
        sequential: Optional[bool] = None,
        delay_ms: Optional[int] = None,
    ) -> asyncio.Task:
        """Start background verification and return immediately."""
        return self.orchestrator.start_verification_job(doc_id, paragraphs, sequential, delay_ms)

    async def wait_idle(self) -> None:
        await self.orchestrator.join()

    def cancel(self, doc_id: str) -> int:
        return self.orchestrator.cancel_verification(doc_id)

    # -- subscriptions ---------------------------------------------------

    def subscribe_updates(self, callback: UpdateListener) -> Unsubscribe:
        return self.store.on_update(callback)

    def subscribe_completion(self, callback: CompleteListener) -> Unsubscribe:
        return self.store.on_complete(callback)

    def subscribe_errors(self, callback: ErrorListener) -> Unsubscribe:
        return self.store.on_error(callback)

    # -- queries ---------------------------------------------------------

    def query_jobs(self, doc_id: str) -> list[VerificationJob]:
        return self.store.get_jobs(doc_id)

    def query_results(self, doc_id: str) -> list[VerificationResult]:
        return self.store.get_results(doc_id)

    def query_progress(self, doc_id: str) -> ProgressSnapshot:
        return self.orchestrator.get_verification_progress(doc_id)

    def has_document(self, doc_id: str) -> bool:
        return self.store.has_document(doc_id)

    def cache_stats(self) -> CacheStats:
        return self.caches.stats()

    # -- lifecycle -------------------------------------------------------

    def reset(self) -> None:
        """Drop all documents, subscribers and cache entries."""
        self.store.clear_all()
        self.store.clear_listeners()
        self.caches.clear_all()
        logger.info("[Service] State reset")

    async def close(self) -> None:
        if self._page_client is not None:
            await self._page_client.close()
        if self._llm_client is not None:
            await self._llm_client.close()
