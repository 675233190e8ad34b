# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Verification Orchestrator

Drives one document's paragraphs through fetch -> verify -> store:

    create_jobs ─> for each paragraph:
                     in_progress ─> fetch_many(links) ─> verify_with_retry
                                 ─> link digests ─> store_result

Headings skip fetching and verification and get a synthetic high-confidence
result through the same store/notify path. Any exception escaping a
paragraph's pipeline is stored as that paragraph's error; siblings keep
running and the document still completes.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from truai_core.runtime_config import EngineOrchestratorConfig, EngineRuntimeConfig
from truai_core.schema.jobs import JobStatus, ProgressSnapshot
from truai_core.schema.paragraph import Paragraph
from truai_core.schema.sources import SourceContent
from truai_core.schema.verification import Confidence, LinkDigest, VerificationResult
from truai_core.storage.job_store import JobStore
from truai_core.tools.source_fetcher import SourceFetcher
from truai_core.utils.trace import Trace
from truai_core.verification.engine import VerificationEngine

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

DIGEST_CHARS = 200
CANCEL_MESSAGE = "Cancelled by user"

HEADING_SUMMARY = "Heading - not subject to verification"
HEADING_REASONING = "This paragraph is a title or heading, so it is not verified."


def build_link_digests(sources: Iterable[SourceContent]) -> list[LinkDigest]:
    digests = []
    for source in sources:
        if source.content:
            summary = source.content[:DIGEST_CHARS]
            if len(source.content) > DIGEST_CHARS:
                summary += "..."
        else:
            summary = source.error or "No content available"
        digests.append(LinkDigest(url=source.url, title=source.title, summary=summary))
    return digests


def _fallback_result(doc_id: str, paragraph_id: int, message: str) -> VerificationResult:
    return VerificationResult(
        doc_id=doc_id,
        paragraph_id=paragraph_id,
        confidence=Confidence.LOW,
        summary_of_sources="Verification failed due to an error",
        reasoning=f"Error during verification: {message}",
    )


class VerificationOrchestrator:
    def __init__(
        self,
        *,
        store: JobStore,
        fetcher: SourceFetcher,
        engine: VerificationEngine,
        config: EngineOrchestratorConfig | None = None,
        runtime: EngineRuntimeConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._store = store
        self._fetcher = fetcher
        self._engine = engine
        self._config = config or EngineOrchestratorConfig()
        self._runtime = runtime
        self._sleep = sleep
        # Strong refs: the loop only keeps weak references to tasks.
        self._tasks: set[asyncio.Task] = set()
        self._doc_tasks: dict[str, asyncio.Task] = {}

    async def verify_paragraph(
        self,
        doc_id: str,
        paragraph: Paragraph,
        run_id: Optional[int] = None,
    ) -> Optional[VerificationResult]:
        """
        Run one paragraph end to end and store the outcome.

        Returns the stored result, a low-confidence fallback when the pipeline
        raised (its error is stored instead), or None when the job was already
        terminal (e.g. cancelled) and the paragraph was skipped.

        With `run_id`, every store write belongs to that run; once the
        document has been resubmitted or cleared the paragraph is skipped and
        its late writes are dropped by the store.
        """
        paragraph_id = paragraph.id
        if run_id is not None and self._store.current_run(doc_id) != run_id:
            logger.info("[Orchestrator] Skipping paragraph %s in doc %s: run %s superseded", paragraph_id, doc_id, run_id)
            return None
        job = self._store.get_job(doc_id, paragraph_id)
        if job is not None and job.status.is_terminal:
            logger.info(
                "[Orchestrator] Skipping paragraph %s in doc %s: job already %s",
                paragraph_id,
                doc_id,
                job.status.value,
            )
            return None

        try:
            if paragraph.is_heading:
                logger.debug("[Orchestrator] Skipping verification for heading paragraph %s", paragraph_id)
                result = VerificationResult(
                    doc_id=doc_id,
                    paragraph_id=paragraph_id,
                    confidence=Confidence.HIGH,
                    summary_of_sources=HEADING_SUMMARY,
                    reasoning=HEADING_REASONING,
                    link_digests=[],
                )
                self._store.update_job_status(doc_id, paragraph_id, JobStatus.IN_PROGRESS, run_id=run_id)
                if not self._store.store_result(result, run_id=run_id):
                    return None
                return result

            self._store.update_job_status(doc_id, paragraph_id, JobStatus.IN_PROGRESS, run_id=run_id)
            links = list(paragraph.links)

            logger.info("[Orchestrator] Fetching %d sources for paragraph %s", len(links), paragraph_id)
            sources = await self._fetcher.fetch_many(links)
            Trace.event("orchestrator.sources", {
                "paragraph_id": paragraph_id,
                "links": len(links),
                "fetched": len(sources),
                "errors": sum(1 for s in sources if s.error),
            })

            output = await self._engine.verify_with_retry(paragraph.text, links, sources)
            logger.info(
                "[Orchestrator] Paragraph %s in doc %s verified: confidence=%s",
                paragraph_id,
                doc_id,
                output.confidence.value,
            )

            result = VerificationResult(
                doc_id=doc_id,
                paragraph_id=paragraph_id,
                confidence=output.confidence,
                summary_of_sources=output.summary_of_sources,
                reasoning=output.reasoning,
                link_digests=build_link_digests(sources),
            )
            if not self._store.store_result(result, run_id=run_id):
                return None
            return result
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception("[Orchestrator] Error verifying paragraph %s in doc %s", paragraph_id, doc_id)
            Trace.event("orchestrator.paragraph_error", {"paragraph_id": paragraph_id, "error": message})
            self._store.store_error(doc_id, paragraph_id, message, run_id=run_id)
            return _fallback_result(doc_id, paragraph_id, message)

    async def _process(
        self,
        doc_id: str,
        paragraphs: Sequence[Paragraph],
        sequential: bool,
        delay_ms: int,
        run_id: Optional[int] = None,
    ) -> list[Optional[VerificationResult]]:
        with Trace.document(doc_id, runtime=self._runtime):
            Trace.event("orchestrator.run.start", {
                "paragraphs": len(paragraphs),
                "sequential": sequential,
                "delay_ms": delay_ms,
                "run_id": run_id,
            })
            try:
                return await self._run_paragraphs(doc_id, paragraphs, sequential, delay_ms, run_id)
            finally:
                logger.info("[Orchestrator] Finished run for doc %s", doc_id)
                Trace.event("orchestrator.run.end", {"doc_id": doc_id})

    async def _run_paragraphs(
        self,
        doc_id: str,
        paragraphs: Sequence[Paragraph],
        sequential: bool,
        delay_ms: int,
        run_id: Optional[int],
    ) -> list[Optional[VerificationResult]]:
        if not sequential:
            return list(await asyncio.gather(*(self.verify_paragraph(doc_id, p, run_id) for p in paragraphs)))

        results: list[Optional[VerificationResult]] = []
        last = len(paragraphs) - 1
        for i, paragraph in enumerate(paragraphs):
            result = await self.verify_paragraph(doc_id, paragraph, run_id)
            results.append(result)
            if result is not None and delay_ms > 0 and i < last:
                await self._sleep(delay_ms / 1000.0)
        return results

    def _resolve_mode(self, sequential: Optional[bool], delay_ms: Optional[int]) -> tuple[bool, int]:
        if sequential is None:
            sequential = self._config.sequential
        if delay_ms is None:
            delay_ms = self._config.delay_ms
        return sequential, max(0, int(delay_ms))

    async def run(
        self,
        doc_id: str,
        paragraphs: Sequence[Paragraph],
        sequential: Optional[bool] = None,
        delay_ms: Optional[int] = None,
    ) -> list[Optional[VerificationResult]]:
        """Register jobs for the document and verify every paragraph; returns when all are done."""
        sequential, delay_ms = self._resolve_mode(sequential, delay_ms)
        paragraphs = list(paragraphs)
        logger.info(
            "[Orchestrator] Starting %s verification for doc %s with %d paragraphs",
            "sequential" if sequential else "parallel",
            doc_id,
            len(paragraphs),
        )
        self._store.create_jobs(doc_id, paragraphs)
        run_id = self._store.current_run(doc_id)
        return await self._process(doc_id, paragraphs, sequential, delay_ms, run_id)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        for doc_id, doc_task in list(self._doc_tasks.items()):
            if doc_task is task:
                del self._doc_tasks[doc_id]
        if task.cancelled():
            logger.warning("[Orchestrator] Background job %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[Orchestrator] Background job %s failed: %s", task.get_name(), exc, exc_info=exc)

    def start_verification_job(
        self,
        doc_id: str,
        paragraphs: Sequence[Paragraph],
        sequential: Optional[bool] = None,
        delay_ms: Optional[int] = None,
    ) -> asyncio.Task:
        """
        Fire-and-forget variant of `run`. Jobs are registered before this
        returns, so callers can query progress or cancel right away. Must be
        called from within a running event loop.

        A still-running background job for the same document is cancelled:
        its jobs have just been replaced.
        """
        sequential, delay_ms = self._resolve_mode(sequential, delay_ms)
        paragraphs = list(paragraphs)
        previous = self._doc_tasks.get(doc_id)
        if previous is not None and not previous.done():
            logger.info("[Orchestrator] Resubmission of doc %s cancels its running job", doc_id)
            previous.cancel()

        logger.info(
            "[Orchestrator] Starting background verification job for doc %s (%s)",
            doc_id,
            "sequential" if sequential else "parallel",
        )
        self._store.create_jobs(doc_id, paragraphs)
        run_id = self._store.current_run(doc_id)
        task = asyncio.create_task(
            self._process(doc_id, paragraphs, sequential, delay_ms, run_id),
            name=f"verify:{doc_id}",
        )
        self._tasks.add(task)
        self._doc_tasks[doc_id] = task
        task.add_done_callback(self._on_task_done)
        return task

    async def join(self) -> None:
        """Wait until every background job started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def cancel_verification(self, doc_id: str) -> int:
        """
        Fail every still-pending job of the document. In-progress jobs run to
        completion. Returns the number of jobs cancelled.
        """
        cancelled = 0
        for job in self._store.get_jobs(doc_id):
            if job.status is JobStatus.PENDING:
                if self._store.store_error(doc_id, job.paragraph_id, CANCEL_MESSAGE):
                    cancelled += 1
        logger.info("[Orchestrator] Cancelled %d pending jobs for doc %s", cancelled, doc_id)
        return cancelled

    def get_verification_progress(self, doc_id: str) -> ProgressSnapshot:
        jobs = self._store.get_jobs(doc_id)
        counts = {status: 0 for status in JobStatus}
        for job in jobs:
            counts[job.status] += 1

        total = len(jobs)
        completed = counts[JobStatus.COMPLETED]
        # Half-up rounding, not Python's banker's rounding.
        percent = math.floor(completed * 100 / total + 0.5) if total else 0
        return ProgressSnapshot(
            total=total,
            completed=completed,
            failed=counts[JobStatus.FAILED],
            pending=counts[JobStatus.PENDING],
            in_progress=counts[JobStatus.IN_PROGRESS],
            percent_complete=percent,
        )
