# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
In-memory system of record for verification jobs and results.

One job per (doc_id, paragraph_id). Jobs move
pending -> in_progress -> {completed | failed} (or pending -> failed on
cancellation) and never leave a terminal state. Results are upserted by
paragraph id, so at most one current result exists per key.

Every create_jobs call opens a new run for the document and stamps its jobs
with a fresh run id. Writers that pass `run_id` are dropped once that run
has been replaced or cleared, so a superseded run can never complete or
notify for the jobs that replaced it.

Subscribers get three independent streams:
- update: once per stored result, with the full result
- complete: once per document, after its last job turned terminal
- error: once per stored error

A listener that raises is logged and skipped; it never blocks the other
listeners or corrupts store state. Listeners run after the store lock is
released, so they may call back into the store. Listeners returning an
awaitable are scheduled on the running event loop.

State is volatile: everything is lost on restart.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import threading
from typing import Any, Callable, Iterable, Optional

from truai_core.errors import InvalidTransitionError
from truai_core.schema.jobs import JobStatus, StoreStats, VerificationJob, can_transition
from truai_core.schema.paragraph import Paragraph
from truai_core.schema.verification import VerificationResult
from truai_core.utils.trace import Trace

logger = logging.getLogger(__name__)

UpdateListener = Callable[[VerificationResult], Any]
CompleteListener = Callable[[str], Any]
ErrorListener = Callable[[str, int, str], Any]
Unsubscribe = Callable[[], None]


class JobStore:
    def __init__(self) -> None:
        self._jobs: dict[str, list[VerificationJob]] = {}
        self._results: dict[str, list[VerificationResult]] = {}
        self._completed_docs: set[str] = set()
        self._run_ids: dict[str, int] = {}
        self._run_counter = itertools.count(1)
        self._lock = threading.RLock()

        self._update_listeners: list[UpdateListener] = []
        self._complete_listeners: list[CompleteListener] = []
        self._error_listeners: list[ErrorListener] = []
        # Strong refs for async listener tasks until they finish.
        self._listener_tasks: set[asyncio.Future[Any]] = set()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_jobs(self, doc_id: str, paragraphs: Iterable[Paragraph]) -> list[VerificationJob]:
        """
        Register one pending job per paragraph, replacing any prior jobs for
        doc_id. The returned jobs carry the run id of this registration.
        """
        with self._lock:
            run_id = next(self._run_counter)
            jobs = [VerificationJob(doc_id=doc_id, paragraph=p, run_id=run_id) for p in paragraphs]
            self._jobs[doc_id] = jobs
            self._run_ids[doc_id] = run_id
            self._results.pop(doc_id, None)
            self._completed_docs.discard(doc_id)
        logger.info("[JobStore] Created %d jobs for doc %s (run %d)", len(jobs), doc_id, run_id)
        Trace.event("store.jobs_created", {"doc_id": doc_id, "count": len(jobs), "run_id": run_id})
        return [j.model_copy(deep=True) for j in jobs]

    def current_run(self, doc_id: str) -> Optional[int]:
        """Run id of the latest create_jobs for doc_id, None once cleared."""
        with self._lock:
            return self._run_ids.get(doc_id)

    def _find_job(self, doc_id: str, paragraph_id: int) -> Optional[VerificationJob]:
        for job in self._jobs.get(doc_id, ()):
            if job.paragraph.id == paragraph_id:
                return job
        return None

    def _is_stale(self, doc_id: str, run_id: Optional[int]) -> bool:
        return run_id is not None and self._run_ids.get(doc_id) != run_id

    def _transition(self, job: VerificationJob, status: JobStatus) -> None:
        if not can_transition(job.status, status):
            raise InvalidTransitionError(job.doc_id, job.paragraph.id, job.status.value, status.value)
        job.status = status
        job.touch()

    def _mark_complete_if_done(self, doc_id: str) -> bool:
        """True exactly once per document: when every job is terminal for the first time."""
        jobs = self._jobs.get(doc_id)
        if not jobs or doc_id in self._completed_docs:
            return False
        if all(j.status.is_terminal for j in jobs):
            self._completed_docs.add(doc_id)
            return True
        return False

    def get_jobs(self, doc_id: str) -> list[VerificationJob]:
        with self._lock:
            return [j.model_copy(deep=True) for j in self._jobs.get(doc_id, ())]

    def get_job(self, doc_id: str, paragraph_id: int) -> Optional[VerificationJob]:
        with self._lock:
            job = self._find_job(doc_id, paragraph_id)
            return job.model_copy(deep=True) if job else None

    def has_document(self, doc_id: str) -> bool:
        with self._lock:
            return bool(self._jobs.get(doc_id))

    def update_job_status(
        self,
        doc_id: str,
        paragraph_id: int,
        status: JobStatus,
        *,
        run_id: Optional[int] = None,
    ) -> bool:
        """
        Move a job to `status`. Illegal transitions (anything out of a terminal
        state) are logged and ignored. COMPLETED is only reachable through
        store_result. Returns whether the status was applied.
        """
        if status is JobStatus.COMPLETED:
            logger.warning(
                "[JobStore] Refusing completed status without a result for doc %s paragraph %s",
                doc_id,
                paragraph_id,
            )
            return False

        with self._lock:
            if self._is_stale(doc_id, run_id):
                logger.info("[JobStore] Dropping status from superseded run %s for doc %s", run_id, doc_id)
                return False
            job = self._find_job(doc_id, paragraph_id)
            if job is None:
                logger.debug("[JobStore] No job for doc %s paragraph %s", doc_id, paragraph_id)
                return False
            try:
                self._transition(job, status)
            except InvalidTransitionError as e:
                logger.warning("[JobStore] %s", e)
                return False
            fire_complete = status.is_terminal and self._mark_complete_if_done(doc_id)

        if fire_complete:
            self._notify_complete(doc_id)
        return True

    # ------------------------------------------------------------------
    # Results and errors
    # ------------------------------------------------------------------

    def store_result(self, result: VerificationResult, *, run_id: Optional[int] = None) -> bool:
        """
        Upsert the result for its paragraph, mark the job completed, notify
        update listeners and, if this was the document's last open job, the
        completion listeners. Results for unknown, failed or superseded jobs
        are rejected without notifying anyone.
        """
        doc_id, paragraph_id = result.doc_id, result.paragraph_id
        with self._lock:
            if self._is_stale(doc_id, run_id):
                logger.info(
                    "[JobStore] Dropping result from superseded run %s for doc=%s paragraph=%s",
                    run_id,
                    doc_id,
                    paragraph_id,
                )
                return False
            job = self._find_job(doc_id, paragraph_id)
            if job is None:
                logger.warning("[JobStore] Ignoring result for unknown job doc=%s paragraph=%s", doc_id, paragraph_id)
                return False
            if job.status is JobStatus.FAILED:
                logger.warning(
                    "[JobStore] Ignoring result for failed job doc=%s paragraph=%s", doc_id, paragraph_id
                )
                return False

            results = self._results.setdefault(doc_id, [])
            for i, existing in enumerate(results):
                if existing.paragraph_id == paragraph_id:
                    results[i] = result
                    break
            else:
                results.append(result)

            if job.status is not JobStatus.COMPLETED:
                self._transition(job, JobStatus.COMPLETED)
            job.result = result
            job.error = None
            job.touch()
            fire_complete = self._mark_complete_if_done(doc_id)
            total = len(results)

        logger.info(
            "[JobStore] Stored result for paragraph %s in doc %s (confidence=%s). Total results: %d",
            paragraph_id,
            doc_id,
            result.confidence.value,
            total,
        )
        Trace.event("store.result", {"doc_id": doc_id, "paragraph_id": paragraph_id})

        self._notify_update(result)
        if fire_complete:
            self._notify_complete(doc_id)
        return True

    def store_error(
        self,
        doc_id: str,
        paragraph_id: int,
        message: str,
        *,
        run_id: Optional[int] = None,
    ) -> bool:
        """Mark the job failed with `message`, notify error listeners, then run the completion check."""
        with self._lock:
            if self._is_stale(doc_id, run_id):
                logger.info(
                    "[JobStore] Dropping error from superseded run %s for doc=%s paragraph=%s: %s",
                    run_id,
                    doc_id,
                    paragraph_id,
                    message,
                )
                return False
            job = self._find_job(doc_id, paragraph_id)
            applied = False
            if job is None:
                logger.warning("[JobStore] Error for unknown job doc=%s paragraph=%s: %s", doc_id, paragraph_id, message)
            elif job.status.is_terminal:
                logger.warning(
                    "[JobStore] Ignoring error for %s job doc=%s paragraph=%s: %s",
                    job.status.value,
                    doc_id,
                    paragraph_id,
                    message,
                )
                return False
            else:
                self._transition(job, JobStatus.FAILED)
                job.error = message
                applied = True
            fire_complete = self._mark_complete_if_done(doc_id)

        logger.info("[JobStore] Stored error for paragraph %s in doc %s: %s", paragraph_id, doc_id, message)
        Trace.event("store.error", {"doc_id": doc_id, "paragraph_id": paragraph_id, "error": message})

        self._notify_error(doc_id, paragraph_id, message)
        if fire_complete:
            self._notify_complete(doc_id)
        return applied

    def get_results(self, doc_id: str) -> list[VerificationResult]:
        with self._lock:
            return [r.model_copy(deep=True) for r in self._results.get(doc_id, ())]

    def get_result(self, doc_id: str, paragraph_id: int) -> Optional[VerificationResult]:
        with self._lock:
            for r in self._results.get(doc_id, ()):
                if r.paragraph_id == paragraph_id:
                    return r.model_copy(deep=True)
        return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def clear_document(self, doc_id: str) -> None:
        with self._lock:
            self._jobs.pop(doc_id, None)
            self._results.pop(doc_id, None)
            self._run_ids.pop(doc_id, None)
            self._completed_docs.discard(doc_id)

    def clear_all(self) -> None:
        with self._lock:
            self._jobs.clear()
            self._results.clear()
            self._run_ids.clear()
            self._completed_docs.clear()

    def get_stats(self) -> StoreStats:
        with self._lock:
            return StoreStats(
                total_documents=len(self._jobs),
                total_jobs=sum(len(jobs) for jobs in self._jobs.values()),
                total_results=sum(len(results) for results in self._results.values()),
            )

    # ------------------------------------------------------------------
    # Publish / subscribe
    # ------------------------------------------------------------------

    @staticmethod
    def _subscribe(listeners: list, listener: Callable[..., Any]) -> Unsubscribe:
        listeners.append(listener)

        def unsubscribe() -> None:
            try:
                listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def on_update(self, listener: UpdateListener) -> Unsubscribe:
        return self._subscribe(self._update_listeners, listener)

    def on_complete(self, listener: CompleteListener) -> Unsubscribe:
        return self._subscribe(self._complete_listeners, listener)

    def on_error(self, listener: ErrorListener) -> Unsubscribe:
        return self._subscribe(self._error_listeners, listener)

    def clear_listeners(self) -> None:
        self._update_listeners.clear()
        self._complete_listeners.clear()
        self._error_listeners.clear()

    @property
    def pending_listener_tasks(self) -> int:
        return len(self._listener_tasks)

    def _on_listener_task_done(self, task: "asyncio.Future[Any]") -> None:
        self._listener_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[JobStore] Async listener failed: %s", exc, exc_info=exc)

    def _dispatch(self, kind: str, listeners: list, *args: Any) -> None:
        for listener in list(listeners):
            try:
                outcome = listener(*args)
                if inspect.isawaitable(outcome):
                    task = asyncio.ensure_future(outcome)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._on_listener_task_done)
            except Exception:
                logger.exception("[JobStore] Error in %s listener", kind)

    def _notify_update(self, result: VerificationResult) -> None:
        self._dispatch("update", self._update_listeners, result)

    def _notify_complete(self, doc_id: str) -> None:
        logger.info("[JobStore] All jobs terminal for doc %s", doc_id)
        Trace.event("store.complete", {"doc_id": doc_id})
        self._dispatch("complete", self._complete_listeners, doc_id)

    def _notify_error(self, doc_id: str, paragraph_id: int, message: str) -> None:
        self._dispatch("error", self._error_listeners, doc_id, paragraph_id, message)
