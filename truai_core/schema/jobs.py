# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
Job lifecycle models.

    pending ──> in_progress ──> completed
       │             │
       └─────────────┴──────> failed

Terminal states (completed, failed) never change again.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import Field

from truai_core.schema.paragraph import Paragraph
from truai_core.schema.serialization import SchemaModel
from truai_core.schema.verification import VerificationResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.IN_PROGRESS: frozenset({JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


def can_transition(current: JobStatus, requested: JobStatus) -> bool:
    return requested in _ALLOWED_TRANSITIONS[current]


class VerificationJob(SchemaModel):
    doc_id: str
    paragraph: Paragraph
    status: JobStatus = JobStatus.PENDING
    run_id: int = 0
    result: Optional[VerificationResult] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def paragraph_id(self) -> int:
        return self.paragraph.id

    def touch(self) -> None:
        self.updated_at = _utcnow()


class ProgressSnapshot(SchemaModel):
    total: int = 0
    completed: int = 0
    failed: int = 0
    pending: int = 0
    in_progress: int = 0
    percent_complete: int = 0


class StoreStats(SchemaModel):
    total_documents: int = 0
    total_jobs: int = 0
    total_results: int = 0
