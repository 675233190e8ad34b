# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
TruAI Core Schema Module
"""

from truai_core.schema.serialization import SchemaModel, dump_schema, load_schema
from truai_core.schema.paragraph import Paragraph
from truai_core.schema.sources import Credibility, SourceContent
from truai_core.schema.verification import (
    Confidence,
    LinkDigest,
    VerificationInput,
    VerificationOutput,
    VerificationResult,
)
from truai_core.schema.jobs import (
    JobStatus,
    ProgressSnapshot,
    StoreStats,
    VerificationJob,
    can_transition,
)
from truai_core.schema.stats import CacheStats, CacheTierStats

__all__ = [
    "SchemaModel",
    "dump_schema",
    "load_schema",
    "Paragraph",
    "Credibility",
    "SourceContent",
    "Confidence",
    "LinkDigest",
    "VerificationInput",
    "VerificationOutput",
    "VerificationResult",
    "JobStatus",
    "ProgressSnapshot",
    "StoreStats",
    "VerificationJob",
    "can_transition",
    "CacheStats",
    "CacheTierStats",
]
