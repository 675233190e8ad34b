# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
Verification models.

VerificationOutput is what the language model (or a fallback) produces for
one paragraph; VerificationResult is what the job store keeps and fans out.
"""

from enum import Enum
from typing import Optional

from pydantic import Field

from truai_core.schema.serialization import SchemaModel
from truai_core.schema.sources import SourceContent


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LinkDigest(SchemaModel):
    url: str
    title: str
    summary: str


class VerificationInput(SchemaModel):
    paragraph_text: str
    paragraph_links: list[str] = Field(default_factory=list)
    sources: list[SourceContent] = Field(default_factory=list)


class VerificationOutput(SchemaModel):
    confidence: Confidence
    summary_of_sources: str
    reasoning: str

    error: Optional[str] = Field(None, exclude=True)
    """Set only on error fallbacks. Error outputs are retried and never cached."""

    stand_in: bool = Field(False, exclude=True)
    """True for the labeled result returned while no API key is configured."""

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def cacheable(self) -> bool:
        return not self.is_error and not self.stand_in


class VerificationResult(SchemaModel):
    doc_id: str
    paragraph_id: int
    confidence: Confidence
    summary_of_sources: str
    reasoning: str
    link_digests: list[LinkDigest] = Field(default_factory=list)
