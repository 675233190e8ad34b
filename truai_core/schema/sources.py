# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
from enum import Enum
from typing import Optional

from truai_core.schema.serialization import SchemaModel


class Credibility(str, Enum):
    """Domain-based trust category of a source."""
    ACADEMIC = "academic"
    OFFICIAL = "official"
    NEWS = "news"
    BLOG = "blog"
    UNKNOWN = "unknown"


class SourceContent(SchemaModel):
    """
    Readable text fetched from one cited URL.

    A failed fetch still yields a SourceContent: `content` is empty and
    `error` explains why.
    """

    model_config = {"extra": "ignore", "frozen": True}

    url: str
    title: str
    content: str = ""
    credibility: Credibility = Credibility.UNKNOWN
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None
