# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
Paragraph input model.

Paragraphs are produced by the upstream HTML extractor and are immutable
from then on. Ids follow document order starting at 1.
"""

from typing import Optional

from pydantic import Field

from truai_core.schema.serialization import SchemaModel


class Paragraph(SchemaModel):
    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    id: int
    order: int
    text: str
    links: tuple[str, ...] = ()
    is_heading: bool = Field(False, alias="isHeading")
    """Headings bypass verification entirely."""

    heading_level: Optional[int] = Field(None, ge=1, le=6, alias="headingLevel")
