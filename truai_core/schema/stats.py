# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
from truai_core.schema.serialization import SchemaModel


class CacheTierStats(SchemaModel):
    size: int = 0
    max: int = 0
    hit_rate: float = 0.0
    """Percentage of lookups that hit, rounded to two decimals."""


class CacheStats(SchemaModel):
    source_content: CacheTierStats
    verification: CacheTierStats
    credibility: CacheTierStats
