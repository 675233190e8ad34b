# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import hashlib
from typing import Sequence

from truai_core.schema.sources import SourceContent
from truai_core.tools.url_utils import normalize_url

SNIPPET_CHARS = 1000


def make_verification_cache_key(
    *,
    paragraph_text: str,
    paragraph_links: Sequence[str],
    sources: Sequence[SourceContent],
) -> str:
    """
    Content hash identifying one verification call.

    Links are sorted and sources are ordered by URL, so the key does not
    depend on citation or fetch order. Only the first SNIPPET_CHARS of each
    source take part, which lets identical paragraphs collapse to one entry
    across documents.
    """
    sorted_urls = sorted(paragraph_links or [])
    ordered = sorted(sources or [], key=lambda s: (normalize_url(s.url), s.content[:SNIPPET_CHARS]))
    snippets = "|".join(s.content[:SNIPPET_CHARS] for s in ordered)
    combined = "::".join([paragraph_text or "", "|".join(sorted_urls), snippets])
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()
