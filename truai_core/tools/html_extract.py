# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Readable text and title extraction for fetched source pages."""

from __future__ import annotations

import re
from dataclasses import dataclass

import trafilatura

from truai_core.errors import SourceFetchError


@dataclass(frozen=True)
class ExtractedPage:
    title: str
    content: str


def _collapse_ws(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()


def extract_title(html: str, url: str) -> str:
    """<title>, then og/twitter metadata (both via trafilatura), then the URL itself."""
    try:
        meta = trafilatura.extract_metadata(html)
    except Exception:
        meta = None
    title = _collapse_ws(getattr(meta, "title", None) or "")
    return title or url


def extract_page(html: str, url: str, *, max_chars: int = 10_000) -> ExtractedPage:
    if not html or not html.strip():
        raise SourceFetchError("Empty response body")

    try:
        text = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=True,
            include_images=False,
            include_links=False,
        )
    except Exception as e:
        raise SourceFetchError(f"Failed to parse HTML: {type(e).__name__}") from e

    content = _collapse_ws(text or "")
    if not content:
        raise SourceFetchError("No readable content extracted")

    return ExtractedPage(title=extract_title(html, url), content=content[:max_chars])
