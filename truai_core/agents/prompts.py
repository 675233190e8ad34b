# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Verification prompt builder.

The prompt is a pure function of (paragraph, links, sources): no timestamps,
no randomness, so identical inputs always produce identical prompts.
"""

from __future__ import annotations

from typing import Sequence

from truai_core.schema.sources import SourceContent

VERIFICATION_INSTRUCTIONS = (
    "You are a fact-checking AI that analyzes paragraphs against their cited sources "
    "and returns verification results in JSON format."
)

_CONFIDENCE_CRITERIA = """### Confidence Criteria:
- **HIGH**: Multiple credible sources (academic/official/news) strongly support the claims. No contradictions found.
- **MEDIUM**: Some sources support the claims, but evidence is partial, sources are less credible (blogs), or there are minor inconsistencies.
- **LOW**: Sources don't support the claims, sources are unavailable/error, sources contradict the claims, or no sources available."""

_RESPONSE_FORMAT = """## Response Format:
You must respond with a valid JSON object (and ONLY JSON, no markdown) with exactly these three fields:
{
  "confidence": "high" | "medium" | "low",
  "summary_of_sources": "Brief summary of how many sources support the claims and their credibility",
  "reasoning": "Detailed explanation of why you assigned this confidence level, referencing specific sources"
}"""


def _format_source(source: SourceContent, index: int, max_chars: int) -> str:
    credibility = source.credibility.value
    header = f"### Source {index + 1}: {source.url} [{credibility.upper()}]"
    if source.error:
        header += f" [ERROR: {source.error}]"

    content = source.content or "(No content available)"
    excerpt = content[:max_chars]
    if len(content) > max_chars:
        excerpt += " ...(truncated)"

    return "\n".join([
        header,
        f"**Title:** {source.title}",
        f"**Credibility:** {credibility}",
        "**Content:**",
        excerpt,
    ])


def build_verification_prompt(
    paragraph_text: str,
    paragraph_links: Sequence[str],
    sources: Sequence[SourceContent],
    *,
    max_source_chars: int = 2000,
) -> str:
    links_section = "\n".join(f"{i + 1}. {link}" for i, link in enumerate(paragraph_links)) or "(No links cited)"
    if sources:
        sources_section = "\n\n".join(_format_source(s, i, max_source_chars) for i, s in enumerate(sources))
    else:
        sources_section = "(No source content available)"

    return f"""You are a fact-checking AI assistant. Your task is to verify the accuracy of a paragraph by comparing it against the cited sources.

## Paragraph to Verify:
"{paragraph_text}"

## Cited Links:
{links_section}

## Crawled Source Content:
{sources_section}

---

## Your Task:
1. Compare the paragraph's claims against the source content
2. Evaluate how well the sources support the paragraph
3. Consider the credibility of each source (academic > official > news > blog > unknown)
4. Determine a confidence level: high, medium, or low

{_CONFIDENCE_CRITERIA}

{_RESPONSE_FORMAT}

Now, analyze the paragraph and provide your JSON response:"""
