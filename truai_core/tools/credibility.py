# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Source Credibility Registry
===========================
Static, domain-based classification of cited sources:

- academic: journals, preprint servers, scholarly indexes
- official: government, education and intergovernmental bodies
- news: established news organisations and wire services
- blog: self-publishing platforms
- unknown: everything else

Classification is a pure function of the URL. `CredibilityClassifier` adds
the credibility cache in front of it.
"""

from __future__ import annotations

import logging
from typing import Callable
from urllib.parse import urlsplit

from truai_core.cache.ttl_cache import TTLCache
from truai_core.schema.sources import Credibility
from truai_core.tools.url_utils import extract_domain, host_matches, normalize_host

logger = logging.getLogger(__name__)

ClassifyFn = Callable[[str], Credibility]

CREDIBILITY_REGISTRY: dict[Credibility, list[str]] = {
    Credibility.ACADEMIC: [
        "arxiv.org", "scholar.google.com", "ieee.org", "acm.org",
        "nature.com", "science.org", "springer.com", "sciencedirect.com",
        "pubmed.ncbi.nlm.nih.gov", "jstor.org", "biorxiv.org", "medrxiv.org",
        "plos.org", "wiley.com", "semanticscholar.org",
    ],
    Credibility.OFFICIAL: [
        "who.int", "cdc.gov", "nih.gov", "europa.eu", "un.org",
        "oecd.org", "worldbank.org", "imf.org",
    ],
    Credibility.NEWS: [
        "nytimes.com", "washingtonpost.com", "bbc.com", "bbc.co.uk",
        "reuters.com", "apnews.com", "theguardian.com", "bloomberg.com",
        "wsj.com", "cnn.com", "npr.org", "ft.com", "economist.com",
    ],
    Credibility.BLOG: [
        "medium.com", "blogger.com", "blogspot.com", "wordpress.com",
        "substack.com", "tumblr.com",
    ],
}

# Host labels that mark a government / education domain (e.g. data.gov, ox.ac.uk, gov.uk).
_OFFICIAL_LABELS = frozenset({"gov", "edu", "mil", "int", "ac"})

# Academic entries win over official ones (pubmed.ncbi.nlm.nih.gov is both).
_PRECEDENCE = (Credibility.ACADEMIC, Credibility.OFFICIAL, Credibility.NEWS, Credibility.BLOG)


def classify_url(url: str) -> Credibility:
    """Pure url -> credibility classification."""
    try:
        host = normalize_host(urlsplit((url or "").strip()).hostname or "")
    except ValueError:
        return Credibility.UNKNOWN
    if not host:
        return Credibility.UNKNOWN

    for category in _PRECEDENCE:
        if any(host_matches(host, d) for d in CREDIBILITY_REGISTRY[category]):
            return category
        if category is Credibility.OFFICIAL and _OFFICIAL_LABELS.intersection(host.split(".")[-2:]):
            return Credibility.OFFICIAL
    return Credibility.UNKNOWN


class CredibilityClassifier:
    """Cache-fronted credibility lookup keyed by bare domain."""

    def __init__(self, cache: TTLCache[Credibility], classify: ClassifyFn = classify_url):
        self._cache = cache
        self._classify = classify

    def evaluate(self, url: str) -> Credibility:
        domain = extract_domain(url)
        cached = self._cache.get(domain)
        if cached is not None:
            return cached

        try:
            credibility = Credibility(self._classify(url))
        except Exception as e:
            logger.warning("[Credibility] Classifier failed for %s: %s", url, e)
            return Credibility.UNKNOWN

        self._cache.set(domain, credibility)
        return credibility
