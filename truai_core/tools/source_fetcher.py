# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Source fetching for one paragraph's citations.

`fetch_many` caps the input to the first `max_urls` links and runs a small
worker pool over a shared queue. Results are written by original index, so
output order always matches input order. A failed URL never aborts the
batch: it comes back as a SourceContent with `error` set and empty content.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

import httpx

from truai_core.cache.ttl_cache import TTLCache
from truai_core.errors import SourceFetchError
from truai_core.runtime_config import EngineFetchConfig
from truai_core.schema.sources import SourceContent
from truai_core.tools.credibility import CredibilityClassifier
from truai_core.tools.html_extract import ExtractedPage, extract_page
from truai_core.tools.page_client import PageClient
from truai_core.tools.url_utils import is_valid_public_http_url, normalize_url
from truai_core.utils.trace import Trace

logger = logging.getLogger(__name__)

ExtractFn = Callable[..., ExtractedPage]


class SourceFetcher:
    def __init__(
        self,
        *,
        cache: TTLCache[SourceContent],
        credibility: CredibilityClassifier,
        page_client: PageClient,
        config: EngineFetchConfig | None = None,
        extractor: ExtractFn = extract_page,
    ):
        self._cache = cache
        self._credibility = credibility
        self._client = page_client
        self._config = config or EngineFetchConfig()
        self._extract = extractor

    async def fetch_one(self, url: str) -> SourceContent:
        cache_key = normalize_url(url)
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("[Fetcher] Cache hit: %s", url)
            Trace.event("fetch.cache_hit", {"url": url})
            return cached

        logger.debug("[Fetcher] Cache miss, fetching: %s", url)
        credibility = self._credibility.evaluate(url)
        timeout = self._config.timeout_sec

        try:
            if not is_valid_public_http_url(url):
                raise SourceFetchError("Invalid or non-public URL")
            html = await asyncio.wait_for(self._client.get_html(url), timeout=timeout)
            page = self._extract(html, url, max_chars=self._config.max_content_chars)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            error = f"Timed out after {timeout:g}s"
        except httpx.HTTPStatusError as e:
            error = f"HTTP {e.response.status_code}"
        except httpx.HTTPError as e:
            error = f"Network error: {type(e).__name__}"
        except SourceFetchError as e:
            error = str(e)
        except Exception as e:
            logger.warning("[Fetcher] Unexpected failure for %s: %s", url, e)
            error = f"fetch_error: {type(e).__name__}"
        else:
            result = SourceContent(
                url=url,
                title=page.title,
                content=page.content,
                credibility=credibility,
            )
            self._cache.set(cache_key, result)
            Trace.event("fetch.ok", {"url": url, "chars": len(result.content), "credibility": credibility.value})
            return result

        # Errored content is never cached.
        logger.info("[Fetcher] Failed to fetch %s: %s", url, error)
        Trace.event("fetch.error", {"url": url, "error": error})
        return SourceContent(url=url, title=url, content="", credibility=credibility, error=error)

    async def fetch_many(self, urls: Sequence[str]) -> list[SourceContent]:
        limited = list(urls or [])[: self._config.max_urls]
        if not limited:
            return []

        results: list[SourceContent | None] = [None] * len(limited)
        queue: asyncio.Queue[tuple[int, str]] = asyncio.Queue()
        for item in enumerate(limited):
            queue.put_nowait(item)

        async def worker() -> None:
            while True:
                try:
                    index, url = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                results[index] = await self.fetch_one(url)

        pool_size = min(self._config.concurrency, len(limited))
        await asyncio.gather(*(worker() for _ in range(pool_size)))

        if len(urls) > len(limited):
            logger.debug("[Fetcher] Capped %d links to %d", len(urls), len(limited))
        return [r for r in results if r is not None]
