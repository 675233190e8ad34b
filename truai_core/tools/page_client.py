# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import logging

import httpx

from truai_core.utils.trace import Trace

logger = logging.getLogger(__name__)

SCRAPINGBEE_ENDPOINT = "https://app.scrapingbee.com/api/v1/"


class PageClient:
    """
    Raw HTML fetcher.

    Fetches the page directly, or through ScrapingBee (JS rendering, ad
    blocking, premium proxies) when an API key is configured. Non-2xx
    responses raise `httpx.HTTPStatusError`.
    """

    def __init__(
        self,
        *,
        timeout_s: float = 15.0,
        user_agent: str = "Mozilla/5.0 (compatible; TruAI/1.0)",
        scrapingbee_api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout_s = float(timeout_s)
        self.scrapingbee_api_key = scrapingbee_api_key
        self._client = client or httpx.AsyncClient(
            timeout=self.timeout_s,
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            headers={"User-Agent": user_agent},
        )

    @property
    def uses_scrapingbee(self) -> bool:
        return bool(self.scrapingbee_api_key)

    async def close(self) -> None:
        await self._client.aclose()

    async def get_html(self, url: str) -> str:
        if self.uses_scrapingbee:
            params = {
                "api_key": self.scrapingbee_api_key,
                "url": url,
                "render_js": "true",
                "premium_proxy": "true",
                "block_ads": "true",
                "block_resources": "true",
            }
            Trace.event("page.request", {"url": url, "via": "scrapingbee"})
            r = await self._client.get(SCRAPINGBEE_ENDPOINT, params=params, timeout=self.timeout_s)
        else:
            Trace.event("page.request", {"url": url, "via": "direct"})
            r = await self._client.get(url, timeout=self.timeout_s)

        try:
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response is not None:
                logger.debug(
                    "[PageClient] HTTP error %s for %s. Response: %s",
                    e.response.status_code,
                    url,
                    (e.response.text or "")[:300],
                )
            raise

        Trace.event("page.response", {"url": url, "status_code": r.status_code, "chars": len(r.text or "")})
        return r.text or ""
