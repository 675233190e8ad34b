# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import httpx
import pytest

from truai_core.tools.page_client import SCRAPINGBEE_ENDPOINT, PageClient


@pytest.mark.asyncio
async def test_direct_fetch(mock_httpx_client):
    client = PageClient(client=mock_httpx_client)
    html = await client.get_html("https://example.com/a")

    assert "Hello" in html
    assert client.uses_scrapingbee is False
    mock_httpx_client.get.assert_awaited_once_with("https://example.com/a", timeout=15.0)


@pytest.mark.asyncio
async def test_scrapingbee_fetch(mock_httpx_client):
    client = PageClient(scrapingbee_api_key="sb-key", timeout_s=10, client=mock_httpx_client)
    await client.get_html("https://example.com/a")

    assert client.uses_scrapingbee is True
    args, kwargs = mock_httpx_client.get.call_args
    assert args == (SCRAPINGBEE_ENDPOINT,)
    assert kwargs["params"]["api_key"] == "sb-key"
    assert kwargs["params"]["url"] == "https://example.com/a"
    assert kwargs["params"]["render_js"] == "true"
    assert kwargs["params"]["block_ads"] == "true"
    assert kwargs["timeout"] == 10.0


@pytest.mark.asyncio
async def test_non_2xx_raises(mock_httpx_client):
    request = httpx.Request("GET", "https://example.com/missing")
    response = httpx.Response(404, request=request)
    mock_httpx_client.get.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
        "Not Found", request=request, response=response
    )

    client = PageClient(client=mock_httpx_client)
    with pytest.raises(httpx.HTTPStatusError):
        await client.get_html("https://example.com/missing")


@pytest.mark.asyncio
async def test_close_releases_client(mock_httpx_client):
    client = PageClient(client=mock_httpx_client)
    await client.close()
    mock_httpx_client.aclose.assert_awaited_once()
