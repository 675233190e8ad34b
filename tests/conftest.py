# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from unittest.mock import AsyncMock, MagicMock

import pytest

from truai_core.cache.registry import CacheRegistry
from truai_core.schema.sources import Credibility, SourceContent
from truai_core.storage.job_store import JobStore
from truai_core.tools.source_fetcher import SourceFetcher
from truai_core.verification.engine import VerificationEngine
from tests.fixtures.factories import FakeClock, SleepRecorder, make_openai_response, make_output


@pytest.fixture(autouse=True)
def _no_local_trace(monkeypatch):
    """Keep trace files out of the working tree."""
    monkeypatch.delenv("TRUAI_ENV", raising=False)
    monkeypatch.delenv("ENV", raising=False)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_sleep():
    return SleepRecorder()


@pytest.fixture
def caches(fake_clock):
    return CacheRegistry(clock=fake_clock)


@pytest.fixture
def store():
    return JobStore()


@pytest.fixture
def mock_fetcher():
    """Matches the interface of SourceFetcher; returns no sources by default."""
    fetcher = MagicMock(spec=SourceFetcher)
    fetcher.fetch_many = AsyncMock(return_value=[])
    return fetcher


@pytest.fixture
def mock_engine():
    """Matches the interface of VerificationEngine; always answers medium."""
    engine = MagicMock(spec=VerificationEngine)
    engine.verify_with_retry = AsyncMock(return_value=make_output())
    return engine


@pytest.fixture
def sample_sources():
    return [
        SourceContent(
            url="https://a.test",
            title="A",
            content="supports X",
            credibility=Credibility.ACADEMIC,
        ),
        SourceContent(
            url="https://b.test",
            title="B",
            content="unrelated",
            credibility=Credibility.UNKNOWN,
        ),
    ]


@pytest.fixture
def mock_httpx_client():
    """Mocks httpx.AsyncClient for testing tools internals."""
    client = MagicMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()

    mock_response = MagicMock()
    mock_response.status_code = 200
    mock_response.raise_for_status = MagicMock()
    mock_response.text = "<html><body><p>Hello</p></body></html>"

    client.get.return_value = mock_response
    return client


@pytest.fixture
def mock_openai_client():
    client = MagicMock()
    client.responses = MagicMock()
    client.responses.create = AsyncMock(
        return_value=make_openai_response(
            '{"confidence": "high", "summary_of_sources": "2/2 support", "reasoning": "Both agree."}'
        )
    )
    client.close = AsyncMock()
    return client
