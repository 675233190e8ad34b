# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from types import SimpleNamespace

import pytest

from truai_core.errors import SourceFetchError
from truai_core.tools import html_extract
from truai_core.tools.html_extract import extract_page, extract_title

URL = "https://example.com/article"


@pytest.fixture
def fake_trafilatura(monkeypatch):
    state = {"text": "Some   readable\n\n text.", "title": "Article Title"}

    def fake_extract(html, **kwargs):
        return state["text"]

    def fake_metadata(html):
        return SimpleNamespace(title=state["title"]) if state["title"] is not None else None

    monkeypatch.setattr(html_extract.trafilatura, "extract", fake_extract)
    monkeypatch.setattr(html_extract.trafilatura, "extract_metadata", fake_metadata)
    return state


def test_extract_page_collapses_whitespace(fake_trafilatura):
    page = extract_page("<html>...</html>", URL)
    assert page.content == "Some readable text."
    assert page.title == "Article Title"


def test_extract_page_truncates_content(fake_trafilatura):
    fake_trafilatura["text"] = "x" * 20_000
    page = extract_page("<html>...</html>", URL, max_chars=10_000)
    assert len(page.content) == 10_000


def test_empty_body_raises():
    with pytest.raises(SourceFetchError, match="Empty response body"):
        extract_page("   ", URL)


def test_no_readable_content_raises(fake_trafilatura):
    fake_trafilatura["text"] = None
    with pytest.raises(SourceFetchError, match="No readable content"):
        extract_page("<html></html>", URL)


def test_parser_failure_is_wrapped(monkeypatch):
    def boom(html, **kwargs):
        raise ValueError("bad markup")

    monkeypatch.setattr(html_extract.trafilatura, "extract", boom)
    with pytest.raises(SourceFetchError, match="Failed to parse HTML"):
        extract_page("<html>", URL)


def test_title_falls_back_to_url(fake_trafilatura):
    fake_trafilatura["title"] = None
    assert extract_title("<html></html>", URL) == URL

    fake_trafilatura["title"] = "   "
    assert extract_title("<html></html>", URL) == URL
