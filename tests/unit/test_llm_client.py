# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import json

import pytest
from openai import AsyncOpenAI

from truai_core.agents.llm_client import LLMClient
from truai_core.llm.errors import LLMCallError, LLMFailureKind
from truai_core.llm.failures import classify_llm_failure
from tests.fixtures.factories import make_openai_response


@pytest.mark.asyncio
async def test_call_json_sends_responses_request(mock_openai_client):
    client = LLMClient(client=mock_openai_client, default_timeout=30.0)

    parsed = await client.call_json(
        model="gpt-5",
        input="Verify this",
        instructions="You are a fact-checker.",
        max_output_tokens=1000,
    )

    assert parsed == {"confidence": "high", "summary_of_sources": "2/2 support", "reasoning": "Both agree."}
    kwargs = mock_openai_client.responses.create.call_args.kwargs
    assert kwargs["model"] == "gpt-5"
    assert kwargs["input"] == "Verify this"
    assert kwargs["instructions"] == "You are a fact-checker."
    assert kwargs["text"] == {"format": {"type": "json_object"}}
    assert kwargs["max_output_tokens"] == 1000
    assert kwargs["timeout"] == 30.0


@pytest.mark.asyncio
async def test_call_reports_usage(mock_openai_client):
    result = await LLMClient(client=mock_openai_client).call(model="gpt-5", input="hi", json_output=True)
    assert result["model"] == "gpt-5"
    assert result["usage"]["total_tokens"] == 160
    assert result["parsed"]["confidence"] == "high"


@pytest.mark.asyncio
async def test_fenced_json_is_accepted(mock_openai_client):
    body = {"confidence": "low", "summary_of_sources": "none", "reasoning": "no support"}
    mock_openai_client.responses.create.return_value = make_openai_response(
        "```json\n" + json.dumps(body) + "\n```"
    )
    assert await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x") == body


@pytest.mark.asyncio
async def test_invalid_json_raises(mock_openai_client):
    mock_openai_client.responses.create.return_value = make_openai_response("Sure! Confidence is high.")
    with pytest.raises(LLMCallError) as exc_info:
        await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x")
    assert exc_info.value.kind is LLMFailureKind.INVALID_JSON


@pytest.mark.asyncio
async def test_non_object_json_raises(mock_openai_client):
    mock_openai_client.responses.create.return_value = make_openai_response('["high"]')
    with pytest.raises(LLMCallError) as exc_info:
        await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x")
    assert exc_info.value.kind is LLMFailureKind.SCHEMA_VALIDATION


@pytest.mark.asyncio
async def test_empty_response_raises(mock_openai_client):
    mock_openai_client.responses.create.return_value = make_openai_response("   ")
    with pytest.raises(LLMCallError) as exc_info:
        await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x")
    assert exc_info.value.kind is LLMFailureKind.EMPTY_RESPONSE


@pytest.mark.asyncio
async def test_incomplete_response_raises(mock_openai_client):
    mock_openai_client.responses.create.return_value = make_openai_response(
        "", status="incomplete", incomplete_details={"reason": "max_output_tokens"}
    )
    with pytest.raises(LLMCallError, match="Incomplete response"):
        await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x")


@pytest.mark.asyncio
async def test_provider_exception_is_wrapped(mock_openai_client):
    mock_openai_client.responses.create.side_effect = RuntimeError("503 Service Unavailable")
    with pytest.raises(LLMCallError) as exc_info:
        await LLMClient(client=mock_openai_client).call_json(model="gpt-5", input="x")
    assert exc_info.value.kind is LLMFailureKind.PROVIDER_ERROR


@pytest.mark.asyncio
async def test_close(mock_openai_client):
    await LLMClient(client=mock_openai_client).close()
    mock_openai_client.close.assert_awaited_once()


@pytest.mark.parametrize(
    "exc,expected",
    [
        (LLMCallError("bad", LLMFailureKind.SCHEMA_VALIDATION), LLMFailureKind.SCHEMA_VALIDATION),
        (RuntimeError("Rate limit exceeded"), LLMFailureKind.PROVIDER_ERROR),
        (json.JSONDecodeError("Expecting value", "", 0), LLMFailureKind.INVALID_JSON),
        (RuntimeError("Request timed out"), LLMFailureKind.TIMEOUT),
        (OSError("Connection refused"), LLMFailureKind.CONNECTION_ERROR),
        (RuntimeError("something else"), LLMFailureKind.UNKNOWN),
    ],
)
def test_classify_llm_failure(exc, expected):
    assert classify_llm_failure(exc) is expected


@pytest.mark.asyncio
async def test_installed_openai_exposes_responses_api():
    client = AsyncOpenAI(api_key="sk-test")
    try:
        assert callable(client.responses.create)
    finally:
        await client.close()
