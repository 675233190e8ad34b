# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Verification engine: validation, cache policy, stand-in path and retry/backoff.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from truai_core.agents.llm_client import LLMClient
from truai_core.llm.errors import LLMCallError, LLMFailureKind
from truai_core.llm.retry import RetryPolicy
from truai_core.runtime_config import EngineRetryConfig
from truai_core.schema.verification import Confidence, VerificationInput
from truai_core.verification.engine import (
    STAND_IN_SUMMARY,
    VerificationEngine,
    parse_verification_output,
)

GOOD = {"confidence": "medium", "summary_of_sources": "1/2 support", "reasoning": "Source A supports X."}


@pytest.fixture
def llm():
    client = MagicMock(spec=LLMClient)
    client.call_json = AsyncMock(return_value=dict(GOOD))
    return client


@pytest.fixture
def engine(caches, llm, fake_sleep):
    return VerificationEngine(
        cache=caches.verification,
        llm_client=llm,
        retry_policy=RetryPolicy(sleep=fake_sleep),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Output validation
# ─────────────────────────────────────────────────────────────────────────────


class TestParseVerificationOutput:
    def test_valid(self):
        out = parse_verification_output(GOOD)
        assert out.confidence is Confidence.MEDIUM
        assert out.is_error is False

    @pytest.mark.parametrize("field", ["confidence", "summary_of_sources", "reasoning"])
    def test_missing_field(self, field):
        data = dict(GOOD)
        del data[field]
        with pytest.raises(LLMCallError) as exc_info:
            parse_verification_output(data)
        assert exc_info.value.kind is LLMFailureKind.SCHEMA_VALIDATION

    @pytest.mark.parametrize("value", ["HIGH", "very high", "", 3])
    def test_confidence_is_not_coerced(self, value):
        with pytest.raises(LLMCallError):
            parse_verification_output({**GOOD, "confidence": value})

    def test_non_object(self):
        with pytest.raises(LLMCallError):
            parse_verification_output(["medium"])


# ─────────────────────────────────────────────────────────────────────────────
# verify
# ─────────────────────────────────────────────────────────────────────────────


class TestVerify:
    @pytest.mark.asyncio
    async def test_success_is_cached(self, engine, llm, caches, sample_sources):
        first = await engine.verify("X", ["https://a.test", "https://b.test"], sample_sources)
        second = await engine.verify("X", ["https://b.test", "https://a.test"], list(reversed(sample_sources)))

        assert first.confidence is Confidence.MEDIUM
        assert second == first
        assert llm.call_json.await_count == 1
        assert caches.verification.size == 1

    @pytest.mark.asyncio
    async def test_prompt_reaches_model(self, engine, llm, sample_sources):
        await engine.verify("X is true.", ["https://a.test"], sample_sources)

        kwargs = llm.call_json.call_args.kwargs
        assert kwargs["model"] == "gpt-5"
        assert '"X is true."' in kwargs["input"]
        assert "[ACADEMIC]" in kwargs["input"]
        assert kwargs["max_output_tokens"] == 1000

    @pytest.mark.asyncio
    async def test_invalid_output_is_error_and_not_cached(self, engine, llm, caches):
        llm.call_json.return_value = {**GOOD, "confidence": "certain"}

        out = await engine.verify("X", [], [])

        assert out.is_error
        assert out.confidence is Confidence.LOW
        assert "Invalid confidence value" in out.reasoning
        assert caches.verification.size == 0

    @pytest.mark.asyncio
    async def test_model_failure_is_error_and_not_cached(self, engine, llm, caches):
        llm.call_json.side_effect = LLMCallError("Empty response from LLM", LLMFailureKind.EMPTY_RESPONSE)

        out = await engine.verify("X", [], [])

        assert out.is_error
        assert out.reasoning.startswith("Error during verification:")
        assert caches.verification.size == 0

    @pytest.mark.asyncio
    async def test_unconfigured_key_returns_stand_in_without_caching(self, caches):
        engine = VerificationEngine(cache=caches.verification, llm_client=None)

        out = await engine.verify("X", [], [])

        assert engine.configured is False
        assert out.stand_in is True
        assert out.is_error is False
        assert out.confidence is Confidence.LOW
        assert out.summary_of_sources == STAND_IN_SUMMARY
        assert caches.verification.size == 0

    @pytest.mark.asyncio
    async def test_cached_result_survives_until_ttl(self, engine, llm, fake_clock):
        await engine.verify("X", [], [])
        fake_clock.advance(24 * 3600 + 1)
        await engine.verify("X", [], [])
        assert llm.call_json.await_count == 2


# ─────────────────────────────────────────────────────────────────────────────
# verify_with_retry
# ─────────────────────────────────────────────────────────────────────────────


class TestVerifyWithRetry:
    @pytest.mark.asyncio
    async def test_first_attempt_success_does_not_wait(self, engine, llm, fake_sleep):
        out = await engine.verify_with_retry("X", [], [])
        assert out.confidence is Confidence.MEDIUM
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_failures_with_backoff(self, engine, llm, fake_sleep):
        llm.call_json.side_effect = [
            LLMCallError("Provider error: 503", LLMFailureKind.PROVIDER_ERROR),
            {"confidence": "maybe"},
            dict(GOOD),
        ]

        out = await engine.verify_with_retry("X", [], [])

        assert out.confidence is Confidence.MEDIUM
        assert not out.is_error
        assert llm.call_json.await_count == 3
        assert fake_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausted_retries_explain_final_error(self, engine, llm, fake_sleep, caches):
        llm.call_json.side_effect = LLMCallError("Empty response from LLM", LLMFailureKind.EMPTY_RESPONSE)

        out = await engine.verify_with_retry("X", [], [])

        assert out.confidence is Confidence.LOW
        assert out.summary_of_sources == "Verification failed after multiple attempts"
        assert out.reasoning.startswith("Verification failed after 3 attempts:")
        assert "Empty response from LLM" in out.reasoning
        assert llm.call_json.await_count == 3
        assert fake_sleep.delays == [1.0, 2.0]
        assert caches.verification.size == 0

    @pytest.mark.asyncio
    async def test_genuine_low_confidence_is_not_retried(self, engine, llm, fake_sleep):
        llm.call_json.return_value = {**GOOD, "confidence": "low"}

        out = await engine.verify_with_retry("X", [], [])

        assert out.confidence is Confidence.LOW
        assert llm.call_json.await_count == 1
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_stand_in_is_not_retried(self, caches, fake_sleep):
        engine = VerificationEngine(
            cache=caches.verification, llm_client=None, retry_policy=RetryPolicy(sleep=fake_sleep)
        )
        out = await engine.verify_with_retry("X", [], [])
        assert out.stand_in is True
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_batch_verify_preserves_order(self, engine, llm):
        async def answer(**kwargs):
            confidence = "high" if "first" in kwargs["input"] else "low"
            return {**GOOD, "confidence": confidence}

        llm.call_json.side_effect = answer
        outputs = await engine.batch_verify([
            VerificationInput(paragraph_text="first paragraph"),
            VerificationInput(paragraph_text="second paragraph"),
        ])

        assert [o.confidence for o in outputs] == [Confidence.HIGH, Confidence.LOW]


class TestRetryPolicy:
    def test_backoff_schedule(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 3
        assert [policy.backoff(i) for i in range(2)] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_from_config(self, fake_sleep):
        policy = RetryPolicy.from_config(EngineRetryConfig(max_retries=1, base_delay_sec=0.5), sleep=fake_sleep)
        assert policy.max_attempts == 2
        await policy.wait(1)
        assert fake_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_zero_delay_does_not_sleep(self, fake_sleep):
        policy = RetryPolicy(base_delay_sec=0.0, sleep=fake_sleep)
        await policy.wait(0)
        assert fake_sleep.delays == []
