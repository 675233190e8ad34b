# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Verification Engine

Turns (paragraph, cited links, fetched sources) into a confidence verdict:

1. Verification cache lookup (content hash of the inputs)
2. Deterministic prompt -> one LLM call with JSON output
3. Strict validation: three required fields, confidence in {high, medium, low}
4. Only clean, validated outputs are cached

Failures never raise out of `verify`: they come back as error-flagged
low-confidence outputs, which `verify_with_retry` retries with exponential
backoff. Without an API key a labeled stand-in result is returned so the
rest of the pipeline still runs.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

from truai_core.agents.llm_client import LLMClient
from truai_core.agents.prompts import VERIFICATION_INSTRUCTIONS, build_verification_prompt
from truai_core.cache.ttl_cache import TTLCache
from truai_core.llm.errors import LLMCallError, LLMFailureKind
from truai_core.llm.failures import classify_llm_failure, failure_kind_to_trace_data
from truai_core.llm.retry import RetryPolicy
from truai_core.runtime_config import EngineLLMConfig
from truai_core.schema.sources import SourceContent
from truai_core.schema.verification import Confidence, VerificationInput, VerificationOutput
from truai_core.tools.cache_utils import make_verification_cache_key
from truai_core.utils.trace import Trace

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("confidence", "summary_of_sources", "reasoning")

STAND_IN_SUMMARY = "OpenAI API key not configured - mock verification result"
STAND_IN_REASONING = (
    "Cannot perform verification without OpenAI API key. "
    "Please configure OPENAI_API_KEY environment variable."
)


def parse_verification_output(data: Any) -> VerificationOutput:
    """
    Validate the model's JSON. Malformed output raises; it is never coerced.
    """
    if not isinstance(data, dict):
        raise LLMCallError("Invalid response structure: expected object", LLMFailureKind.SCHEMA_VALIDATION)

    missing = [f for f in REQUIRED_FIELDS if not isinstance(data.get(f), str) or not data[f].strip()]
    if missing:
        raise LLMCallError(
            f"Invalid response structure: missing required {', '.join(missing)}",
            LLMFailureKind.SCHEMA_VALIDATION,
        )

    raw_confidence = data["confidence"]
    if raw_confidence not in {c.value for c in Confidence}:
        raise LLMCallError(f"Invalid confidence value: {raw_confidence}", LLMFailureKind.SCHEMA_VALIDATION)

    return VerificationOutput(
        confidence=Confidence(raw_confidence),
        summary_of_sources=data["summary_of_sources"],
        reasoning=data["reasoning"],
    )


def error_output(message: str) -> VerificationOutput:
    return VerificationOutput(
        confidence=Confidence.LOW,
        summary_of_sources="Verification failed due to an error",
        reasoning=f"Error during verification: {message}",
        error=message,
    )


def stand_in_output() -> VerificationOutput:
    return VerificationOutput(
        confidence=Confidence.LOW,
        summary_of_sources=STAND_IN_SUMMARY,
        reasoning=STAND_IN_REASONING,
        stand_in=True,
    )


class VerificationEngine:
    def __init__(
        self,
        *,
        cache: TTLCache[VerificationOutput],
        llm_client: LLMClient | None,
        model: str = "gpt-5",
        llm_config: EngineLLMConfig | None = None,
        retry_policy: RetryPolicy | None = None,
    ):
        self._cache = cache
        self._llm = llm_client
        self.model = model
        self._llm_config = llm_config or EngineLLMConfig()
        self.retry_policy = retry_policy or RetryPolicy()

    @property
    def configured(self) -> bool:
        return self._llm is not None

    async def verify(
        self,
        paragraph_text: str,
        paragraph_links: Sequence[str],
        sources: Sequence[SourceContent],
    ) -> VerificationOutput:
        if self._llm is None:
            logger.warning("[Verifier] OpenAI API key not configured, returning stand-in result")
            return stand_in_output()

        cache_key = make_verification_cache_key(
            paragraph_text=paragraph_text,
            paragraph_links=paragraph_links,
            sources=sources,
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("[Verifier] Cache hit %s", cache_key[:12])
            Trace.event("verify.cache_hit", {"key": cache_key[:16]})
            return cached

        prompt = build_verification_prompt(
            paragraph_text,
            paragraph_links,
            sources,
            max_source_chars=self._llm_config.max_source_chars,
        )

        try:
            parsed = await self._llm.call_json(
                model=self.model,
                input=prompt,
                instructions=VERIFICATION_INSTRUCTIONS,
                timeout=self._llm_config.timeout_sec,
                max_output_tokens=self._llm_config.max_output_tokens,
                trace_kind="verify",
            )
            output = parse_verification_output(parsed)
        except Exception as e:
            kind = classify_llm_failure(e)
            logger.warning("[Verifier] Model call failed (kind=%s): %s", kind.value, e)
            Trace.event("verify.error", failure_kind_to_trace_data(kind, e))
            return error_output(str(e))

        self._cache.set(cache_key, output)
        Trace.event("verify.ok", {"confidence": output.confidence.value, "sources": len(sources)})
        return output

    async def verify_with_retry(
        self,
        paragraph_text: str,
        paragraph_links: Sequence[str],
        sources: Sequence[SourceContent],
    ) -> VerificationOutput:
        policy = self.retry_policy
        last_error = "Unknown error occurred during verification"

        for attempt in range(policy.max_attempts):
            output = await self.verify(paragraph_text, paragraph_links, sources)
            if not output.is_error:
                return output

            last_error = output.error or last_error
            logger.info("[Verifier] Attempt %d/%d failed: %s", attempt + 1, policy.max_attempts, last_error)
            if attempt < policy.max_attempts - 1:
                await policy.wait(attempt)

        return VerificationOutput(
            confidence=Confidence.LOW,
            summary_of_sources="Verification failed after multiple attempts",
            reasoning=f"Verification failed after {policy.max_attempts} attempts: {last_error}",
            error=last_error,
        )

    async def batch_verify(self, inputs: Sequence[VerificationInput]) -> list[VerificationOutput]:
        """Verify many inputs concurrently; output order matches input order."""
        return list(await asyncio.gather(*(
            self.verify_with_retry(i.paragraph_text, i.paragraph_links, i.sources) for i in inputs
        )))
