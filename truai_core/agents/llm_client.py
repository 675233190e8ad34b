# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# TruAI Verifier is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with TruAI Verifier. If not, see <https://www.gnu.org/licenses/>.

"""
OpenAI Responses API client used by the verification engine.

One call is one attempt: retry and backoff live in the engine. Calls share
a semaphore so a burst of paragraphs cannot open unbounded requests, and
every call leaves prompt/response/error events in the trace.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
import time
from typing import Any

from openai import AsyncOpenAI

from truai_core.llm.errors import LLMCallError, LLMFailureKind
from truai_core.utils.trace import Trace

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _parse_json_content(content: str) -> dict:
    """Parse a JSON object, accepting a ```json fenced block around it."""
    candidates = [content, *(m.group(1).strip() for m in _FENCED_JSON.finditer(content))]
    last_error: json.JSONDecodeError | None = None
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if not isinstance(parsed, dict):
            raise LLMCallError("Expected a JSON object", LLMFailureKind.SCHEMA_VALIDATION)
        return parsed
    raise LLMCallError(
        f"Failed to parse JSON response: {last_error}", LLMFailureKind.INVALID_JSON
    ) from last_error


def _check_output(response: Any) -> str:
    content = getattr(response, "output_text", None) or ""
    if content.strip():
        return content
    if getattr(response, "error", None):
        raise LLMCallError(f"LLM error: {response.error}", LLMFailureKind.PROVIDER_ERROR)
    if getattr(response, "status", None) == "incomplete":
        raise LLMCallError(f"Incomplete response: {response.incomplete_details}", LLMFailureKind.EMPTY_RESPONSE)
    raise LLMCallError("Empty response from LLM", LLMFailureKind.EMPTY_RESPONSE)


def _usage_of(response: Any, latency_ms: int) -> dict[str, Any]:
    usage: dict[str, Any] = {"latency_ms": latency_ms, "request_id": getattr(response, "id", "unknown")}
    tokens = getattr(response, "usage", None)
    if tokens is not None:
        for field in ("input_tokens", "output_tokens", "total_tokens"):
            usage[field] = getattr(tokens, field, None)
    return usage


class LLMClient:
    """
    Example:
        client = LLMClient(openai_api_key="sk-...")
        verdict = await client.call_json(
            model="gpt-5",
            input=build_verification_prompt(text, links, sources),
            instructions=VERIFICATION_INSTRUCTIONS,
        )
    """

    def __init__(
        self,
        *,
        openai_api_key: str | None = None,
        default_timeout: float = 60.0,
        concurrency: int = 8,
        client: AsyncOpenAI | None = None,
    ):
        self.client = client or AsyncOpenAI(api_key=openai_api_key)
        self.default_timeout = default_timeout
        self._sem = asyncio.Semaphore(max(1, int(concurrency)))

    def _request_params(
        self,
        model: str,
        prompt: str,
        instructions: str | None,
        json_output: bool,
        timeout: float | None,
        max_output_tokens: int | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"model": model, "input": prompt, "timeout": timeout or self.default_timeout}
        if instructions:
            params["instructions"] = instructions
        if max_output_tokens:
            params["max_output_tokens"] = max_output_tokens
        if json_output:
            params["text"] = {"format": {"type": "json_object"}}
        return params

    async def call(
        self,
        *,
        model: str,
        input: str,  # noqa: A002 - Responses API parameter name
        instructions: str | None = None,
        json_output: bool = False,
        timeout: float | None = None,
        max_output_tokens: int | None = None,
        trace_kind: str = "llm_call",
    ) -> dict:
        """
        Execute one model call.

        Returns:
            Dict with "content", "parsed" (dict when json_output, else None),
            "model" and "usage".

        Raises:
            LLMCallError: provider failure, empty or incomplete output, bad JSON.
        """
        params = self._request_params(model, input, instructions, json_output, timeout, max_output_tokens)
        prompt_hash = hashlib.sha256(f"{instructions or ''}||{input}".encode("utf-8")).hexdigest()[:16]
        Trace.event(f"{trace_kind}.prompt", {
            "model": model,
            "input_chars": len(input),
            "prompt_hash": prompt_hash,
            "json_output": json_output,
        })

        started = time.monotonic()
        try:
            async with self._sem:
                response = await self.client.responses.create(**params)
        except Exception as e:
            logger.warning("[LLMClient] Provider call failed: %s", e)
            Trace.event(f"{trace_kind}.error", {"model": model, "error": str(e), "prompt_hash": prompt_hash})
            raise LLMCallError(f"Provider error: {e}", LLMFailureKind.PROVIDER_ERROR) from e
        latency_ms = int((time.monotonic() - started) * 1000)

        content = _check_output(response)
        parsed = _parse_json_content(content) if json_output else None

        Trace.event(f"{trace_kind}.response", {
            "model": response.model,
            "content_chars": len(content),
            "latency_ms": latency_ms,
            "prompt_hash": prompt_hash,
        })
        return {
            "content": content,
            "parsed": parsed,
            "model": response.model,
            "usage": _usage_of(response, latency_ms),
        }

    async def call_json(self, **kwargs: Any) -> dict:
        """Same as `call(json_output=True)`, returning the parsed object."""
        result = await self.call(json_output=True, **kwargs)
        return result["parsed"]

    async def close(self) -> None:
        await self.client.close()
