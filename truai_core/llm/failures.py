# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Explains why a verification model call failed.

The verification engine retries every failure the same way; the kind only
ends up in logs and trace events.
"""

from typing import Any

from truai_core.llm.errors import LLMCallError, LLMFailureKind

# Checked in order: "Rate limit exceeded" must land on PROVIDER_ERROR.
_RULES: tuple[tuple[LLMFailureKind, tuple[str, ...], tuple[str, ...]], ...] = (
    (
        LLMFailureKind.PROVIDER_ERROR,
        ("ratelimit", "apistatus", "internalserver"),
        ("rate limit", "rate_limit", "quota", "overloaded", "unavailable",
         "internal server", "500", "502", "503", "504"),
    ),
    (
        LLMFailureKind.INVALID_JSON,
        ("json",),
        ("json", "decode", "expecting value", "unexpected token"),
    ),
    (
        LLMFailureKind.TIMEOUT,
        ("timeout",),
        ("timeout", "timed out", "deadline exceeded"),
    ),
    (
        LLMFailureKind.CONNECTION_ERROR,
        ("connection", "connect"),
        ("connection", "connect", "network", "socket", "refused", "unreachable", "dns", "ssl"),
    ),
)


def classify_llm_failure(exc: Exception) -> LLMFailureKind:
    if isinstance(exc, LLMCallError):
        return exc.kind

    type_name = type(exc).__name__.lower()
    message = str(exc).lower()
    for kind, type_hints, message_hints in _RULES:
        if any(h in type_name for h in type_hints) or any(h in message for h in message_hints):
            return kind
    return LLMFailureKind.UNKNOWN


def failure_kind_to_trace_data(kind: LLMFailureKind, exc: Exception) -> dict[str, Any]:
    return {
        "failure_kind": kind.value,
        "error_type": type(exc).__name__,
        "error_message": str(exc)[:200],
    }
