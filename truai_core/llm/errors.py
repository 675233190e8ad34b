# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LLMFailureKind(str, Enum):
    """Why a verification model call produced no usable output."""

    INVALID_JSON = "invalid_json"
    SCHEMA_VALIDATION = "schema_validation"
    EMPTY_RESPONSE = "empty_response"
    PROVIDER_ERROR = "provider_error"
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    UNKNOWN = "unknown"


@dataclass
class LLMCallError(Exception):
    """Raised by LLMClient; the engine retries it and falls back to low confidence."""

    message: str
    kind: LLMFailureKind = LLMFailureKind.UNKNOWN

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"
