# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from truai_core.runtime_config import EngineRetryConfig

SleepFn = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget plus exponential backoff.

    With max_retries=2 and base_delay_sec=1.0 a call is attempted three times,
    waiting 1s and then 2s in between. The wait is an awaited timer, so a
    cancelled task stops inside the backoff rather than after it.
    """

    max_retries: int = 2
    base_delay_sec: float = 1.0
    sleep: SleepFn = field(default=asyncio.sleep, compare=False, repr=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def backoff(self, attempt: int) -> float:
        """Delay after the zero-based `attempt` failed."""
        return self.base_delay_sec * (2 ** attempt)

    async def wait(self, attempt: int) -> None:
        delay = self.backoff(attempt)
        if delay > 0:
            await self.sleep(delay)

    @classmethod
    def from_config(cls, config: EngineRetryConfig, *, sleep: SleepFn = asyncio.sleep) -> "RetryPolicy":
        return cls(max_retries=config.max_retries, base_delay_sec=config.base_delay_sec, sleep=sleep)
