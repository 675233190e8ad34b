# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

import os
from typing import Optional

from pydantic import BaseModel, Field

from truai_core.runtime_config import EngineRuntimeConfig


class TruAIConfig(BaseModel):
    """
    Configuration for the TruAI verification core.
    Decouples the engine from environment variables.
    """

    model_config = {"arbitrary_types_allowed": True}

    # LLM Configuration
    openai_api_key: Optional[str] = Field(None, description="OpenAI API Key for verification calls")
    openai_model: str = Field("gpt-5", description="Model used to verify paragraphs")

    # Fetch Configuration
    scrapingbee_api_key: Optional[str] = Field(
        None, description="ScrapingBee API Key (optional; direct fetch is used when absent)"
    )

    runtime: EngineRuntimeConfig = Field(default_factory=EngineRuntimeConfig)

    @property
    def llm_configured(self) -> bool:
        return bool((self.openai_api_key or "").strip())

    @classmethod
    def load_from_env(cls) -> "TruAIConfig":
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=(os.getenv("OPENAI_MODEL") or "gpt-5").strip(),
            scrapingbee_api_key=os.getenv("SCRAPINGBEE_API_KEY") or None,
            runtime=EngineRuntimeConfig.load_from_env(),
        )
