# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from __future__ import annotations


class TruAIError(Exception):
    """Base class for errors raised inside the verification core."""


class InvalidTransitionError(TruAIError):
    def __init__(self, doc_id: str, paragraph_id: int, current: str, requested: str):
        self.doc_id = doc_id
        self.paragraph_id = paragraph_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Invalid job transition for doc={doc_id} paragraph={paragraph_id}: {current} -> {requested}"
        )


class SourceFetchError(TruAIError):
    """A single source could not be fetched or parsed. Never escapes the fetcher."""
