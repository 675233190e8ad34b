# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""In-memory cache tiers."""

from .registry import CacheRegistry
from .ttl_cache import TTLCache

__all__ = ["CacheRegistry", "TTLCache"]
