# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from .engine import VerificationEngine
from .orchestrator import VerificationOrchestrator, build_link_digests

__all__ = ["VerificationEngine", "VerificationOrchestrator", "build_link_digests"]
