# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
TruAI Verifier Core
===================

Citation-linked paragraph verification: fetches cited sources, asks a
language model how well they support each paragraph, and streams the
per-paragraph verdicts to subscribers.
"""

__version__ = "0.3.0"
