# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
TruAI CLI Module

Command-line driver for the verification core.

Commands:
- verify <paragraphs_file>: Verify a document's paragraphs and stream results

Usage:
    truai verify paragraphs.json
    truai verify paragraphs.json --parallel
    python -m truai_cli verify paragraphs.json --delay-ms 0
"""

from truai_cli.verify_cmd import main

__all__ = ["main"]

if __name__ == "__main__":
    main()
