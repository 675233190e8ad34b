# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors

from truai_cli.verify_cmd import main

main()
