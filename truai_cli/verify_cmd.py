# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (c) 2024-2025 TruAI Contributors
"""
Verify CLI Command

Loads a paragraph list from JSON (a list, or {"doc_id": ..., "paragraphs": [...]}),
submits it to the verification core, prints every stored result as one JSON
line as it arrives, then the final progress snapshot and cache statistics.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

from pydantic import ValidationError

from truai_core.config import TruAIConfig
from truai_core.schema.paragraph import Paragraph
from truai_core.schema.verification import VerificationResult
from truai_core.service import TruAIService


def load_paragraphs(payload: Any) -> list[Paragraph]:
    if isinstance(payload, dict):
        payload = payload.get("paragraphs")
    if not isinstance(payload, list):
        raise ValueError("Expected a list of paragraphs or {\"paragraphs\": [...]}")
    return [Paragraph.from_dict(item) for item in payload]


def _emit(record: dict[str, Any]) -> None:
    print(json.dumps(record, ensure_ascii=False), flush=True)


async def run_verification(
    service: TruAIService,
    doc_id: str,
    paragraphs: list[Paragraph],
    *,
    sequential: bool,
    delay_ms: int,
) -> int:
    failures: list[dict[str, Any]] = []

    def on_update(result: VerificationResult) -> None:
        if result.doc_id == doc_id:
            _emit({"event": "update", "result": result.to_dict()})

    def on_error(err_doc_id: str, paragraph_id: int, message: str) -> None:
        if err_doc_id == doc_id:
            failures.append({"paragraph_id": paragraph_id, "error": message})
            _emit({"event": "error", "paragraph_id": paragraph_id, "error": message})

    def on_complete(done_doc_id: str) -> None:
        if done_doc_id == doc_id:
            _emit({"event": "complete", "doc_id": doc_id})

    unsubscribers = [
        service.subscribe_updates(on_update),
        service.subscribe_errors(on_error),
        service.subscribe_completion(on_complete),
    ]
    try:
        service.submit(doc_id, paragraphs, sequential=sequential, delay_ms=delay_ms)
        await service.wait_idle()
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()
        await service.close()

    _emit({"event": "progress", "progress": service.query_progress(doc_id).to_dict()})
    _emit({"event": "cache_stats", "cache_stats": service.cache_stats().to_dict()})
    return 1 if failures else 0


def cmd_verify(args: argparse.Namespace) -> int:
    """Verify the paragraphs in a JSON file."""
    path = Path(args.paragraphs_file)
    if not path.exists():
        print(f"✗ Paragraphs file not found: {path}", file=sys.stderr)
        return 1

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        paragraphs = load_paragraphs(payload)
    except (json.JSONDecodeError, ValueError, TypeError, ValidationError) as e:
        print(f"✗ Failed to load paragraphs: {e}", file=sys.stderr)
        return 1

    if not paragraphs:
        print("✗ No paragraphs to verify", file=sys.stderr)
        return 1

    doc_id = args.doc_id
    if not doc_id and isinstance(payload, dict):
        doc_id = payload.get("doc_id")
    doc_id = doc_id or path.stem

    config = TruAIConfig.load_from_env()
    sequential = config.runtime.orchestrator.sequential if args.parallel is None else not args.parallel
    delay_ms = config.runtime.orchestrator.delay_ms if args.delay_ms is None else args.delay_ms

    service = TruAIService(config)
    return asyncio.run(
        run_verification(service, doc_id, paragraphs, sequential=sequential, delay_ms=delay_ms)
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="truai",
        description="Citation-linked paragraph verification",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for the core (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    verify_parser = subparsers.add_parser(
        "verify",
        help="Verify paragraphs from a JSON file and stream results as JSON lines",
    )
    verify_parser.add_argument(
        "paragraphs_file",
        help="Path to JSON file with paragraphs (list or {paragraphs:[...]})",
    )
    verify_parser.add_argument(
        "--doc-id",
        help="Document id (default: doc_id from the file, else the file name)",
    )
    verify_parser.add_argument(
        "--parallel",
        action="store_true",
        default=None,
        help="Verify all paragraphs concurrently instead of one at a time",
    )
    verify_parser.add_argument(
        "--delay-ms",
        type=int,
        help="Delay between paragraphs in sequential mode",
    )
    verify_parser.set_defaults(func=cmd_verify)

    return parser


def main(argv: list[str] | None = None) -> NoReturn:
    """Main entry point for the TruAI CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(130)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
