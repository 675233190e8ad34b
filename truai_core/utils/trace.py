# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of TruAI Verifier.
#
# TruAI Verifier is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""
Local-only JSONL trace of verification runs.

One file per run under $TRUAI_TRACE_DIR (default data/trace). The active run
lives in context variables, so concurrent document runs (one asyncio task
each) never interleave their records. Records are sanitized before writing:
API keys and bearer tokens are masked, long strings are replaced by a hash
with head and tail.

Tracing is off unless the process runs locally (see is_local_run) and the
runtime feature flag allows it. Write failures are ignored.
"""

from __future__ import annotations

import contextvars
import enum
import hashlib
import json
import os
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from pydantic import BaseModel

from truai_core.runtime_config import EngineRuntimeConfig
from truai_core.utils.runtime import is_local_run

_run_var: contextvars.ContextVar["TraceContext | None"] = contextvars.ContextVar("truai_trace_run", default=None)

_MAX_STR = 4000
_MAX_ITEMS = 100
_HEAD_TAIL = 300

_REDACTIONS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"([?&](?:api_key|key)=)[^&\s]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._-]+"), r"\1***"),
    (re.compile(r"sk-[A-Za-z0-9_-]{8,}"), "sk-***"),
)

_SECRET_KEYS = frozenset({"authorization", "api_key", "openai_api_key", "scrapingbee_api_key"})


def redact(text: str) -> str:
    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def _digest(text: str) -> dict[str, Any]:
    return {
        "len": len(text),
        "sha256": hashlib.sha256(text.encode("utf-8")).hexdigest(),
        "head": text[:_HEAD_TAIL],
        "tail": text[-_HEAD_TAIL:],
    }


def sanitize(value: Any) -> Any:
    """Make `value` JSON-safe and free of credentials."""
    if value is None or isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, BaseModel):
        return sanitize(value.model_dump(mode="json"))
    if isinstance(value, bytes):
        return f"<bytes:{len(value)}>"
    if isinstance(value, dict):
        out: dict[str, Any] = {}
        for i, (k, v) in enumerate(value.items()):
            if i >= _MAX_ITEMS:
                out["..."] = f"(+{len(value) - _MAX_ITEMS} more keys)"
                break
            key = str(k)
            out[key] = "***" if key.lower() in _SECRET_KEYS else sanitize(v)
        return out
    if isinstance(value, (list, tuple, set, frozenset)):
        items = list(value)
        out_list = [sanitize(v) for v in items[:_MAX_ITEMS]]
        if len(items) > _MAX_ITEMS:
            out_list.append(f"...(+{len(items) - _MAX_ITEMS} more)")
        return out_list

    text = redact(str(value))
    return text if len(text) <= _MAX_STR else _digest(text)


def _trace_dir() -> Path:
    path = Path(os.getenv("TRUAI_TRACE_DIR") or "data/trace")
    path.mkdir(parents=True, exist_ok=True)
    return path


def _file_name(trace_id: str) -> str:
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in trace_id) + ".jsonl"


@dataclass(frozen=True)
class TraceContext:
    trace_id: str
    enabled: bool
    doc_id: str | None = None


def current_trace_id() -> str | None:
    run = _run_var.get()
    return run.trace_id if run else None


def trace_enabled() -> bool:
    run = _run_var.get()
    return bool(run and run.enabled)


class Trace:
    @staticmethod
    def start(
        trace_id: str,
        *,
        runtime: EngineRuntimeConfig | None = None,
        doc_id: str | None = None,
    ) -> TraceContext:
        runtime = runtime or EngineRuntimeConfig.load_from_env()
        ctx = TraceContext(
            trace_id=trace_id,
            enabled=bool(is_local_run() and runtime.features.trace_enabled),
            doc_id=doc_id,
        )
        _run_var.set(ctx)
        Trace.event("trace.start", {"trace_id": trace_id, "started_at": time.strftime("%Y-%m-%d %H:%M:%S")})
        return ctx

    @staticmethod
    def stop() -> None:
        run = _run_var.get()
        if run is not None:
            Trace.event("trace.stop", {"trace_id": run.trace_id})
        _run_var.set(None)

    @staticmethod
    @contextmanager
    def document(
        doc_id: str,
        *,
        runtime: EngineRuntimeConfig | None = None,
    ) -> Iterator[TraceContext]:
        """Trace one document run; the id combines start time and doc id."""
        trace_id = f"{time.strftime('%Y-%m-%d_%H-%M-%S')}_{doc_id}"
        ctx = Trace.start(trace_id, runtime=runtime, doc_id=doc_id)
        try:
            yield ctx
        finally:
            Trace.stop()

    @staticmethod
    def event(name: str, data: Any | None = None) -> None:
        run = _run_var.get()
        if run is None or not run.enabled:
            return

        record = {
            "ts_ms": int(time.time() * 1000),
            "trace_id": run.trace_id,
            "doc_id": run.doc_id,
            "event": str(name),
            "data": sanitize(data),
        }
        try:
            with (_trace_dir() / _file_name(run.trace_id)).open("a", encoding="utf-8") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError:
            return
