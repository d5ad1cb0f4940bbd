# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Structured event log for provider traffic and generation outcomes.

Two kinds of entries share one ring buffer:

- ``kind == "http"``: one outbound provider request, created with
  ``create_log_entry`` and completed in place by the adapter.
- ``kind == "generation"``: one orchestrator outcome (phase, provider, model,
  tokens, timing, error), created with ``record_generation_event``.
"""

from __future__ import annotations

import datetime
import json
import os
import uuid
from typing import Any, Dict, List

from novelsmith.core.config import LOGS_DIR

MAX_LOG_ENTRIES = 100
REDACTED_BODY_KEYS = ("api_key", "secret", "password", "token")
REDACTED_HEADERS = ("authorization", "x-api-key")
LLM_DUMP_FILENAME = "llm_raw.log"

# Global list to store LLM communication logs for the current process
llm_logs: List[Dict[str, Any]] = []


def _dump_path() -> str:
    default_path = str(LOGS_DIR / LLM_DUMP_FILENAME)
    return os.getenv("NOVELSMITH_LLM_DUMP_PATH") or default_path


def _dump_entry(log_entry: Dict[str, Any]) -> None:
    log_path = _dump_path()
    directory = os.path.dirname(log_path)
    try:
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("=" * 80 + "\n")
            f.write(f"TIMESTAMP: {datetime.datetime.now().isoformat()}\n")
            f.write("-" * 80 + "\n")
            f.write(json.dumps(log_entry, indent=2, default=str) + "\n")
            f.write("=" * 80 + "\n\n")
    except OSError:
        # The dump is a debugging aid; the in-memory log stays authoritative.
        pass


def add_llm_log(log_entry: Dict[str, Any]) -> None:
    """Add a log entry to the global list, keeping only the last 100 entries.

    If NOVELSMITH_LLM_DUMP is set, also append the raw entry to a file.
    """
    if log_entry not in llm_logs:
        llm_logs.append(log_entry)
        if len(llm_logs) > MAX_LOG_ENTRIES:
            llm_logs.pop(0)

    if os.getenv("NOVELSMITH_LLM_DUMP") == "1":
        _dump_entry(log_entry)


def _redact_body(body: Any) -> Any:
    if not isinstance(body, dict):
        return body
    safe_body = body.copy()
    for key in REDACTED_BODY_KEYS:
        if key in safe_body:
            safe_body[key] = "REDACTED"
    return safe_body


def create_log_entry(
    url: str, method: str, headers: Dict[str, str], body: Any, provider_id: str = ""
) -> Dict[str, Any]:
    """Create a new HTTP log entry structure."""
    return {
        "id": str(uuid.uuid4()),
        "kind": "http",
        "provider": provider_id,
        "timestamp_start": datetime.datetime.now().isoformat(),
        "timestamp_end": None,
        "request": {
            "url": url,
            "method": method,
            "headers": {
                k: ("***" if k.lower() in REDACTED_HEADERS else v)
                for k, v in headers.items()
            },
            "body": _redact_body(body),
        },
        "response": {
            "status_code": None,
            "body": None,
            "error": None,
        },
    }


def finish_log_entry(
    log_entry: Dict[str, Any],
    *,
    status_code: int | None = None,
    body: Any = None,
    error: str | None = None,
) -> None:
    log_entry["timestamp_end"] = datetime.datetime.now().isoformat()
    if status_code is not None:
        log_entry["response"]["status_code"] = status_code
    if body is not None:
        log_entry["response"]["body"] = body
    if error is not None:
        log_entry["response"]["error"] = error


def record_generation_event(
    *,
    phase: str,
    provider_id: str | None,
    model_id: str | None,
    generation_time_ms: int,
    tokens_used: int | None = None,
    error: str | None = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Append a generation outcome entry and return it."""
    entry: Dict[str, Any] = {
        "id": str(uuid.uuid4()),
        "kind": "generation",
        "timestamp": datetime.datetime.now().isoformat(),
        "phase": phase,
        "provider": provider_id,
        "model": model_id,
        "generation_time_ms": generation_time_ms,
        "tokens_used": tokens_used,
        "status": "error" if error else "ok",
        "error": error,
    }
    entry.update(extra)
    add_llm_log(entry)
    return entry
