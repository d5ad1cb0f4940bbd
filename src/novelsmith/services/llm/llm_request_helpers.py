# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the llm request helpers unit so this responsibility stays isolated, testable, and easy to evolve."""

from __future__ import annotations

import math
from typing import Dict

import httpx

CHARS_PER_TOKEN = 4
DEFAULT_TIMEOUT_S = 120.0


def build_headers(
    api_key: str | None, *, scheme: str = "Bearer", extra: Dict[str, str] | None = None
) -> Dict[str, str]:
    headers: Dict[str, str] = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"{scheme} {api_key}"
    if extra:
        headers.update(extra)
    return headers


def build_timeout(timeout_s: float | None) -> httpx.Timeout:
    try:
        return httpx.Timeout(float(timeout_s or DEFAULT_TIMEOUT_S))
    except (TypeError, ValueError):
        return httpx.Timeout(DEFAULT_TIMEOUT_S)


def validate_base_url(base_url: str) -> None:
    """Reject base URLs that are not plain http(s) endpoints."""
    if not (base_url.startswith("http://") or base_url.startswith("https://")):
        raise ValueError(f"Invalid base_url scheme: {base_url}")
    if "@" in base_url or "[" in base_url or "]" in base_url:
        raise ValueError(f"Potentially dangerous base_url: {base_url}")


def join_url(base_url: str, path: str) -> str:
    return str(base_url).rstrip("/") + "/" + path.lstrip("/")


def estimate_tokens(text: str | None) -> int:
    """Approximate token usage as ceil(characters / 4) when a provider is silent."""
    return math.ceil(len(text or "") / CHARS_PER_TOKEN)
