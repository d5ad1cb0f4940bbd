# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Read and clear the structured event log."""

from __future__ import annotations

from fastapi import APIRouter

from novelsmith.services.llm.llm_logging import llm_logs

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/llm_logs")
async def list_llm_logs(kind: str | None = None) -> list[dict]:
    """Return logged entries, optionally only ``http`` or ``generation`` ones."""
    if kind:
        return [entry for entry in llm_logs if entry.get("kind") == kind]
    return list(llm_logs)


@router.delete("/llm_logs")
async def clear_llm_logs() -> dict:
    llm_logs.clear()
    return {"status": "ok", "cleared": True}
