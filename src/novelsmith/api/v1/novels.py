# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the novels unit so this responsibility stays isolated, testable, and easy to evolve."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from novelsmith.api.v1.common import get_orchestrator, parse_json_body, validate_body
from novelsmith.models.ai_requests import CompleteNovelBody
from novelsmith.services.generation.batch_ops import generate_complete_novel
from novelsmith.services.generation.orchestrator import GenerationOrchestrator

router = APIRouter(prefix="/novels", tags=["Novels"])


@router.post("/generate-complete")
async def api_generate_complete_novel(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    """Draft every outlined chapter in sequence and report per-chapter outcomes."""
    body = validate_body(CompleteNovelBody, await parse_json_body(request))

    attempted = 0

    def should_stop() -> bool:
        return body.max_chapters is not None and attempted >= body.max_chapters

    def on_progress(_progress: dict) -> None:
        nonlocal attempted
        attempted += 1

    data = await generate_complete_novel(
        orchestrator,
        body.outline,
        genre=body.genre_context,
        premise=body.premise,
        characters=body.characters,
        customization=body.customization,
        long_form=body.long_form,
        should_stop=should_stop,
        on_progress=on_progress,
    )
    return JSONResponse(status_code=200, content=data)
