# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the generation unit so this responsibility stays isolated, testable, and easy to evolve.

AI generation endpoints under ``/ai``. Handlers only parse the body, call the
orchestrator and serialise the result; errors propagate to the global
``ServiceError`` handler.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from novelsmith.api.v1.common import (
    get_orchestrator,
    parse_json_body,
    request_from_body,
    validate_body,
)
from novelsmith.models.ai_requests import (
    AnalyzeTextBody,
    GenerateTextBody,
    TextVariationsBody,
)
from novelsmith.models.generation import GenerationPhase
from novelsmith.services.generation.batch_ops import generate_text_variations
from novelsmith.services.generation.orchestrator import GenerationOrchestrator
from novelsmith.services.generation.text_statistics import analyze_text

router = APIRouter(prefix="/ai", tags=["AI"])


async def _run_phase(
    phase: GenerationPhase, request: Request, orchestrator: GenerationOrchestrator
) -> JSONResponse:
    body = await parse_json_body(request)
    result = await orchestrator.run(request_from_body(phase, body))
    return JSONResponse(status_code=200, content=result.to_response())


@router.post("/generate-premise")
async def api_generate_premise(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.PREMISE, request, orchestrator)


@router.post("/generate-outline")
async def api_generate_outline(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.OUTLINE, request, orchestrator)


@router.post("/generate-characters")
async def api_generate_characters(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.CHARACTERS, request, orchestrator)


@router.post("/generate-chapter")
async def api_generate_chapter(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.CHAPTER, request, orchestrator)


@router.post("/generate-long-chapter")
async def api_generate_long_chapter(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.LONG_CHAPTER, request, orchestrator)


@router.post("/review-chapter")
async def api_review_chapter(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.REVIEW, request, orchestrator)


@router.post("/generate-cover")
async def api_generate_cover(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    return await _run_phase(GenerationPhase.COVER_IMAGE, request, orchestrator)


@router.post("/generate-text")
async def api_generate_text(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    body = validate_body(GenerateTextBody, await parse_json_body(request))
    result = await orchestrator.generate_text_with_provider(
        body.prompt,
        provider_id=body.provider,
        model_id=body.model,
        max_tokens=body.max_tokens,
        temperature=body.temperature,
        system_prompt=body.system_prompt,
    )
    return JSONResponse(status_code=200, content=result.to_response())


@router.post("/text-variations")
async def api_text_variations(
    request: Request, orchestrator: GenerationOrchestrator = Depends(get_orchestrator)
) -> JSONResponse:
    body = validate_body(TextVariationsBody, await parse_json_body(request))
    data = await generate_text_variations(
        orchestrator,
        body.prompt,
        models=body.models,
        count=body.count,
        provider_id=body.provider,
        max_tokens=body.max_tokens,
        temperature=body.temperature,
        system_prompt=body.system_prompt,
    )
    return JSONResponse(status_code=200, content=data)


@router.post("/analyze-text")
async def api_analyze_text(request: Request) -> JSONResponse:
    body = validate_body(AnalyzeTextBody, await parse_json_body(request))
    analysis = analyze_text(body.text)
    return JSONResponse(
        status_code=200, content=analysis.model_dump(mode="json", by_alias=True)
    )


@router.get("/providers")
async def api_providers(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> dict:
    return {"providers": orchestrator.available_providers()}


@router.get("/models")
async def api_models(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Default model per generation stage."""
    settings = orchestrator.settings
    return {
        "models": settings.models.model_dump(),
        "defaultProvider": settings.default_provider,
        "imageProvider": settings.image_provider,
    }
