# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the orchestrator unit so this responsibility stays isolated, testable, and easy to evolve.

Every phase runs the same sequence: validate the request, resolve the
provider configuration, build the prompt, invoke the provider, parse the
answer for structured phases and attach metadata. Failures are not caught
and continued; they leave as ``GenerationError`` carrying the phase, after
the time-to-failure has been written to the event log.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Mapping

from novelsmith.core.config import GenerationSettings
from novelsmith.models.generation import (
    STRUCTURED_PHASES,
    ChapterOutline,
    CharacterBrief,
    CoverPayload,
    Customization,
    GenerationMetadata,
    GenerationPhase,
    GenerationRequest,
    GenerationResult,
    GenreContext,
    PreviousChapter,
    ProviderConfig,
    RawTextPayload,
)
from novelsmith.services.exceptions import GenerationError, ServiceError
from novelsmith.services.generation.generation_config import (
    DEFAULT_LONG_CHAPTER_TARGET_WORDS,
    resolve_provider_config,
)
from novelsmith.services.generation.prompt_builders import (
    build_prompt,
    coerce_request,
    validate_request,
)
from novelsmith.services.generation.response_parsing import parse_phase_response
from novelsmith.services.generation.text_statistics import analyze_text
from novelsmith.services.llm.llm_logging import record_generation_event
from novelsmith.services.providers.provider_base import (
    ImageInvocation,
    TextInvocation,
)
from novelsmith.services.providers.provider_registry import ProviderRegistry

DRAFTING_PHASES = frozenset({GenerationPhase.CHAPTER, GenerationPhase.LONG_CHAPTER})


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


def _phase_label(request: Any) -> str:
    if isinstance(request, GenerationRequest):
        return request.phase.value
    if isinstance(request, Mapping):
        phase = request.get("phase")
        return str(getattr(phase, "value", phase) or "request")
    return "request"


class GenerationOrchestrator:
    """Phase entry points over a provider registry.

    Holds only its injected settings and registry, so one instance can serve
    concurrent calls.
    """

    def __init__(self, settings: GenerationSettings, registry: ProviderRegistry):
        self.settings = settings
        self.registry = registry

    def available_providers(self) -> Dict[str, Any]:
        return self.registry.describe()

    async def run(
        self, request: GenerationRequest | Mapping[str, Any]
    ) -> GenerationResult:
        """Run one generation request, dispatching on its phase."""
        phase = _phase_label(request)
        started = time.monotonic()
        config: ProviderConfig | None = None
        try:
            typed = coerce_request(request)
            validate_request(typed)
            config = resolve_provider_config(
                typed.phase, typed.customization, self.settings
            )
            if typed.phase == GenerationPhase.COVER_IMAGE:
                result = await self._run_image(typed, config, started)
            else:
                result = await self._run_text(typed, config, started)
        except ServiceError as exc:
            elapsed_ms = _elapsed_ms(started)
            record_generation_event(
                phase=phase,
                provider_id=config.provider_id if config else None,
                model_id=config.model_id if config else None,
                generation_time_ms=elapsed_ms,
                error=exc.detail,
            )
            raise GenerationError(phase, exc, generation_time_ms=elapsed_ms) from exc

        record_generation_event(
            phase=phase,
            provider_id=result.metadata.provider_id,
            model_id=result.metadata.model_id,
            generation_time_ms=result.metadata.generation_time_ms,
            tokens_used=result.metadata.tokens_used,
        )
        return result

    async def _run_text(
        self, request: GenerationRequest, config: ProviderConfig, started: float
    ) -> GenerationResult:
        prompt = build_prompt(request)
        provider = self.registry.text_provider(config.provider_id)
        system_prompt = (
            request.payload.system_prompt
            if isinstance(request.payload, RawTextPayload)
            else ""
        )
        output = await provider.invoke(
            TextInvocation(
                prompt=prompt,
                model=config.model_id,
                max_tokens=config.max_tokens,
                temperature=config.temperature,
                system_prompt=system_prompt,
            )
        )

        content: Any = output.text
        if request.phase in STRUCTURED_PHASES:
            content = parse_phase_response(request.phase, output.text)

        drafting = request.phase in DRAFTING_PHASES
        target_words = None
        if request.phase == GenerationPhase.LONG_CHAPTER:
            target_words = (
                request.customization.target_words or DEFAULT_LONG_CHAPTER_TARGET_WORDS
            )

        return GenerationResult(
            phase=request.phase,
            content=content,
            analysis=analyze_text(output.text) if drafting else None,
            metadata=GenerationMetadata(
                provider_id=config.provider_id,
                model_id=config.model_id,
                tokens_used=output.tokens_used,
                generation_time_ms=_elapsed_ms(started),
                temperature=config.temperature,
                max_tokens=config.max_tokens,
                target_words=target_words,
                prompt_echo=prompt if drafting else None,
            ),
        )

    async def _run_image(
        self, request: GenerationRequest, config: ProviderConfig, started: float
    ) -> GenerationResult:
        payload: CoverPayload = request.payload
        prompt = build_prompt(request)
        provider = self.registry.image_provider(config.provider_id)
        settings = payload.settings
        output = await provider.invoke_image(
            ImageInvocation(
                prompt=prompt,
                model=config.model_id,
                width=settings.width,
                height=settings.height,
                count=settings.count,
                guidance=settings.guidance,
                steps=settings.steps,
                style=settings.style,
                quality=settings.quality,
                size=settings.size,
            )
        )
        return GenerationResult(
            phase=request.phase,
            content={
                "imageUrl": output.urls[0],
                "images": output.urls,
                "revisedPrompt": output.revised_prompt,
                "approach": payload.approach,
            },
            metadata=GenerationMetadata(
                provider_id=config.provider_id,
                model_id=config.model_id,
                tokens_used=0,
                generation_time_ms=_elapsed_ms(started),
                prompt_echo=prompt,
            ),
        )

    # ------------------------------------------------------------------
    # Phase entry points
    # ------------------------------------------------------------------

    async def generate_premise(
        self,
        genre: GenreContext | Mapping[str, Any],
        customization: Customization | Mapping[str, Any] | None = None,
        additional_inputs: str = "",
    ) -> GenerationResult:
        return await self.run(
            {
                "phase": GenerationPhase.PREMISE.value,
                "genre_context": genre,
                "payload": {"additional_inputs": additional_inputs or ""},
                "customization": customization or {},
            }
        )

    async def generate_outline(
        self,
        premise: str,
        genre: GenreContext | Mapping[str, Any],
        characters: list[CharacterBrief | Mapping[str, Any]],
        customization: Customization | Mapping[str, Any] | None = None,
        word_count_target: int | None = None,
    ) -> GenerationResult:
        return await self.run(
            {
                "phase": GenerationPhase.OUTLINE.value,
                "genre_context": genre,
                "payload": {
                    "premise": premise,
                    "characters": characters,
                    "word_count_target": word_count_target,
                },
                "customization": customization or {},
            }
        )

    async def generate_characters(
        self,
        premise: str,
        genre: GenreContext | Mapping[str, Any],
        outline: Any,
        customization: Customization | Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        return await self.run(
            {
                "phase": GenerationPhase.CHARACTERS.value,
                "genre_context": genre,
                "payload": {"premise": premise, "outline": outline},
                "customization": customization or {},
            }
        )

    def _chapter_request(
        self,
        phase: GenerationPhase,
        chapter_outline: ChapterOutline | Mapping[str, Any],
        genre: GenreContext | Mapping[str, Any],
        premise: str,
        characters: list[CharacterBrief | Mapping[str, Any]] | None,
        previous_chapter: PreviousChapter | Mapping[str, Any] | None,
        customization: Customization | Mapping[str, Any] | None,
    ) -> Dict[str, Any]:
        return {
            "phase": phase.value,
            "genre_context": genre,
            "payload": {
                "chapter_outline": chapter_outline,
                "premise": premise,
                "characters": characters or [],
                "previous_chapter": previous_chapter,
            },
            "customization": customization or {},
        }

    async def generate_chapter(
        self,
        chapter_outline: ChapterOutline | Mapping[str, Any],
        genre: GenreContext | Mapping[str, Any],
        premise: str,
        characters: list[CharacterBrief | Mapping[str, Any]] | None = None,
        previous_chapter: PreviousChapter | Mapping[str, Any] | None = None,
        customization: Customization | Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        return await self.run(
            self._chapter_request(
                GenerationPhase.CHAPTER,
                chapter_outline,
                genre,
                premise,
                characters,
                previous_chapter,
                customization,
            )
        )

    async def generate_long_chapter(
        self,
        chapter_outline: ChapterOutline | Mapping[str, Any],
        genre: GenreContext | Mapping[str, Any],
        premise: str,
        characters: list[CharacterBrief | Mapping[str, Any]] | None = None,
        previous_chapter: PreviousChapter | Mapping[str, Any] | None = None,
        customization: Customization | Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        """Draft a 2000-4000 word chapter with a token budget sized from ``targetWords``."""
        return await self.run(
            self._chapter_request(
                GenerationPhase.LONG_CHAPTER,
                chapter_outline,
                genre,
                premise,
                characters,
                previous_chapter,
                customization,
            )
        )

    async def review_chapter(
        self,
        chapter_text: str,
        chapter_number: int,
        genre: GenreContext | Mapping[str, Any],
        premise: str,
        customization: Customization | Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        return await self.run(
            {
                "phase": GenerationPhase.REVIEW.value,
                "genre_context": genre,
                "payload": {
                    "chapter_text": chapter_text,
                    "chapter_number": chapter_number,
                    "premise": premise,
                },
                "customization": customization or {},
            }
        )

    async def generate_cover_image(
        self,
        cover: CoverPayload | Mapping[str, Any] | str,
        customization: Customization | Mapping[str, Any] | None = None,
    ) -> GenerationResult:
        """Generate cover artwork from a bare prompt or a cover design payload."""
        if isinstance(cover, str):
            cover = {"prompt": cover}
        elif isinstance(cover, CoverPayload):
            cover = cover.model_dump()
        return await self.run(
            {
                "phase": GenerationPhase.COVER_IMAGE.value,
                "payload": {**cover, "phase": GenerationPhase.COVER_IMAGE.value},
                "customization": customization or {},
            }
        )

    async def generate_text_with_provider(
        self,
        prompt: str,
        *,
        provider_id: str | None = None,
        model_id: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        system_prompt: str = "",
    ) -> GenerationResult:
        """Run a free-form prompt against any registered text provider."""
        return await self.run(
            {
                "phase": GenerationPhase.RAW_TEXT.value,
                "payload": {"prompt": prompt, "system_prompt": system_prompt or ""},
                "customization": {
                    "provider_id": provider_id,
                    "model_id": model_id,
                    "max_tokens": max_tokens,
                    "temperature": temperature,
                },
            }
        )
