# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Per-phase model, token and temperature defaults.

Phases are grouped into stages that share a model and a token budget:

- planning (premise, outline, characters): large-context model, 4000 tokens
- drafting (chapter): long-form model, 8000 tokens; long chapters size their
  budget from the target word count
- reviewing (review): fixed low temperature for repeatable scoring
- image (cover-image) and raw_text (free-form prompts)

Caller overrides win field by field over the stage defaults.
"""

from __future__ import annotations

from novelsmith.core.config import GenerationSettings
from novelsmith.models.generation import (
    Customization,
    GenerationPhase,
    ProviderConfig,
)

PHASE_STAGES: dict[GenerationPhase, str] = {
    GenerationPhase.PREMISE: "planning",
    GenerationPhase.OUTLINE: "planning",
    GenerationPhase.CHARACTERS: "planning",
    GenerationPhase.CHAPTER: "drafting",
    GenerationPhase.LONG_CHAPTER: "drafting",
    GenerationPhase.REVIEW: "reviewing",
    GenerationPhase.COVER_IMAGE: "image",
    GenerationPhase.RAW_TEXT: "raw_text",
}

DEFAULT_LONG_CHAPTER_TARGET_WORDS = 3000
# 1.33 tokens per word, kept as an integer ratio to avoid float rounding.
TOKENS_PER_WORD_NUM = 133
TOKENS_PER_WORD_DEN = 100
LONG_CHAPTER_TOKEN_BUFFER = 1000


def compute_long_chapter_max_tokens(
    target_words: int = DEFAULT_LONG_CHAPTER_TARGET_WORDS,
    token_ceiling: int = 16000,
) -> int:
    """Return min(ceil(target_words * 1.33) + 1000, token_ceiling)."""
    estimated = -(-target_words * TOKENS_PER_WORD_NUM // TOKENS_PER_WORD_DEN)
    return min(estimated + LONG_CHAPTER_TOKEN_BUFFER, token_ceiling)


def phase_defaults(
    phase: GenerationPhase,
    settings: GenerationSettings,
    *,
    target_words: int | None = None,
) -> ProviderConfig:
    stage = PHASE_STAGES[phase]

    if phase == GenerationPhase.COVER_IMAGE:
        return ProviderConfig(
            provider_id=settings.image_provider,
            model_id=settings.models.image,
            max_tokens=0,
            temperature=settings.default_temperature,
        )

    model_id = {
        "planning": settings.models.planning,
        "drafting": settings.models.drafting,
        "reviewing": settings.models.reviewing,
        "raw_text": settings.models.drafting,
    }[stage]

    if phase == GenerationPhase.LONG_CHAPTER:
        max_tokens = compute_long_chapter_max_tokens(
            target_words or DEFAULT_LONG_CHAPTER_TARGET_WORDS,
            settings.token_ceiling,
        )
    else:
        max_tokens = getattr(settings.max_tokens, stage)

    temperature = (
        settings.review_temperature
        if phase == GenerationPhase.REVIEW
        else settings.default_temperature
    )
    return ProviderConfig(
        provider_id=settings.default_provider,
        model_id=model_id,
        max_tokens=max_tokens,
        temperature=temperature,
    )


def resolve_provider_config(
    phase: GenerationPhase,
    overrides: Customization | None,
    settings: GenerationSettings,
) -> ProviderConfig:
    """Merge phase defaults with caller overrides; an explicit override always wins."""
    overrides = overrides or Customization()
    base = phase_defaults(phase, settings, target_words=overrides.target_words)

    provider_id = overrides.provider_id or base.provider_id
    model_id = overrides.model_id
    if model_id is None and provider_id != base.provider_id:
        # The stage model belongs to the default provider; use the swapped
        # provider's own default instead.
        credentials = settings.providers.get(provider_id)
        if credentials is not None:
            model_id = (
                credentials.default_image_model
                if phase == GenerationPhase.COVER_IMAGE
                else credentials.default_text_model
            )

    return ProviderConfig(
        provider_id=provider_id,
        model_id=model_id or base.model_id,
        max_tokens=(
            overrides.max_tokens
            if overrides.max_tokens is not None
            else base.max_tokens
        ),
        temperature=(
            overrides.temperature
            if overrides.temperature is not None
            else base.temperature
        ),
    )
