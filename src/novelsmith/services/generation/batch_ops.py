# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Caller-level batch policies built on the orchestrator.

These helpers decide what happens after a per-unit failure; the orchestrator
itself never continues past one. Chapters are generated strictly one after
another so that each chapter can see its predecessor's summary.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Mapping

import pydantic

from novelsmith.models.generation import (
    ChapterOutline,
    CharacterBrief,
    Customization,
    GenreContext,
    GenerationPhase,
)
from novelsmith.services.exceptions import GenerationError, ValidationError
from novelsmith.services.generation.orchestrator import GenerationOrchestrator

ACT_KEYS = ("act1", "act2", "act3")
DEFAULT_VARIATION_MODELS = ("llama3_70b", "mixtral_8x7b")


def flatten_outline_chapters(outline: Mapping[str, Any]) -> list[ChapterOutline]:
    """Collect the chapters of a three-act outline, ordered by chapter number."""
    structure = (outline or {}).get("threeActStructure")
    if not isinstance(structure, Mapping):
        raise ValidationError(
            "Outline has no 'threeActStructure'", field="outline.threeActStructure"
        )
    chapters: list[ChapterOutline] = []
    for act in ACT_KEYS:
        for raw in (structure.get(act) or {}).get("chapters") or []:
            try:
                chapters.append(ChapterOutline.model_validate(raw))
            except pydantic.ValidationError as exc:
                raise ValidationError(
                    f"Invalid chapter entry in {act}: {exc.errors()[0].get('msg')}",
                    field=f"outline.threeActStructure.{act}.chapters",
                ) from exc
    if not chapters:
        raise ValidationError(
            "Outline does not define any chapters", field="outline.threeActStructure"
        )
    return sorted(chapters, key=lambda ch: ch.number)


def _progress(done: int, total: int) -> Dict[str, int]:
    return {
        "current_chapter": done,
        "total_chapters": total,
        "percent_complete": round(done / total * 100) if total else 0,
    }


async def generate_complete_novel(
    orchestrator: GenerationOrchestrator,
    outline: Mapping[str, Any],
    *,
    genre: GenreContext | Mapping[str, Any],
    premise: str,
    characters: Iterable[CharacterBrief | Mapping[str, Any]] = (),
    customization: Customization | Mapping[str, Any] | None = None,
    long_form: bool = False,
    should_stop: Callable[[], bool] | None = None,
    on_progress: Callable[[Dict[str, int]], None] | None = None,
) -> Dict[str, Any]:
    """Draft every outlined chapter in order, continuing past failed chapters.

    The chapter summary from the outline is handed to the next chapter as
    its previous-chapter context. ``should_stop`` is checked before each
    chapter; a call already in flight always runs to completion.
    """
    chapter_outlines = flatten_outline_chapters(outline)
    characters = list(characters)
    generate = (
        orchestrator.generate_long_chapter if long_form else orchestrator.generate_chapter
    )

    chapters: list[Dict[str, Any]] = []
    failures: list[Dict[str, Any]] = []
    progress = _progress(0, len(chapter_outlines))
    previous: Dict[str, str] | None = None
    status = "completed"

    for index, chapter_outline in enumerate(chapter_outlines, start=1):
        if should_stop is not None and should_stop():
            status = "stopped"
            break
        try:
            result = await generate(
                chapter_outline,
                genre,
                premise,
                characters,
                previous,
                customization,
            )
        except GenerationError as exc:
            failures.append(
                {
                    "number": chapter_outline.number,
                    "title": chapter_outline.title,
                    "error": exc.detail,
                }
            )
        else:
            chapters.append(
                {
                    "number": chapter_outline.number,
                    "title": chapter_outline.title,
                    **result.to_response(),
                }
            )
        previous = {"summary": chapter_outline.summary}
        progress = _progress(index, len(chapter_outlines))
        if on_progress is not None:
            on_progress(dict(progress))

    if status == "completed" and failures and not chapters:
        status = "failed"

    return {
        "status": status,
        "progress": progress,
        "chapters": chapters,
        "failures": failures,
    }


async def generate_text_variations(
    orchestrator: GenerationOrchestrator,
    prompt: str,
    *,
    models: Iterable[str] = DEFAULT_VARIATION_MODELS,
    count: int = 2,
    provider_id: str = "replicate",
    max_tokens: int | None = None,
    temperature: float | None = None,
    system_prompt: str = "",
) -> Dict[str, Any]:
    """Run the prompt once per model (up to ``count`` models), skipping failures."""
    variations: list[Dict[str, Any]] = []
    skipped: list[Dict[str, str]] = []
    for model in list(models)[:count]:
        try:
            result = await orchestrator.generate_text_with_provider(
                prompt,
                provider_id=provider_id,
                model_id=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system_prompt=system_prompt,
            )
        except GenerationError as exc:
            skipped.append({"model": model, "error": exc.detail})
            continue
        variations.append(
            {
                "content": result.content,
                "model": model,
                "provider": provider_id,
                "tokensUsed": result.metadata.tokens_used,
            }
        )
    return {
        "variations": variations,
        "totalCount": len(variations),
        "originalPrompt": prompt,
        "skipped": skipped,
        "phase": GenerationPhase.RAW_TEXT.value,
    }
