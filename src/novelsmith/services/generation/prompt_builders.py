# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the prompt builders unit so this responsibility stays isolated, testable, and easy to evolve.

Every builder is a pure function of its inputs. Required inputs are checked
before any text is assembled, so a caller never receives a half-filled
prompt. ``build_prompt`` is the phase dispatcher used by the orchestrator.
"""

from __future__ import annotations

import json
import math
from typing import Any

import pydantic
from pydantic.alias_generators import to_camel

from novelsmith.models.generation import (
    GENRE_PHASES,
    ChapterOutline,
    ChapterPayload,
    CharacterBrief,
    CharactersPayload,
    CoverPayload,
    Customization,
    GenerationPhase,
    GenerationRequest,
    GenreContext,
    OutlinePayload,
    PremisePayload,
    PreviousChapter,
    RawTextPayload,
    ReviewPayload,
    WordCountRange,
)
from novelsmith.services.exceptions import ValidationError
from novelsmith.services.generation.generation_config import (
    DEFAULT_LONG_CHAPTER_TARGET_WORDS,
)

WORDS_PER_CHAPTER_ESTIMATE = 2000
STANDARD_CHAPTER_BAND = WordCountRange(min=1750, max=2250)
LONG_CHAPTER_BAND = WordCountRange(min=2000, max=4000)
COVER_PREMISE_EXCERPT = 200

REVIEW_CRITERIA = (
    "repetition",
    "punctuation",
    "naturalLanguage",
    "characterConsistency",
    "plotAdherence",
    "genreCompliance",
)

PREMISE_JSON_EXAMPLE: dict[str, Any] = {
    "premises": [
        {
            "title": "Working Title",
            "summary": "2-3 sentence premise",
            "centralConflict": "Main conflict description",
            "uniqueElements": ["element1", "element2"],
            "characterPotential": "Development opportunities",
            "themes": ["theme1", "theme2"],
        }
    ]
}

OUTLINE_JSON_EXAMPLE: dict[str, Any] = {
    "threeActStructure": {
        act: {
            "chapters": [
                {
                    "number": 1,
                    "title": "Chapter title",
                    "summary": "What happens in this chapter",
                    "objectives": ["objective1", "objective2"],
                }
            ]
        }
        for act in ("act1", "act2", "act3")
    },
    "characterArcs": [
        {"character": "Name", "arc": "Arc description", "chapters": [1, 2]}
    ],
    "plotPoints": ["plot point1", "plot point2"],
    "themes": ["theme1", "theme2"],
    "pacingNotes": "Timeline and pacing notes",
}

CHARACTERS_JSON_EXAMPLE: dict[str, Any] = {
    "characters": [
        {
            "name": "Full Name",
            "role": "protagonist",
            "description": "Physical and personality sketch",
            "background": "Relevant history",
            "motivation": "What drives them",
            "arc": "How they change over the story",
            "traits": ["trait1", "trait2"],
            "relationships": [{"name": "Other Character", "relationship": "ally"}],
        }
    ]
}

REVIEW_JSON_EXAMPLE: dict[str, Any] = {
    "scores": {**{name: 85 for name in REVIEW_CRITERIA}, "overall": 85},
    "issues": [
        {
            "type": "category",
            "severity": "low|medium|high",
            "description": "issue description",
            "suggestion": "how to fix",
        }
    ],
    "strengths": ["strength1", "strength2"],
    "recommendations": ["recommendation1", "recommendation2"],
}

COVER_GENRE_ELEMENTS = {
    "Christian Fiction": "Include subtle Christian symbolism, warm and hopeful atmosphere, clean design.",
    "Mystery": "Include mysterious atmosphere, shadowy elements, intriguing visual clues.",
    "Cozy Mystery": "Include cozy, comfortable setting, charming atmosphere, approachable design.",
    "Romance": "Include romantic atmosphere, warm colors, elegant typography.",
}
COVER_DEFAULT_ELEMENTS = "Follow genre conventions and reader expectations."
COVER_CUSTOM_ENHANCEMENT = (
    "Ensure professional book cover quality, clear typography space, marketable design."
)


def _json_block(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"'{field}' is required", field=field)
    return value


def _require_genre(genre: GenreContext | None) -> GenreContext:
    if genre is None:
        raise ValidationError("'genreContext' is required", field="genreContext")
    return genre


# ---------------------------------------------------------------------------
# Request validation
# ---------------------------------------------------------------------------


def _field_path(loc: tuple[Any, ...]) -> str:
    return ".".join(
        to_camel(part) if isinstance(part, str) and "_" in part else str(part)
        for part in loc
    )


def coerce_request(data: GenerationRequest | dict[str, Any]) -> GenerationRequest:
    """Build a ``GenerationRequest`` from a plain dict, mapping schema errors to ``ValidationError``."""
    if isinstance(data, GenerationRequest):
        return data
    try:
        return GenerationRequest.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        path = _field_path(tuple(first.get("loc", ())))
        raise ValidationError(
            f"Invalid generation request at '{path}': {first.get('msg')}",
            field=path or None,
        ) from exc


def _resolve_word_count_target(
    payload: OutlinePayload, customization: Customization
) -> int:
    target = payload.word_count_target or customization.word_count_target
    if not target:
        raise ValidationError(
            "'wordCountTarget' is required for outline generation",
            field="wordCountTarget",
        )
    return target


def validate_request(request: GenerationRequest) -> None:
    """Reject payloads that do not fit the phase or lack required inputs."""
    phase = request.phase
    payload = request.payload

    if payload.phase != phase.value:
        raise ValidationError(
            f"Payload for phase '{payload.phase}' does not match request phase '{phase.value}'",
            field="payload",
        )
    if phase in GENRE_PHASES:
        _require_genre(request.genre_context)

    if isinstance(payload, OutlinePayload):
        _require_text(payload.premise, "premise")
        _resolve_word_count_target(payload, request.customization)
    elif isinstance(payload, CharactersPayload):
        _require_text(payload.premise, "premise")
        if payload.outline in (None, "", {}, []):
            raise ValidationError("'outline' is required", field="outline")
    elif isinstance(payload, ChapterPayload):
        _require_text(payload.premise, "premise")
    elif isinstance(payload, ReviewPayload):
        _require_text(payload.chapter_text, "chapterText")
        _require_text(payload.premise, "premise")
    elif isinstance(payload, CoverPayload):
        _validate_cover_payload(payload)
    elif isinstance(payload, RawTextPayload):
        _require_text(payload.prompt, "prompt")


def _validate_cover_payload(payload: CoverPayload) -> None:
    if payload.approach is None:
        _require_text(payload.prompt, "prompt")
        return
    _require_text(payload.title, "title")
    _require_text(payload.genre_name, "genreName")
    if payload.approach == "custom-prompt":
        _require_text(payload.prompt, "prompt")
    elif payload.approach == "template-based":
        _require_text(payload.template_name, "templateName")


# ---------------------------------------------------------------------------
# Planning prompts
# ---------------------------------------------------------------------------


def build_premise_prompt(
    genre: GenreContext,
    customization: Customization | None = None,
    additional_inputs: str = "",
) -> str:
    genre = _require_genre(genre)
    customization = customization or Customization()

    prompt = f"""You are an expert fiction writer specializing in {genre.name}. Generate 3-5 compelling novel premises that adhere to the following genre requirements:

GENRE: {genre.name}
DESCRIPTION: {genre.description}
KEY CHARACTERISTICS: {', '.join(genre.key_characteristics)}

GENRE-SPECIFIC REQUIREMENTS:
{_json_block(genre.specific_guidance("planning"))}"""

    if genre.has_faith_elements:
        prompt += """

CHRISTIAN FICTION REQUIREMENTS:
- Faith elements must be organic and authentic
- Characters should have realistic spiritual journeys
- Content must align with Christian values
- Include opportunities for spiritual growth and biblical principles"""

    prompt += f"""

CUSTOMIZATION PREFERENCES:
- Writing Style: {customization.writing_style or "Balanced show-don't-tell approach"}
- Character Development: {customization.character_development or "Moderate depth"}
- Thematic Elements: {customization.thematic_elements or "Standard genre themes"}"""

    if additional_inputs and additional_inputs.strip():
        prompt += f"""

ADDITIONAL REQUIREMENTS:
{additional_inputs.strip()}"""

    prompt += f"""

For each premise, provide:
1. A compelling 2-3 sentence summary
2. The central conflict
3. Unique elements that avoid genre clichés
4. Potential for character development
5. Thematic possibilities

Format your response as JSON with this structure:
{_json_block(PREMISE_JSON_EXAMPLE)}"""
    return prompt


def target_chapter_count(word_count_target: int) -> int:
    return math.ceil(word_count_target / WORDS_PER_CHAPTER_ESTIMATE)


def build_outline_prompt(
    premise: str,
    genre: GenreContext,
    characters: list[CharacterBrief],
    word_count_target: int,
    customization: Customization | None = None,
) -> str:
    premise = _require_text(premise, "premise")
    genre = _require_genre(genre)
    if not word_count_target or word_count_target <= 0:
        raise ValidationError(
            "'wordCountTarget' must be a positive integer", field="wordCountTarget"
        )
    customization = customization or Customization()
    band = customization.chapter_word_count or STANDARD_CHAPTER_BAND
    roster = "\n".join(f"{c.name}: {c.role} - {c.description}" for c in characters)

    prompt = f"""You are an expert fiction writer creating a detailed outline for a {genre.name} novel.

PREMISE: {premise}

GENRE REQUIREMENTS:
{_json_block(genre.prompting_context("planning"))}

TARGET STRUCTURE:
- Total chapters: {target_chapter_count(word_count_target)}
- Words per chapter: {band.label()}
- Overall word count: {word_count_target}

CHARACTERS PROVIDED:
{roster or "No characters defined yet."}

Create a comprehensive outline including:
1. Three-act structure with chapter breakdown
2. Character arcs mapped to plot progression
3. Key plot points and turning points
4. Thematic development throughout
5. Timeline and pacing notes

QUALITY REQUIREMENTS:
- Ensure each chapter has a clear purpose and mini-arc
- Plan for variety in scene types and settings
- Integrate character development naturally
- Avoid repetitive chapter structures
- Maximum one em dash per chapter (note in style guide)"""

    if genre.has_faith_elements:
        prompt += """

CHRISTIAN FICTION INTEGRATION:
- Map spiritual growth to plot progression
- Include authentic faith challenges and resolutions
- Integrate biblical principles organically
- Plan witnessing and ministry opportunities"""

    prompt += f"""

Format your response as JSON with this structure, numbering chapters consecutively across all three acts:
{_json_block(OUTLINE_JSON_EXAMPLE)}"""
    return prompt


def build_characters_prompt(
    premise: str,
    genre: GenreContext,
    outline: Any,
    customization: Customization | None = None,
) -> str:
    premise = _require_text(premise, "premise")
    genre = _require_genre(genre)
    if outline in (None, "", {}, []):
        raise ValidationError("'outline' is required", field="outline")
    customization = customization or Customization()
    outline_text = outline if isinstance(outline, str) else _json_block(outline)

    prompt = f"""You are an expert fiction writer developing the cast of a {genre.name} novel.

PREMISE: {premise}

GENRE REQUIREMENTS:
{_json_block(genre.prompting_context("planning"))}

OUTLINE:
{outline_text}

Create a complete character roster including:
1. Protagonist, antagonist and key supporting characters
2. A distinct voice, background and motivation for each
3. A character arc that fits the outline
4. Relationships between the characters

CUSTOMIZATION PREFERENCES:
- Character Development: {customization.character_development or "Moderate depth"}"""

    if genre.has_faith_elements:
        prompt += """

CHRISTIAN FICTION REQUIREMENTS:
- Give major characters a realistic spiritual journey
- Show faith through choices and relationships, not lectures"""

    prompt += f"""

Format your response as JSON with this structure:
{_json_block(CHARACTERS_JSON_EXAMPLE)}"""
    return prompt


# ---------------------------------------------------------------------------
# Drafting prompts
# ---------------------------------------------------------------------------


def _chapter_prompt(
    heading: str,
    chapter_outline: ChapterOutline,
    genre: GenreContext,
    premise: str,
    characters: list[CharacterBrief],
    previous_chapter: PreviousChapter | None,
    customization: Customization,
    band: WordCountRange,
    target_words: int | None = None,
) -> str:
    premise = _require_text(premise, "premise")
    genre = _require_genre(genre)
    word_range = band.label()
    cast = ", ".join(f"{c.name} ({c.role})" for c in characters)
    if previous_chapter is not None and previous_chapter.summary.strip():
        previous = f"Previous chapter summary: {previous_chapter.summary}"
    else:
        previous = "This is the first chapter."

    target_line = ""
    if target_words:
        target_line = f"\nTarget Length: approximately {target_words} words"

    prompt = f"""You are an expert fiction writer crafting {heading} {chapter_outline.number} of a {genre.name} novel.

CHAPTER OUTLINE:
Title: {chapter_outline.title}
Summary: {chapter_outline.summary}
Objectives: {', '.join(chapter_outline.objectives)}
Word Count Target: {word_range} words{target_line}

NOVEL CONTEXT:
Premise: {premise}
Characters: {cast}

PREVIOUS CHAPTER CONTEXT:
{previous}

QUALITY REQUIREMENTS (CRITICAL):
1. Word count: MUST be between {word_range} words
2. Em dashes: Maximum ONE em dash (—) allowed in entire chapter
3. Use en dashes (–) for ranges and connections instead
4. No repeated phrases, sentence structures, or scene patterns
5. Show don't tell throughout
6. Natural, varied dialogue
7. Distinct scenes that serve the plot
8. Character-consistent voices and actions

STYLE GUIDELINES:
- Pacing: {customization.pacing_profile or "Moderate"}
- Dialogue frequency: {customization.dialogue_frequency or "Balanced"}
- Descriptive density: {customization.descriptive_density or "Moderate"}
- Show-don't-tell emphasis: High priority

GENRE-SPECIFIC REQUIREMENTS:
{_json_block(genre.prompting_context("drafting"))}"""

    if customization.additional_instructions and customization.additional_instructions.strip():
        prompt += f"""

ADDITIONAL INSTRUCTIONS:
{customization.additional_instructions.strip()}"""

    prompt += """

Write the complete chapter content, ensuring it:
- Starts with a compelling opening
- Develops the planned character arcs
- Advances the plot meaningfully
- Ends with appropriate transition/hook for next chapter
- Maintains consistency with established characters and world

Begin writing the chapter now:"""
    return prompt


def build_chapter_prompt(
    chapter_outline: ChapterOutline,
    genre: GenreContext,
    premise: str,
    characters: list[CharacterBrief] | None = None,
    previous_chapter: PreviousChapter | None = None,
    customization: Customization | None = None,
) -> str:
    customization = customization or Customization()
    return _chapter_prompt(
        "Chapter",
        chapter_outline,
        genre,
        premise,
        characters or [],
        previous_chapter,
        customization,
        customization.chapter_word_count or STANDARD_CHAPTER_BAND,
    )


def build_long_chapter_prompt(
    chapter_outline: ChapterOutline,
    genre: GenreContext,
    premise: str,
    characters: list[CharacterBrief] | None = None,
    previous_chapter: PreviousChapter | None = None,
    customization: Customization | None = None,
) -> str:
    """Same constraints as a standard chapter, with a wider band and an explicit length target."""
    customization = customization or Customization()
    return _chapter_prompt(
        "a LONG FORM Chapter",
        chapter_outline,
        genre,
        premise,
        characters or [],
        previous_chapter,
        customization,
        customization.chapter_word_count or LONG_CHAPTER_BAND,
        target_words=customization.target_words or DEFAULT_LONG_CHAPTER_TARGET_WORDS,
    )


# ---------------------------------------------------------------------------
# Review prompt
# ---------------------------------------------------------------------------


def build_review_prompt(
    chapter_text: str,
    chapter_number: int,
    genre: GenreContext,
    premise: str,
) -> str:
    chapter_text = _require_text(chapter_text, "chapterText")
    premise = _require_text(premise, "premise")
    genre = _require_genre(genre)

    return f"""You are an expert editor reviewing Chapter {chapter_number} of a {genre.name} novel.

NOVEL PREMISE:
{premise}

CHAPTER CONTENT TO REVIEW:
{chapter_text}

REVIEW CRITERIA:
1. REPETITION ANALYSIS
   - Check for repeated phrases, words, or sentence structures
   - Identify any formulaic patterns
   - Score: 0-100 (100 = no repetition)

2. PUNCTUATION COMPLIANCE
   - Count em dashes (—) - should be maximum 1
   - Verify en dash (–) usage for ranges
   - Score: 0-100 (100 = perfect compliance)

3. NATURAL LANGUAGE
   - Identify artificial or template-like phrases
   - Check for varied sentence structures
   - Score: 0-100 (100 = completely natural)

4. CHARACTER CONSISTENCY
   - Verify characters act according to established profiles
   - Check dialogue authenticity
   - Score: 0-100 (100 = perfectly consistent)

5. PLOT ADHERENCE
   - Confirm chapter meets outlined objectives
   - Verify logical progression
   - Score: 0-100 (100 = perfectly aligned)

6. GENRE COMPLIANCE
   - Check adherence to {genre.name} conventions
   - Verify appropriate tone and style
   - Score: 0-100 (100 = genre-perfect)

Provide detailed feedback in JSON format, with every score an integer from 0 to 100:
{_json_block(REVIEW_JSON_EXAMPLE)}"""


# ---------------------------------------------------------------------------
# Cover prompt
# ---------------------------------------------------------------------------


def build_cover_prompt(payload: CoverPayload) -> str:
    _validate_cover_payload(payload)
    if payload.approach is None:
        return payload.prompt.strip()

    if payload.approach == "custom-prompt":
        return (
            f'This is for a {payload.genre_name} novel titled "{payload.title}". '
            f"{payload.prompt.strip()} {COVER_CUSTOM_ENHANCEMENT}"
        )

    base = (
        f'Create a professional book cover for "{payload.title}", '
        f"a {payload.genre_name} novel."
    )
    if payload.approach == "template-based":
        elements = COVER_GENRE_ELEMENTS.get(payload.genre_name, COVER_DEFAULT_ELEMENTS)
        return (
            f"{base} {elements} Style: {payload.template_name}. "
            f"{payload.template_description}"
        ).rstrip()

    # automated-extraction
    prompt = base
    if payload.premise.strip():
        prompt += f" Story premise: {payload.premise[:COVER_PREMISE_EXCERPT]}..."
    used = [el.description for el in payload.extracted_elements if el.used]
    if used:
        prompt += f" Include these key elements: {', '.join(used)}."
    return (
        prompt
        + " Create a compelling, marketable cover that captures the essence of the story."
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def build_prompt(request: GenerationRequest) -> str:
    """Validate the request and return the prompt for its phase."""
    validate_request(request)
    payload = request.payload
    genre = request.genre_context
    customization = request.customization

    if isinstance(payload, PremisePayload):
        return build_premise_prompt(genre, customization, payload.additional_inputs)
    if isinstance(payload, OutlinePayload):
        return build_outline_prompt(
            payload.premise,
            genre,
            payload.characters,
            _resolve_word_count_target(payload, customization),
            customization,
        )
    if isinstance(payload, CharactersPayload):
        return build_characters_prompt(
            payload.premise, genre, payload.outline, customization
        )
    if isinstance(payload, ChapterPayload):
        builder = (
            build_long_chapter_prompt
            if request.phase == GenerationPhase.LONG_CHAPTER
            else build_chapter_prompt
        )
        return builder(
            payload.chapter_outline,
            genre,
            payload.premise,
            payload.characters,
            payload.previous_chapter,
            customization,
        )
    if isinstance(payload, ReviewPayload):
        return build_review_prompt(
            payload.chapter_text, payload.chapter_number, genre, payload.premise
        )
    if isinstance(payload, CoverPayload):
        return build_cover_prompt(payload)
    if isinstance(payload, RawTextPayload):
        return payload.prompt
    raise ValidationError(f"Unsupported phase '{request.phase.value}'", field="phase")
