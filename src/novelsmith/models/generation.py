# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Pydantic models exchanged between the generation components.

None of these models owns a reference to storage: they are built per request
and discarded once the result is handed back. Field names are snake_case in
Python and camelCase on the wire (both spellings are accepted on input).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class GenerationPhase(str, Enum):
    PREMISE = "premise"
    OUTLINE = "outline"
    CHARACTERS = "characters"
    CHAPTER = "chapter"
    LONG_CHAPTER = "long-chapter"
    REVIEW = "review"
    COVER_IMAGE = "cover-image"
    RAW_TEXT = "raw-text"


STRUCTURED_PHASES = frozenset(
    {
        GenerationPhase.PREMISE,
        GenerationPhase.OUTLINE,
        GenerationPhase.CHARACTERS,
        GenerationPhase.REVIEW,
    }
)

GENRE_PHASES = STRUCTURED_PHASES | {
    GenerationPhase.CHAPTER,
    GenerationPhase.LONG_CHAPTER,
}


# ---------------------------------------------------------------------------
# Domain context
# ---------------------------------------------------------------------------


class GenreContext(CamelModel):
    """Read-only genre rules supplied by the caller."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    name: str
    description: str = ""
    key_characteristics: list[str] = Field(default_factory=list)
    style_guidance: dict[str, Any] = Field(default_factory=dict)
    content_guidance: dict[str, Any] = Field(default_factory=dict)
    christian_specific: dict[str, Any] | None = None
    prompting_strategies: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_faith_elements(self) -> bool:
        return bool(self.christian_specific)

    def specific_guidance(self, stage: str) -> dict[str, Any]:
        """Return the stage guidance, falling back to style and content rules."""
        guidance = self.prompting_strategies.get(stage)
        if isinstance(guidance, dict) and guidance:
            return dict(guidance)
        return {
            "style": dict(self.style_guidance),
            "content": dict(self.content_guidance),
        }

    def prompting_context(self, stage: str = "drafting") -> dict[str, Any]:
        context: dict[str, Any] = {
            "genre": self.name,
            "definition": self.description,
            "keyCharacteristics": list(self.key_characteristics),
            "style": dict(self.style_guidance),
            "content": dict(self.content_guidance),
        }
        guidance = self.prompting_strategies.get(stage)
        if guidance:
            context["specificGuidance"] = guidance
        if self.has_faith_elements:
            context["christianElements"] = self.christian_specific
        return context


class CharacterBrief(CamelModel):
    name: str
    role: str = ""
    description: str = ""


class ChapterOutline(CamelModel):
    number: int = Field(ge=1)
    title: str = ""
    summary: str = ""
    objectives: list[str] = Field(default_factory=list)


class PreviousChapter(CamelModel):
    summary: str = ""


class WordCountRange(CamelModel):
    min: int = Field(gt=0)
    max: int = Field(gt=0)

    @model_validator(mode="after")
    def _check_order(self) -> "WordCountRange":
        if self.min > self.max:
            raise ValueError("chapter word count min must not exceed max")
        return self

    def label(self) -> str:
        return f"{self.min}-{self.max}"


class Customization(CamelModel):
    """Caller preferences. Explicit values override phase defaults."""

    provider_id: str | None = None
    model_id: str | None = None
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, gt=0)
    target_words: int | None = Field(default=None, gt=0)
    word_count_target: int | None = Field(default=None, gt=0)
    chapter_word_count: WordCountRange | None = None
    pacing_profile: str | None = None
    additional_instructions: str | None = None
    writing_style: str | None = None
    character_development: str | None = None
    thematic_elements: str | None = None
    dialogue_frequency: str | None = None
    descriptive_density: str | None = None


# ---------------------------------------------------------------------------
# Phase payloads (tagged union keyed by ``phase``)
# ---------------------------------------------------------------------------


class PremisePayload(CamelModel):
    phase: Literal["premise"] = "premise"
    additional_inputs: str = ""


class OutlinePayload(CamelModel):
    phase: Literal["outline"] = "outline"
    premise: str
    characters: list[CharacterBrief]
    word_count_target: int | None = Field(default=None, gt=0)


class CharactersPayload(CamelModel):
    phase: Literal["characters"] = "characters"
    premise: str
    outline: Any


class ChapterPayload(CamelModel):
    phase: Literal["chapter", "long-chapter"] = "chapter"
    chapter_outline: ChapterOutline
    premise: str
    characters: list[CharacterBrief] = Field(default_factory=list)
    previous_chapter: PreviousChapter | None = None


class ReviewPayload(CamelModel):
    phase: Literal["review"] = "review"
    chapter_text: str
    chapter_number: int = Field(ge=1)
    premise: str


class CoverElement(CamelModel):
    description: str
    used: bool = True


class ImageSettings(CamelModel):
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    count: int = Field(default=1, ge=1, le=4)
    guidance: float = 7.5
    steps: int = Field(default=20, ge=1)
    style: str | None = None
    quality: str | None = None
    size: str | None = None


class CoverPayload(CamelModel):
    phase: Literal["cover-image"] = "cover-image"
    prompt: str | None = None
    approach: (
        Literal["custom-prompt", "template-based", "automated-extraction"] | None
    ) = None
    title: str = ""
    genre_name: str = ""
    premise: str = ""
    template_name: str | None = None
    template_description: str = ""
    extracted_elements: list[CoverElement] = Field(default_factory=list)
    settings: ImageSettings = Field(default_factory=ImageSettings)


class RawTextPayload(CamelModel):
    phase: Literal["raw-text"] = "raw-text"
    prompt: str
    system_prompt: str = ""


DomainPayload = Annotated[
    Union[
        PremisePayload,
        OutlinePayload,
        CharactersPayload,
        ChapterPayload,
        ReviewPayload,
        CoverPayload,
        RawTextPayload,
    ],
    Field(discriminator="phase"),
]


class GenerationRequest(CamelModel):
    phase: GenerationPhase
    genre_context: GenreContext | None = None
    payload: DomainPayload
    customization: Customization = Field(default_factory=Customization)

    @model_validator(mode="before")
    @classmethod
    def _tag_untagged_payload(cls, data: Any) -> Any:
        # Untagged payload dicts inherit the request phase.
        if isinstance(data, dict):
            payload = data.get("payload")
            phase = data.get("phase")
            if isinstance(payload, dict) and "phase" not in payload and phase:
                data = dict(data)
                data["payload"] = {
                    **payload,
                    "phase": getattr(phase, "value", phase),
                }
        return data


# ---------------------------------------------------------------------------
# Provider configuration and results
# ---------------------------------------------------------------------------


class ProviderConfig(CamelModel):
    provider_id: str
    model_id: str
    max_tokens: int
    temperature: float


class GenerationMetadata(CamelModel):
    provider_id: str
    model_id: str
    tokens_used: int = 0
    generation_time_ms: int = Field(default=0, ge=0)
    temperature: float | None = None
    max_tokens: int | None = None
    target_words: int | None = None
    prompt_echo: str | None = None


class TextStatistics(CamelModel):
    word_count: int = 0
    character_count: int = 0
    sentence_count: int = 0
    paragraph_count: int = 0
    lexical_diversity: int = 0
    em_dash_count: int = 0
    en_dash_count: int = 0
    punctuation_compliant: bool = True
    avg_words_per_sentence: int = 0
    avg_sentences_per_paragraph: int = 0
    reading_time_minutes: int = 0


class QualityScore(CamelModel):
    repetition_score: int = Field(default=0, ge=0, le=100)
    diversity_score: int = Field(default=0, ge=0, le=100)
    punctuation_compliance_score: int = Field(default=100, ge=0, le=100)


class TextAnalysis(CamelModel):
    statistics: TextStatistics
    quality: QualityScore


class GenerationResult(CamelModel):
    phase: GenerationPhase
    content: Any
    metadata: GenerationMetadata
    analysis: TextAnalysis | None = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
