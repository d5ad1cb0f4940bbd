# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the ai requests unit so this responsibility stays isolated, testable, and easy to evolve.

Request bodies for endpoints that do not map one-to-one onto a
``GenerationRequest``.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from novelsmith.models.generation import (
    CamelModel,
    CharacterBrief,
    Customization,
    GenreContext,
)


class AnalyzeTextBody(CamelModel):
    text: str = Field(min_length=1)


class GenerateTextBody(CamelModel):
    prompt: str = Field(min_length=1)
    provider: str | None = None
    model: str | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    system_prompt: str = ""


class TextVariationsBody(CamelModel):
    prompt: str = Field(min_length=1)
    provider: str = "replicate"
    models: list[str] = Field(default_factory=lambda: ["llama3_70b", "mixtral_8x7b"])
    count: int = Field(default=2, ge=1)
    max_tokens: int | None = Field(default=None, gt=0)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    system_prompt: str = ""


class CompleteNovelBody(CamelModel):
    genre_context: GenreContext
    premise: str = Field(min_length=1)
    outline: dict[str, Any]
    characters: list[CharacterBrief] = Field(default_factory=list)
    customization: Customization = Field(default_factory=Customization)
    long_form: bool = False
    max_chapters: int | None = Field(default=None, ge=1)
