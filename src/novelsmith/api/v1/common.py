# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the common unit so this responsibility stays isolated, testable, and easy to evolve.

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Type, TypeVar

import pydantic
from fastapi import Request

from novelsmith.core.config import GenerationSettings, load_generation_settings
from novelsmith.models.generation import GenerationPhase
from novelsmith.services.exceptions import ValidationError
from novelsmith.services.generation.orchestrator import GenerationOrchestrator
from novelsmith.services.providers.provider_registry import build_default_registry

BodyT = TypeVar("BodyT", bound=pydantic.BaseModel)


async def parse_json_body(request: Request) -> Dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def validate_body(model: Type[BodyT], payload: Dict[str, Any]) -> BodyT:
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"Invalid request body at '{field}': {first.get('msg')}",
            field=field or None,
        ) from exc


def request_from_body(phase: GenerationPhase, body: Dict[str, Any]) -> Dict[str, Any]:
    """Split a flat route body into genre context, phase payload and customization."""
    body = dict(body)
    genre = body.pop("genreContext", None) or body.pop("genre_context", None)
    customization = body.pop("customization", None) or {}
    body.pop("phase", None)
    return {
        "phase": phase.value,
        "genreContext": genre,
        "payload": {**body, "phase": phase.value},
        "customization": customization,
    }


@lru_cache(maxsize=1)
def get_settings() -> GenerationSettings:
    return load_generation_settings()


@lru_cache(maxsize=1)
def get_orchestrator() -> GenerationOrchestrator:
    """FastAPI dependency; tests replace it through ``app.dependency_overrides``."""
    settings = get_settings()
    return GenerationOrchestrator(settings, build_default_registry(settings))
