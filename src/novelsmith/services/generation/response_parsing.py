# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Extraction of JSON payloads embedded in free-form model output.

Models are told to answer in JSON but routinely wrap it in prose or code
fences. The payload is taken as the span from the first ``{`` to the last
``}`` and decoded strictly; there is no partial recovery. Decoded objects
are then checked against a small per-phase JSON schema.
"""

from __future__ import annotations

import json
from typing import Any

import jsonschema

from novelsmith.models.generation import GenerationPhase
from novelsmith.services.exceptions import ParseError, SchemaParseError

_SCORE = {"type": "number", "minimum": 0, "maximum": 100}

_ACT = {
    "type": "object",
    "required": ["chapters"],
    "properties": {
        "chapters": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["number"],
                "properties": {"number": {"type": "integer", "minimum": 1}},
            },
        }
    },
}

PHASE_SCHEMAS: dict[GenerationPhase, dict[str, Any]] = {
    GenerationPhase.PREMISE: {
        "type": "object",
        "required": ["premises"],
        "properties": {
            "premises": {
                "type": "array",
                "minItems": 1,
                "items": {"type": "object"},
            }
        },
    },
    GenerationPhase.OUTLINE: {
        "type": "object",
        "required": ["threeActStructure"],
        "properties": {
            "threeActStructure": {
                "type": "object",
                "required": ["act1", "act2", "act3"],
                "properties": {"act1": _ACT, "act2": _ACT, "act3": _ACT},
            }
        },
    },
    GenerationPhase.CHARACTERS: {
        "type": "object",
        "required": ["characters"],
        "properties": {
            "characters": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": ["name"],
                    "properties": {"name": {"type": "string", "minLength": 1}},
                },
            },
        },
    },
    GenerationPhase.REVIEW: {
        "type": "object",
        "required": ["scores", "issues", "strengths", "recommendations"],
        "properties": {
            "scores": {
                "type": "object",
                "required": [
                    "repetition",
                    "punctuation",
                    "naturalLanguage",
                    "characterConsistency",
                    "plotAdherence",
                    "genreCompliance",
                    "overall",
                ],
                "additionalProperties": _SCORE,
                "properties": {
                    "overall": _SCORE,
                },
            },
            "issues": {"type": "array", "items": {"type": "object"}},
            "strengths": {"type": "array"},
            "recommendations": {"type": "array"},
        },
    },
}


def _phase_label(phase: GenerationPhase | str) -> str:
    return phase.value if isinstance(phase, GenerationPhase) else str(phase)


def extract_json_block(raw_text: str, phase: GenerationPhase | str = "response") -> dict:
    """Decode the span between the first ``{`` and the last ``}`` of ``raw_text``."""
    label = _phase_label(phase)
    text = raw_text or ""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ParseError(label, text, "No valid JSON found in response")
    try:
        return json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError(label, text, f"JSON decoding failed ({exc.msg})") from exc


def _error_path(error: jsonschema.ValidationError) -> str:
    path = ".".join(str(part) for part in error.absolute_path)
    # Missing required keys are reported against the parent object.
    if error.validator == "required" and isinstance(error.instance, dict):
        missing = [k for k in error.validator_value if k not in error.instance]
        if missing:
            return f"{path}.{missing[0]}" if path else missing[0]
    return path


def validate_phase_payload(
    phase: GenerationPhase, payload: Any, raw_text: str = ""
) -> None:
    schema = PHASE_SCHEMAS.get(phase)
    if schema is None:
        return
    validator = jsonschema.Draft202012Validator(schema)
    errors = sorted(validator.iter_errors(payload), key=lambda e: [str(p) for p in e.absolute_path])
    if errors:
        first = errors[0]
        raise SchemaParseError(phase.value, raw_text, _error_path(first), first.message)


def parse_phase_response(phase: GenerationPhase | str, raw_text: str) -> dict:
    """Return the structured payload for a JSON phase or raise ``ParseError``."""
    phase = GenerationPhase(phase)
    if phase not in PHASE_SCHEMAS:
        raise ValueError(f"Phase '{phase.value}' does not produce structured output")
    payload = extract_json_block(raw_text, phase)
    validate_phase_payload(phase, payload, raw_text)
    return payload
