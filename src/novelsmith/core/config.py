# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
# Purpose: Defines the config unit so this responsibility stays isolated, testable, and easy to evolve.

"""
Configuration loading utilities for NovelSmith.

Conventions:
- Machine-specific config: resources/config/machine.json (or $NOVELSMITH_CONFIG)
- Environment variables override JSON values.
- JSON values can reference environment variables using ${VAR_NAME} placeholders.

The merged dict is validated against resources/schemas/machine.schema.json and
turned into a ``GenerationSettings`` object that is injected into the
orchestrator. Nothing in here is read at import time.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import jsonschema
from pydantic import BaseModel, Field

from novelsmith.services.exceptions import ConfigurationError

BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
RESOURCES_DIR = BASE_DIR / "resources"
CONFIG_DIR = RESOURCES_DIR / "config"
SCHEMAS_DIR = RESOURCES_DIR / "schemas"
DATA_DIR = BASE_DIR / "data"
LOGS_DIR = DATA_DIR / "logs"

MACHINE_SCHEMA_PATH = SCHEMAS_DIR / "machine.schema.json"

DEFAULT_MACHINE_CONFIG: Dict[str, Any] = {
    "providers": {
        "openai": {
            "base_url": "https://api.openai.com/v1",
            "timeout_s": 120,
            "image_timeout_s": 300,
            "default_text_model": "gpt-4-turbo-preview",
            "default_image_model": "dall-e-3",
        },
        "replicate": {
            "base_url": "https://api.replicate.com/v1",
            "timeout_s": 120,
            "image_timeout_s": 300,
            "default_text_model": "llama3_70b",
            "default_image_model": "flux_dev",
        },
    },
    "generation": {
        "default_provider": "openai",
        "image_provider": "openai",
        "default_temperature": 0.7,
        "review_temperature": 0.3,
        "token_ceiling": 16000,
        "models": {
            "planning": "gpt-4-turbo-preview",
            "drafting": "gpt-4-turbo-preview",
            "reviewing": "gpt-4-turbo-preview",
            "image": "dall-e-3",
        },
        "max_tokens": {
            "planning": 4000,
            "drafting": 8000,
            "reviewing": 4000,
            "raw_text": 2000,
        },
    },
}


_ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")


def _interpolate_env(value: Any) -> Any:
    """Interpolate ${VAR} placeholders within strings using environment variables.

    Non-string types are returned unchanged.
    """
    if isinstance(value, str):

        def replace(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, match.group(0))  # leave placeholder if unset

        return _ENV_PATTERN.sub(replace, value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(v) for v in value]
    return value


def _deep_merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Deeply merge mapping 'override' into dict 'base'. Returns new dict.

    - For dict values, merges recursively.
    - For lists and scalars, override replaces base.
    """
    result: Dict[str, Any] = dict(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(result.get(k), Mapping):
            result[k] = _deep_merge(dict(result[k]), v)  # type: ignore[index]
        else:
            result[k] = v
    return result


def load_json_file(path: os.PathLike[str] | str | None) -> Dict[str, Any]:
    """Load JSON from path if it exists; return empty dict if missing.

    Raises ValueError for malformed JSON.
    """
    if path is None:
        return {}
    p = Path(path)
    if not p.exists():
        return {}
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON at {p}: {e}") from e


def _parse_number(raw: str, cast):
    try:
        return cast(raw)
    except ValueError:
        return raw


def _env_overrides() -> Dict[str, Any]:
    """Collect provider and generation environment variables into a nested dict.

    Supported variables:
    - OPENAI_API_KEY -> providers.openai.api_key
    - OPENAI_BASE_URL -> providers.openai.base_url
    - OPENAI_ORG_ID -> providers.openai.organization
    - REPLICATE_API_TOKEN -> providers.replicate.api_key
    - REPLICATE_BASE_URL -> providers.replicate.base_url
    - NOVELSMITH_DEFAULT_TEMPERATURE -> generation.default_temperature
    - NOVELSMITH_TOKEN_CEILING -> generation.token_ceiling
    """
    openai: Dict[str, Any] = {}
    replicate: Dict[str, Any] = {}
    generation: Dict[str, Any] = {}

    for env_name, target, key in (
        ("OPENAI_API_KEY", openai, "api_key"),
        ("OPENAI_BASE_URL", openai, "base_url"),
        ("OPENAI_ORG_ID", openai, "organization"),
        ("REPLICATE_API_TOKEN", replicate, "api_key"),
        ("REPLICATE_BASE_URL", replicate, "base_url"),
    ):
        value = os.getenv(env_name)
        if value is not None:
            target[key] = value

    temperature = os.getenv("NOVELSMITH_DEFAULT_TEMPERATURE")
    if temperature is not None:
        generation["default_temperature"] = _parse_number(temperature, float)
    ceiling = os.getenv("NOVELSMITH_TOKEN_CEILING")
    if ceiling is not None:
        generation["token_ceiling"] = _parse_number(ceiling, int)

    result: Dict[str, Any] = {}
    providers: Dict[str, Any] = {}
    if openai:
        providers["openai"] = openai
    if replicate:
        providers["replicate"] = replicate
    if providers:
        result["providers"] = providers
    if generation:
        result["generation"] = generation
    return result


def default_config_path() -> Path:
    override = os.getenv("NOVELSMITH_CONFIG")
    if override:
        return Path(override)
    return CONFIG_DIR / "machine.json"


def load_machine_config(
    path: os.PathLike[str] | str | None = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Load machine configuration applying precedence and interpolation.

    Precedence: env overrides > JSON file > defaults
    """
    if path is None:
        path = default_config_path()
    defaults = dict(DEFAULT_MACHINE_CONFIG if defaults is None else defaults)
    json_config = load_json_file(path)
    json_config = _interpolate_env(json_config)
    # Merge JSON over defaults, then env over that
    merged = _deep_merge(defaults, json_config)
    merged = _deep_merge(merged, _env_overrides())
    return merged


def _load_machine_schema() -> Dict[str, Any]:
    with open(MACHINE_SCHEMA_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


def validate_machine_config(config: Dict[str, Any], path_label: str) -> None:
    try:
        jsonschema.validate(config, _load_machine_schema())
    except jsonschema.ValidationError as exc:
        location = "/".join(str(p) for p in exc.absolute_path) or "<root>"
        raise ConfigurationError(
            f"Invalid machine config at {path_label} ({location}): {exc.message}"
        ) from exc


# ---------------------------------------------------------------------------
# Typed settings injected into the generation pipeline
# ---------------------------------------------------------------------------


class ProviderCredentials(BaseModel):
    """Connection details for one provider id."""

    base_url: str
    api_key: str | None = None
    organization: str | None = None
    timeout_s: float = 120
    image_timeout_s: float = 300
    default_text_model: str | None = None
    default_image_model: str | None = None


class StageModels(BaseModel):
    planning: str = "gpt-4-turbo-preview"
    drafting: str = "gpt-4-turbo-preview"
    reviewing: str = "gpt-4-turbo-preview"
    image: str = "dall-e-3"


class StageTokenBudgets(BaseModel):
    planning: int = 4000
    drafting: int = 8000
    reviewing: int = 4000
    raw_text: int = 2000


class GenerationSettings(BaseModel):
    """Per-phase defaults and provider credentials for one orchestrator."""

    providers: Dict[str, ProviderCredentials] = Field(default_factory=dict)
    default_provider: str = "openai"
    image_provider: str = "openai"
    default_temperature: float = 0.7
    review_temperature: float = 0.3
    token_ceiling: int = 16000
    models: StageModels = Field(default_factory=StageModels)
    max_tokens: StageTokenBudgets = Field(default_factory=StageTokenBudgets)

    @classmethod
    def from_machine_config(cls, machine: Mapping[str, Any]) -> "GenerationSettings":
        generation = dict(machine.get("generation") or {})
        return cls(providers=machine.get("providers") or {}, **generation)

    def credentials_for(self, provider_id: str) -> ProviderCredentials:
        creds = self.providers.get(provider_id)
        if creds is None:
            raise ConfigurationError(f"No configuration for provider '{provider_id}'")
        return creds


def load_generation_settings(
    path: os.PathLike[str] | str | None = None,
) -> GenerationSettings:
    """Load, validate and type the machine configuration."""
    if path is None:
        path = default_config_path()
    try:
        merged = load_machine_config(path)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    validate_machine_config(merged, str(path))
    return GenerationSettings.from_machine_config(merged)
