# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Defines the provider registry unit so this responsibility stays isolated, testable, and easy to evolve.

Providers are looked up by id at call time. Adding a backend means writing an
adapter class and listing it in ``PROVIDER_FACTORIES``.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from novelsmith.core.config import GenerationSettings, ProviderCredentials
from novelsmith.services.exceptions import ValidationError
from novelsmith.services.providers.openai_provider import OpenAIProvider
from novelsmith.services.providers.provider_base import ImageProvider, TextProvider
from novelsmith.services.providers.replicate_provider import ReplicateProvider

PROVIDER_NAMES = {"openai": "OpenAI", "replicate": "Replicate"}

PROVIDER_FACTORIES: Dict[str, Callable[[ProviderCredentials], object]] = {
    "openai": OpenAIProvider,
    "replicate": ReplicateProvider,
}


class ProviderRegistry:
    def __init__(self) -> None:
        self._text: Dict[str, TextProvider] = {}
        self._image: Dict[str, ImageProvider] = {}

    def register(self, provider: object, provider_id: str | None = None) -> None:
        """Register an adapter under its id for every capability it implements."""
        pid = provider_id or getattr(provider, "provider_id", "")
        if not pid:
            raise ValueError("provider id is required")
        registered = False
        if isinstance(provider, TextProvider):
            self._text[pid] = provider
            registered = True
        if isinstance(provider, ImageProvider):
            self._image[pid] = provider
            registered = True
        if not registered:
            raise TypeError(f"{provider!r} implements neither text nor image generation")

    def text_provider(self, provider_id: str) -> TextProvider:
        provider = self._text.get(provider_id)
        if provider is None:
            raise ValidationError(
                f"Unknown text provider '{provider_id}'", field="providerId"
            )
        return provider

    def image_provider(self, provider_id: str) -> ImageProvider:
        provider = self._image.get(provider_id)
        if provider is None:
            raise ValidationError(
                f"Unknown image provider '{provider_id}'", field="providerId"
            )
        return provider

    def text_provider_ids(self) -> list[str]:
        return sorted(self._text)

    def image_provider_ids(self) -> list[str]:
        return sorted(self._image)

    def describe(self) -> Dict[str, Any]:
        described: Dict[str, Any] = {}
        for pid in sorted(set(self._text) | set(self._image)):
            entry: Dict[str, Any] = {"name": PROVIDER_NAMES.get(pid, pid)}
            if pid in self._text:
                entry["text"] = self._text[pid].describe_text_models()
            if pid in self._image:
                entry["image"] = self._image[pid].describe_image_models()
            described[pid] = entry
        return described


def build_default_registry(settings: GenerationSettings) -> ProviderRegistry:
    """Instantiate every bundled adapter that has credentials configured."""
    registry = ProviderRegistry()
    for provider_id in settings.providers:
        factory = PROVIDER_FACTORIES.get(provider_id)
        if factory is not None:
            registry.register(factory(settings.credentials_for(provider_id)), provider_id)
    return registry
