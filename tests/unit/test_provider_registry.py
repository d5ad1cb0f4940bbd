# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

from unittest import TestCase

from generation_fakes import FakeImageProvider, FakeTextProvider
from novelsmith.core.config import DEFAULT_MACHINE_CONFIG, GenerationSettings
from novelsmith.services.exceptions import ValidationError
from novelsmith.services.providers.openai_provider import OpenAIProvider
from novelsmith.services.providers.provider_registry import (
    ProviderRegistry,
    build_default_registry,
)
from novelsmith.services.providers.replicate_provider import ReplicateProvider


class ProviderRegistryTest(TestCase):
    def test_lookup_by_capability(self):
        registry = ProviderRegistry()
        registry.register(FakeTextProvider(provider_id="words"))
        registry.register(FakeImageProvider(provider_id="pictures"))

        self.assertEqual(registry.text_provider_ids(), ["words"])
        self.assertEqual(registry.image_provider_ids(), ["pictures"])
        with self.assertRaises(ValidationError) as ctx:
            registry.text_provider("pictures")
        self.assertEqual(ctx.exception.field, "providerId")
        with self.assertRaises(ValidationError):
            registry.image_provider("words")

    def test_register_rejects_non_providers(self):
        registry = ProviderRegistry()
        with self.assertRaises(TypeError):
            registry.register(object(), "thing")
        with self.assertRaises(ValueError):
            registry.register(FakeTextProvider(provider_id=""))

    def test_explicit_id_overrides_adapter_id(self):
        registry = ProviderRegistry()
        registry.register(FakeTextProvider(), "alias")
        self.assertIsInstance(registry.text_provider("alias"), FakeTextProvider)

    def test_default_registry_builds_bundled_adapters(self):
        settings = GenerationSettings.from_machine_config(DEFAULT_MACHINE_CONFIG)
        registry = build_default_registry(settings)

        self.assertIsInstance(registry.text_provider("openai"), OpenAIProvider)
        self.assertIsInstance(registry.image_provider("replicate"), ReplicateProvider)

        described = registry.describe()
        self.assertEqual(described["openai"]["name"], "OpenAI")
        self.assertIn("dall-e-3", described["openai"]["image"])
        self.assertIn("llama3_70b", described["replicate"]["text"])
        self.assertIn("flux_schnell", described["replicate"]["image"])

    def test_unconfigured_provider_is_skipped(self):
        settings = GenerationSettings(
            providers={"replicate": {"base_url": "https://api.replicate.com/v1"}}
        )
        registry = build_default_registry(settings)
        self.assertEqual(registry.text_provider_ids(), ["replicate"])

    def test_adapters_receive_configured_credentials(self):
        settings = GenerationSettings(
            providers={
                "openai": {"base_url": "https://proxy.example/v1", "api_key": "sk-x"},
                "anthropic": {"base_url": "https://api.anthropic.com"},
            }
        )
        registry = build_default_registry(settings)

        self.assertEqual(registry.text_provider_ids(), ["openai"])
        self.assertIs(
            registry.text_provider("openai").credentials,
            settings.credentials_for("openai"),
        )
