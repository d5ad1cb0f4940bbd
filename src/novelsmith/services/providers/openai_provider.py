# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""OpenAI-compatible adapter for chat completions and DALL-E image generation."""

from __future__ import annotations

from typing import Any, Dict

from novelsmith.services.exceptions import ProviderError
from novelsmith.services.llm.llm_request_helpers import estimate_tokens
from novelsmith.services.providers.provider_base import (
    HttpProvider,
    ImageInvocation,
    ImageOutput,
    ImageProvider,
    TextInvocation,
    TextOutput,
    TextProvider,
)

OPENAI_TEXT_MODELS: Dict[str, Dict[str, str]] = {
    "gpt-4": {"name": "GPT-4", "description": "Most capable model for complex tasks"},
    "gpt-4-turbo-preview": {
        "name": "GPT-4 Turbo",
        "description": "Large context window for planning and long-form drafting",
    },
    "gpt-3.5-turbo": {"name": "GPT-3.5 Turbo", "description": "Fast and efficient"},
}

OPENAI_IMAGE_MODELS: Dict[str, Dict[str, str]] = {
    "dall-e-3": {"name": "DALL-E 3", "description": "High fidelity cover artwork"},
}

DEFAULT_IMAGE_SIZE = "1024x1024"


class OpenAIProvider(HttpProvider, TextProvider, ImageProvider):
    provider_id = "openai"

    def _extra_headers(self) -> Dict[str, str]:
        if self.credentials.organization:
            return {"OpenAI-Organization": self.credentials.organization}
        return {}

    async def invoke(self, request: TextInvocation) -> TextOutput:
        messages: list[dict[str, str]] = []
        if request.system_prompt:
            messages.append({"role": "system", "content": request.system_prompt})
        messages.append({"role": "user", "content": request.prompt})

        body: Dict[str, Any] = {
            "model": request.model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        resp_json = await self._post_json(
            "chat/completions",
            body,
            model_id=request.model,
            timeout_s=self.credentials.timeout_s,
        )

        choices = resp_json.get("choices")
        if not isinstance(choices, list) or not choices:
            raise ProviderError(self.provider_id, request.model, "response has no choices")
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if not isinstance(message, dict):
            raise ProviderError(
                self.provider_id, request.model, "response choice has no message"
            )
        text = message.get("content")
        if text is None:
            text = ""
        elif not isinstance(text, str):
            raise ProviderError(
                self.provider_id, request.model, "response message content is not text"
            )

        usage = resp_json.get("usage")
        tokens_used = usage.get("total_tokens") if isinstance(usage, dict) else None
        if not isinstance(tokens_used, int) or isinstance(tokens_used, bool):
            tokens_used = estimate_tokens(text)

        model = resp_json.get("model")
        return TextOutput(
            text=text,
            tokens_used=tokens_used,
            model=model if isinstance(model, str) and model else request.model,
        )

    async def invoke_image(self, request: ImageInvocation) -> ImageOutput:
        size = request.size
        if not size and request.width and request.height:
            size = f"{request.width}x{request.height}"
        body: Dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "size": size or DEFAULT_IMAGE_SIZE,
            "quality": request.quality or "standard",
            "style": request.style or "natural",
            "n": request.count,
        }
        resp_json = await self._post_json(
            "images/generations",
            body,
            model_id=request.model,
            timeout_s=self.credentials.image_timeout_s,
        )

        data = resp_json.get("data")
        items = [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []
        urls = [item["url"] for item in items if isinstance(item.get("url"), str) and item["url"]]
        if not urls:
            raise ProviderError(self.provider_id, request.model, "response has no image urls")
        revised_prompt = items[0].get("revised_prompt")
        return ImageOutput(
            urls=urls,
            revised_prompt=revised_prompt if isinstance(revised_prompt, str) else None,
            model=request.model,
        )

    def describe_text_models(self) -> Dict[str, Any]:
        return dict(OPENAI_TEXT_MODELS)

    def describe_image_models(self) -> Dict[str, Any]:
        return dict(OPENAI_IMAGE_MODELS)
