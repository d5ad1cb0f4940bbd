# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Replicate adapter for hosted Llama/Mixtral text models and FLUX/SDXL images.

Predictions are created with ``Prefer: wait`` so short generations resolve in
one round trip; longer ones are polled through the prediction ``get`` URL until
they settle or the configured timeout elapses.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict

from novelsmith.services.exceptions import ProviderError, ValidationError
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

REPLICATE_MODELS: Dict[str, str] = {
    "llama3_405b": "meta/meta-llama-3.1-405b-instruct",
    "llama3_70b": "meta/meta-llama-3.1-70b-instruct",
    "llama3_8b": "meta/meta-llama-3.1-8b-instruct",
    "mixtral_8x7b": "mistralai/mixtral-8x7b-instruct-v0.1",
    "flux_pro": "black-forest-labs/flux-pro",
    "flux_dev": "black-forest-labs/flux-dev",
    "flux_schnell": "black-forest-labs/flux-schnell",
    "sdxl": "stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
}

REPLICATE_TEXT_CATALOG: Dict[str, Dict[str, Any]] = {
    "llama3_405b": {
        "name": "Llama 3.1 405B",
        "description": "Most powerful model for complex creative writing",
        "costTier": "premium",
        "maxTokens": 4096,
    },
    "llama3_70b": {
        "name": "Llama 3.1 70B",
        "description": "Great balance of quality and speed for novel writing",
        "costTier": "standard",
        "maxTokens": 4096,
    },
    "llama3_8b": {
        "name": "Llama 3.1 8B",
        "description": "Fast and efficient for quick content generation",
        "costTier": "budget",
        "maxTokens": 2048,
    },
    "mixtral_8x7b": {
        "name": "Mixtral 8x7B",
        "description": "Excellent for dialogue and character development",
        "costTier": "standard",
        "maxTokens": 4096,
    },
}

REPLICATE_IMAGE_CATALOG: Dict[str, Dict[str, Any]] = {
    "flux_pro": {
        "name": "FLUX.1 Pro",
        "description": "Highest quality image generation",
        "costTier": "premium",
    },
    "flux_dev": {
        "name": "FLUX.1 Dev",
        "description": "High quality, good balance",
        "costTier": "standard",
    },
    "flux_schnell": {
        "name": "FLUX.1 Schnell",
        "description": "Fast generation, good quality",
        "costTier": "budget",
    },
}

COVER_PROMPT_ENHANCEMENTS = (
    "professional book cover design",
    "high quality",
    "detailed artwork",
    "commercial book cover style",
    "typography space at top and bottom",
)

DEFAULT_COVER_WIDTH = 512
DEFAULT_COVER_HEIGHT = 768
PENDING_STATUSES = ("starting", "processing")
POLL_INTERVAL_S = 1.0


def enhance_cover_prompt(prompt: str) -> str:
    return f"{prompt}, {', '.join(COVER_PROMPT_ENHANCEMENTS)}"


def resolve_model_ref(model: str) -> str:
    """Map a short alias to a Replicate model reference."""
    if model in REPLICATE_MODELS:
        return REPLICATE_MODELS[model]
    if "/" in model:
        return model
    raise ValidationError(f"Model {model} not found", field="modelId")


class ReplicateProvider(HttpProvider, TextProvider, ImageProvider):
    provider_id = "replicate"

    def _extra_headers(self) -> Dict[str, str]:
        return {"Prefer": "wait"}

    async def _run_prediction(
        self, model: str, model_input: Dict[str, Any], timeout_s: float
    ) -> Dict[str, Any]:
        ref = resolve_model_ref(model)
        if ":" in ref:
            version = ref.split(":", 1)[1]
            path, body = "predictions", {"version": version, "input": model_input}
        else:
            path, body = f"models/{ref}/predictions", {"input": model_input}

        deadline = time.monotonic() + timeout_s
        prediction = await self._post_json(
            path, body, model_id=model, timeout_s=timeout_s
        )
        while prediction.get("status") in PENDING_STATUSES:
            urls = prediction.get("urls")
            poll_url = urls.get("get") if isinstance(urls, dict) else None
            if not isinstance(poll_url, str) or not poll_url or time.monotonic() >= deadline:
                raise ProviderError(
                    self.provider_id, model, "prediction did not finish before timeout"
                )
            await asyncio.sleep(POLL_INTERVAL_S)
            prediction = await self._get_json(
                poll_url, model_id=model, timeout_s=timeout_s
            )

        if prediction.get("status") != "succeeded":
            cause = str(prediction.get("error") or f"status {prediction.get('status')}")
            raise ProviderError(self.provider_id, model, cause)
        return prediction

    async def invoke(self, request: TextInvocation) -> TextOutput:
        prompt = request.prompt
        if request.system_prompt:
            prompt = f"{request.system_prompt}\n\n{prompt}"
        model_input = {
            "prompt": prompt,
            "max_new_tokens": request.max_tokens,
            "temperature": request.temperature,
            "top_p": 0.9,
            "repetition_penalty": 1.1,
        }
        prediction = await self._run_prediction(
            request.model, model_input, self.credentials.timeout_s
        )

        # Language models stream output as a list of string fragments.
        output = prediction.get("output")
        if output is None:
            text = ""
        elif isinstance(output, str):
            text = output
        elif isinstance(output, list) and all(isinstance(part, str) for part in output):
            text = "".join(output)
        else:
            raise ProviderError(
                self.provider_id, request.model, "prediction output is not text"
            )

        metrics = prediction.get("metrics")
        if not isinstance(metrics, dict):
            metrics = {}
        input_count = metrics.get("input_token_count")
        output_count = metrics.get("output_token_count")
        if isinstance(input_count, int) and isinstance(output_count, int):
            tokens_used = input_count + output_count
        else:
            tokens_used = estimate_tokens(text)

        return TextOutput(text=text, tokens_used=tokens_used, model=request.model)

    async def invoke_image(self, request: ImageInvocation) -> ImageOutput:
        enhanced = enhance_cover_prompt(request.prompt)
        model_input = {
            "prompt": enhanced,
            "width": request.width or DEFAULT_COVER_WIDTH,
            "height": request.height or DEFAULT_COVER_HEIGHT,
            "num_outputs": request.count,
            "guidance_scale": request.guidance,
            "num_inference_steps": request.steps,
        }
        prediction = await self._run_prediction(
            request.model, model_input, self.credentials.image_timeout_s
        )

        output = prediction.get("output")
        urls = output if isinstance(output, list) else [output]
        urls = [u for u in urls if isinstance(u, str) and u]
        if not urls:
            raise ProviderError(self.provider_id, request.model, "prediction has no images")
        return ImageOutput(urls=urls, revised_prompt=enhanced, model=request.model)

    def describe_text_models(self) -> Dict[str, Any]:
        return dict(REPLICATE_TEXT_CATALOG)

    def describe_image_models(self) -> Dict[str, Any]:
        return dict(REPLICATE_IMAGE_CATALOG)
