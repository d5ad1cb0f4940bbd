# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Provider adapter contracts.

A provider wraps one remote backend and translates the canonical invocation
into that backend's call shape. Text providers implement ``invoke``; image
providers implement ``invoke_image``. Adapters never retry: any network,
timeout, status or decoding failure leaves as a ``ProviderError``.
"""

from __future__ import annotations

import abc
from typing import Any, Dict

import httpx
from pydantic import BaseModel, Field

from novelsmith.core.config import ProviderCredentials
from novelsmith.services.exceptions import ProviderError
from novelsmith.services.llm.llm_logging import (
    add_llm_log,
    create_log_entry,
    finish_log_entry,
)
from novelsmith.services.llm.llm_request_helpers import (
    build_headers,
    build_timeout,
    join_url,
    validate_base_url,
)


class TextInvocation(BaseModel):
    prompt: str
    model: str
    max_tokens: int
    temperature: float
    system_prompt: str = ""


class TextOutput(BaseModel):
    text: str
    tokens_used: int
    model: str


class ImageInvocation(BaseModel):
    prompt: str
    model: str
    width: int | None = None
    height: int | None = None
    count: int = 1
    guidance: float = 7.5
    steps: int = 20
    style: str | None = None
    quality: str | None = None
    size: str | None = None


class ImageOutput(BaseModel):
    urls: list[str] = Field(default_factory=list)
    revised_prompt: str | None = None
    model: str


class TextProvider(abc.ABC):
    provider_id: str = ""

    @abc.abstractmethod
    async def invoke(self, request: TextInvocation) -> TextOutput:
        """Run one text completion."""

    def describe_text_models(self) -> Dict[str, Any]:
        return {}


class ImageProvider(abc.ABC):
    provider_id: str = ""

    @abc.abstractmethod
    async def invoke_image(self, request: ImageInvocation) -> ImageOutput:
        """Run one image generation."""

    def describe_image_models(self) -> Dict[str, Any]:
        return {}


class HttpProvider:
    """Shared JSON-over-HTTP plumbing for the bundled adapters."""

    provider_id: str = ""
    auth_scheme: str = "Bearer"

    def __init__(self, credentials: ProviderCredentials):
        self.credentials = credentials

    def _extra_headers(self) -> Dict[str, str]:
        return {}

    def _headers(self) -> Dict[str, str]:
        return build_headers(
            self.credentials.api_key,
            scheme=self.auth_scheme,
            extra=self._extra_headers(),
        )

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return join_url(self.credentials.base_url, path)

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        model_id: str | None,
        timeout_s: float,
        body: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        url = self._url(path)
        try:
            validate_base_url(url)
        except ValueError as exc:
            raise ProviderError(self.provider_id, model_id, exc) from exc

        headers = headers or self._headers()
        log_entry = create_log_entry(
            url, method, headers, body, provider_id=self.provider_id
        )
        add_llm_log(log_entry)

        async with httpx.AsyncClient(timeout=build_timeout(timeout_s)) as client:
            try:
                if method == "GET":
                    r = await client.get(url, headers=headers)
                else:
                    r = await client.post(url, headers=headers, json=body)
                finish_log_entry(log_entry, status_code=r.status_code)
                r.raise_for_status()
                resp_json = r.json()
            except (httpx.HTTPError, ValueError) as exc:
                finish_log_entry(log_entry, error=str(exc))
                raise ProviderError(self.provider_id, model_id, exc) from exc

        if not isinstance(resp_json, dict):
            finish_log_entry(log_entry, error="response body is not a JSON object")
            raise ProviderError(
                self.provider_id, model_id, "response body is not a JSON object"
            )
        finish_log_entry(log_entry, body=resp_json)
        return resp_json

    async def _post_json(
        self,
        path: str,
        body: Dict[str, Any],
        *,
        model_id: str | None,
        timeout_s: float,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        return await self._request_json(
            "POST",
            path,
            model_id=model_id,
            timeout_s=timeout_s,
            body=body,
            headers=headers,
        )

    async def _get_json(
        self, path: str, *, model_id: str | None, timeout_s: float
    ) -> Dict[str, Any]:
        return await self._request_json(
            "GET", path, model_id=model_id, timeout_s=timeout_s
        )
