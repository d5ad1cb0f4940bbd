# Copyright (C) 2026 StableLlama
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Domain exception hierarchy for the service layer.

Purpose: Provide HTTP-agnostic domain exceptions that carry enough context for
the API layer (or a global exception handler) to translate them into proper
HTTP responses. Generation code raises these instead of ``HTTPException`` so
that the prompt, provider and parsing pipeline stays decoupled from FastAPI.

Taxonomy used by the generation pipeline:

- ``ValidationError``: malformed or incomplete generation request. Never
  reaches a provider and is always caller-fixable.
- ``ProviderError``: network, auth, quota or provider-side failure.
- ``ParseError``: the provider answered, but no decodable JSON payload could
  be located. ``SchemaParseError`` narrows this to valid JSON that does not
  match the phase schema.
- ``GenerationError``: umbrella wrapping any of the above with phase context.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base domain exception that carries an HTTP-equivalent status code.

    All service-layer error conditions should be expressed as subclasses
    of this class.  The global exception handler registered in ``main.py``
    translates these into JSON error responses automatically.
    """

    default_status_code: int = 500

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )

    def to_payload(self) -> dict:
        return {"ok": False, "detail": self.detail}


class BadRequestError(ServiceError):
    """Raised when the caller provides invalid or missing input (HTTP 400)."""

    default_status_code = 400


class ConfigurationError(ServiceError):
    """Raised when required configuration is missing or invalid (HTTP 400)."""

    default_status_code = 400


class UpstreamError(ServiceError):
    """Raised when a call to an external service / upstream API fails (HTTP 502)."""

    default_status_code = 502


class ValidationError(BadRequestError):
    """Raised when a generation request is malformed or incomplete."""

    def __init__(self, detail: str, field: str | None = None):
        super().__init__(detail)
        self.field = field

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.field:
            payload["field"] = self.field
        return payload


class ProviderError(UpstreamError):
    """Raised when a text or image provider call fails.

    Carries the provider and model ids so callers can decide whether to
    resubmit. Adapters never retry on their own.
    """

    def __init__(
        self,
        provider_id: str,
        model_id: str | None,
        cause: BaseException | str,
    ):
        self.provider_id = provider_id
        self.model_id = model_id
        self.cause = cause
        super().__init__(
            f"Provider '{provider_id}' (model {model_id or 'unknown'}) failed: {cause}"
        )

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["provider"] = self.provider_id
        payload["model"] = self.model_id
        return payload


class ParseError(UpstreamError):
    """Raised when model output holds no well-formed JSON payload for a phase."""

    EXCERPT_LIMIT = 200

    def __init__(self, phase: str, raw_text: str, reason: str = ""):
        self.phase = phase
        self.raw_text_excerpt = (raw_text or "")[: self.EXCERPT_LIMIT]
        self.reason = reason or "No valid JSON found in response"
        super().__init__(f"Invalid {phase} response format: {self.reason}")

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["excerpt"] = self.raw_text_excerpt
        return payload


class SchemaParseError(ParseError):
    """Raised when decoded JSON does not satisfy the phase schema."""

    def __init__(self, phase: str, raw_text: str, field_path: str, message: str):
        self.field_path = field_path
        super().__init__(phase, raw_text, reason=f"{field_path or '<root>'}: {message}")

    def to_payload(self) -> dict:
        payload = super().to_payload()
        payload["field"] = self.field_path
        return payload


class GenerationError(ServiceError):
    """Wraps a validation, provider or parse failure with its phase.

    The HTTP-equivalent status is inherited from the wrapped cause.
    ``generation_time_ms`` is the wall time spent before the failure.
    """

    def __init__(
        self,
        phase: str,
        cause: BaseException,
        generation_time_ms: int | None = None,
    ):
        self.phase = phase
        self.cause = cause
        self.generation_time_ms = generation_time_ms
        status = getattr(cause, "status_code", None)
        detail = getattr(cause, "detail", None) or str(cause)
        super().__init__(
            f"Failed to generate {phase}: {detail}",
            status_code=status if isinstance(status, int) else 500,
        )

    def to_payload(self) -> dict:
        if isinstance(self.cause, ServiceError):
            payload = self.cause.to_payload()
        else:
            payload = {"ok": False}
        payload["detail"] = self.detail
        payload["phase"] = self.phase
        if self.generation_time_ms is not None:
            payload["generationTimeMs"] = self.generation_time_ms
        return payload
