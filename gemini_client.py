"""Google Gemini transport built on the google-genai SDK."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from models import GenerationRequest, ProviderResponse

LOGGER = logging.getLogger(__name__)


class GeminiProvider:
    def __init__(self, api_key: str, model: str, client: genai.Client | None = None) -> None:
        self.model = model
        self._client = client or genai.Client(api_key=api_key)

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        model = request.model or self.model
        config = build_config(request)
        LOGGER.debug("Calling Gemini model=%s search=%s", model, request.use_search)
        response = await self._client.aio.models.generate_content(
            model=model,
            contents=request.prompt,
            config=config,
        )
        return to_provider_response(response)


def build_config(request: GenerationRequest) -> types.GenerateContentConfig:
    kwargs: dict[str, Any] = {}
    if request.temperature is not None:
        kwargs["temperature"] = request.temperature
    if request.use_search:
        # Grounded search cannot be combined with schema-constrained output;
        # the shape is spelled out in the prompt instead.
        kwargs["tools"] = [types.Tool(google_search=types.GoogleSearch())]
    elif request.expected_shape is not None:
        kwargs["response_mime_type"] = "application/json"
        kwargs["response_schema"] = request.expected_shape
    return types.GenerateContentConfig(**kwargs)


def to_provider_response(response: Any) -> ProviderResponse:
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = _enum_name(getattr(feedback, "block_reason", None))
    if block_reason:
        ratings = getattr(feedback, "safety_ratings", None) or []
        categories = tuple(
            _enum_name(r.category) or "UNKNOWN" for r in ratings if getattr(r, "blocked", False)
        )
        return ProviderResponse(text=None, block_reason=block_reason, blocked_categories=categories)

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return ProviderResponse(text=None)

    candidate = candidates[0]
    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    text = "".join(part.text for part in parts if getattr(part, "text", None))
    return ProviderResponse(
        text=text or None,
        finish_reason=_enum_name(getattr(candidate, "finish_reason", None)),
    )


def _enum_name(value: Any) -> str | None:
    if value is None:
        return None
    name = str(getattr(value, "value", value) or "")
    if not name or name.endswith("_UNSPECIFIED"):
        return None
    return name
