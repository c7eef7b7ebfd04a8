"""Provider contract shared by every transport, plus the transport factory."""

from __future__ import annotations

import json
from typing import Any, Protocol

from config import Settings
from models import GenerationRequest, ProviderResponse

JSON_ONLY_INSTRUCTIONS = """Respond ONLY with valid JSON following the schema below. No prose, no markdown.

Required JSON schema:
{schema}"""


class Provider(Protocol):
    async def generate(self, request: GenerationRequest) -> ProviderResponse: ...


def schema_instructions(expected_shape: dict[str, Any] | None) -> str | None:
    """System-prompt text that pins the reply to the declared shape."""
    if expected_shape is None:
        return None
    return JSON_ONLY_INSTRUCTIONS.format(schema=json.dumps(expected_shape, indent=2))


def build_provider(settings: Settings) -> Provider:
    """Construct the transport selected by ``settings.provider``."""
    # Lazy imports: only the selected vendor SDK needs to be importable.
    if settings.provider == "gemini":
        from gemini_client import GeminiProvider  # noqa: PLC0415

        return GeminiProvider(api_key=settings.api_key, model=settings.model)
    if settings.provider == "openai":
        from llm_client import OpenAIProvider  # noqa: PLC0415

        return OpenAIProvider(
            api_key=settings.api_key, model=settings.model, timeout=settings.timeout_seconds
        )
    if settings.provider == "anthropic":
        from anthropic_client import AnthropicProvider  # noqa: PLC0415

        return AnthropicProvider(
            api_key=settings.api_key, model=settings.model, timeout=settings.timeout_seconds
        )
    if settings.provider == "http":
        from http_client import HttpProvider  # noqa: PLC0415

        return HttpProvider(
            endpoint_url=settings.endpoint_url or "",
            api_key=settings.api_key or None,
            timeout=settings.timeout_seconds,
        )
    raise ValueError(f"Unsupported provider: {settings.provider}")
