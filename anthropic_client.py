"""Thin transport around the Anthropic Messages API."""

from __future__ import annotations

import logging
from typing import Any

import anthropic

from models import GenerationRequest, ProviderResponse
from provider import schema_instructions

DEFAULT_MAX_TOKENS = 8192

LOGGER = logging.getLogger(__name__)

_STOP_REASONS: dict[str, str] = {
    "end_turn": "STOP",
    "stop_sequence": "STOP",
    "max_tokens": "MAX_TOKENS",
    "tool_use": "TOOL_CALLS",
    "pause_turn": "PAUSED",
}


class AnthropicProvider:
    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: anthropic.AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        """Call Claude and translate the reply to the vendor-neutral contract.

        The declared shape is passed via the dedicated ``system=`` parameter.
        No search tool is attached, so ``use_search`` requests run ungrounded.
        """
        model = request.model or self.model
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        system = schema_instructions(request.expected_shape)
        if system:
            kwargs["system"] = system
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature

        if request.use_search:
            LOGGER.debug("Anthropic transport has no search tool; running ungrounded")
        LOGGER.debug("Calling Claude model=%s max_tokens=%s", model, self.max_tokens)
        response = await self._client.messages.create(**kwargs)
        return to_provider_response(response)


def to_provider_response(response: Any) -> ProviderResponse:
    stop_reason = getattr(response, "stop_reason", None)
    if stop_reason == "refusal":
        return ProviderResponse(text=None, block_reason="REFUSAL")

    text = "".join(
        block.text for block in response.content or [] if getattr(block, "type", None) == "text"
    )
    return ProviderResponse(
        text=text or None,
        finish_reason=_STOP_REASONS.get(stop_reason, stop_reason.upper()) if stop_reason else None,
    )
