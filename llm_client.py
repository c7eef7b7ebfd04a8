"""OpenAI chat-completions transport."""

from __future__ import annotations

import logging
from typing import Any

from openai import AsyncOpenAI

from models import GenerationRequest, ProviderResponse
from provider import schema_instructions

LOGGER = logging.getLogger(__name__)

_FINISH_REASONS: dict[str, str] = {
    "stop": "STOP",
    "length": "MAX_TOKENS",
    "tool_calls": "TOOL_CALLS",
    "function_call": "TOOL_CALLS",
}


class OpenAIProvider:
    """Maps OpenAI chat completions onto the vendor-neutral provider contract.

    Grounded web search is not available on this transport: requests with
    ``use_search`` set run ungrounded against the model's own knowledge.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        model = request.model or self.model
        messages: list[dict[str, str]] = []
        system = schema_instructions(request.expected_shape)
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": request.prompt})

        kwargs: dict[str, Any] = {"model": model, "messages": messages}
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        # json_object mode requires a root object; array-shaped replies stay free-form.
        if request.expected_shape and request.expected_shape.get("type") == "object":
            kwargs["response_format"] = {"type": "json_object"}

        if request.use_search:
            LOGGER.debug("OpenAI transport has no search tool; running ungrounded")
        LOGGER.debug("Calling OpenAI model=%s", model)
        response = await self._client.chat.completions.create(**kwargs)
        return to_provider_response(response)


def to_provider_response(response: Any) -> ProviderResponse:
    if not response.choices:
        return ProviderResponse(text=None)

    choice = response.choices[0]
    finish = choice.finish_reason
    if finish == "content_filter":
        return ProviderResponse(text=None, block_reason="CONTENT_FILTER")

    message = choice.message
    refusal = getattr(message, "refusal", None)
    if refusal:
        return ProviderResponse(text=None, block_reason="REFUSAL", blocked_categories=(refusal,))

    return ProviderResponse(
        text=message.content,
        finish_reason=_FINISH_REASONS.get(finish, finish.upper()) if finish else None,
    )
