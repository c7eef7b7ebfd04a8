"""HTTP transport to an internal endpoint that speaks the provider contract."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from models import GenerationRequest, ProviderResponse

REQUEST_TIMEOUT_SECONDS = 60

LOGGER = logging.getLogger(__name__)


class HttpProvider:
    """POSTs ``{prompt, expectedShape, options}`` and reads back the same-shaped reply.

    Reply body: ``{"text", "finishReason", "blockReason", "blockedCategories"}``.
    HTTP errors propagate with their status line, so a 503 is classified as
    transient by the retry wrapper.
    """

    def __init__(
        self,
        endpoint_url: str,
        api_key: str | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self.timeout = timeout
        self._api_key = api_key
        self._session = session or requests.Session()

    async def generate(self, request: GenerationRequest) -> ProviderResponse:
        return await asyncio.to_thread(self._post, request)

    def _post(self, request: GenerationRequest) -> ProviderResponse:
        payload = {
            "prompt": request.prompt,
            "expectedShape": request.expected_shape,
            "options": {
                "temperature": request.temperature,
                "tools": ["search"] if request.use_search else [],
                "model": request.model,
            },
        }
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        LOGGER.debug("POST %s", self.endpoint_url)
        response = self._session.post(
            self.endpoint_url,
            headers=headers,
            json=payload,
            timeout=self.timeout,
        )
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise RuntimeError(f"Unexpected provider endpoint response shape: {body}")
        return parse_reply(body)


def parse_reply(body: dict[str, Any]) -> ProviderResponse:
    text = body.get("text")
    categories = body.get("blockedCategories") or []
    return ProviderResponse(
        text=text if isinstance(text, str) else None,
        finish_reason=body.get("finishReason") or None,
        block_reason=body.get("blockReason") or None,
        blocked_categories=tuple(str(c) for c in categories if c),
    )
