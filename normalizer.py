"""Classify raw provider responses and hand successful text to the extractor."""

from __future__ import annotations

import logging
from typing import Any

from errors import AbnormalTermination, BlockedContent, EmptyResponse
from json_extract import parse_json
from models import ProviderResponse

FINISH_COMPLETED = "STOP"

LOGGER = logging.getLogger(__name__)


def normalize_text(response: ProviderResponse) -> str:
    """Return the response text, or raise the classified failure.

    A safety block is checked first so it is never reported as an empty or
    malformed response; the user remediation differs (rephrase vs. retry).
    """
    if response.block_reason:
        LOGGER.warning(
            "Provider blocked request: reason=%s categories=%s",
            response.block_reason,
            response.blocked_categories,
        )
        raise BlockedContent(response.block_reason, response.blocked_categories)

    if response.finish_reason and response.finish_reason != FINISH_COMPLETED:
        LOGGER.warning("Provider stopped early: finish_reason=%s", response.finish_reason)
        raise AbnormalTermination(response.finish_reason)

    text = (response.text or "").strip()
    if not text:
        raise EmptyResponse()
    return text


def normalize_response(response: ProviderResponse) -> Any:
    """Return the parsed JSON payload of a provider response."""
    return parse_json(normalize_text(response))
