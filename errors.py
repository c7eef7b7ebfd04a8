"""Error taxonomy surfaced to callers of the research assistant."""

from __future__ import annotations


class ResearchAssistantError(RuntimeError):
    """Base class; every subclass carries a message fit for direct display."""


class ConfigurationError(ResearchAssistantError):
    """Fatal startup problem (missing credential, unknown provider, ...)."""


class ValidationError(ResearchAssistantError):
    """A local precondition failed before any provider call was made."""


class BlockedContent(ResearchAssistantError):
    def __init__(self, reason: str, categories: tuple[str, ...] = ()) -> None:
        self.reason = reason
        self.categories = categories
        blocked = ", ".join(categories) if categories else "N/A"
        super().__init__(
            "The request was blocked for safety reasons.\n"
            f"Reason: {reason}.\n"
            f"Blocked Categories: {blocked}.\n"
            "Please try rephrasing your query."
        )


class AbnormalTermination(ResearchAssistantError):
    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(
            f"The AI model stopped generating for an unexpected reason: {reason}. Please try again."
        )


class EmptyResponse(ResearchAssistantError):
    def __init__(self, message: str = "The AI model returned an empty response. Please try a different query.") -> None:
        super().__init__(message)


class MalformedJSON(ResearchAssistantError):
    """The provider text could not be turned into the declared JSON shape.

    ``raw_text`` keeps the offending provider output for diagnostics.
    """

    def __init__(self, raw_text: str, message: str | None = None) -> None:
        self.raw_text = raw_text
        super().__init__(message or "The AI model returned a malformed response. Could not parse JSON.")


class DanglingLinkError(MalformedJSON):
    """Knowledge-graph link pointing at a node id that was never declared."""

    def __init__(self, raw_text: str, dangling: list[tuple[str, str]]) -> None:
        self.dangling = dangling
        pairs = ", ".join(f"{source}->{target}" for source, target in dangling)
        super().__init__(
            raw_text,
            f"The AI model returned a knowledge graph with links to unknown nodes: {pairs}.",
        )


class ProviderUnavailable(ResearchAssistantError):
    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(
            "The AI model is temporarily unavailable due to high demand. "
            "Please try again in a few moments."
        )
