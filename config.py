"""Environment-driven settings, loaded once at startup."""

from __future__ import annotations

import os
from dataclasses import dataclass

from errors import ConfigurationError

PROVIDERS: frozenset[str] = frozenset({"gemini", "openai", "anthropic", "http"})

_API_KEY_ENV: dict[str, str] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "http": "RESEARCH_API_KEY",
}

# (default model, fast model used for cheap requests like topic suggestions)
_DEFAULT_MODELS: dict[str, tuple[str, str]] = {
    "gemini": ("gemini-2.5-pro", "gemini-2.5-flash"),
    "openai": ("gpt-5.2", "gpt-5-mini"),
    "anthropic": ("claude-opus-4-6", "claude-haiku-4-5"),
    "http": ("", ""),
}


@dataclass(frozen=True, slots=True)
class Settings:
    provider: str
    api_key: str
    model: str
    fast_model: str
    endpoint_url: str | None = None
    max_retries: int = 3
    initial_delay: float = 1.0
    timeout_seconds: float = 60.0


def load_settings() -> Settings:
    """Read settings from the environment; raise ConfigurationError if unusable.

    The provider credential is required here so a missing key stops the
    process at startup rather than failing each request.
    """
    provider = os.getenv("RESEARCH_PROVIDER", "gemini").strip().lower()
    if provider not in PROVIDERS:
        raise ConfigurationError(
            f"Unknown RESEARCH_PROVIDER {provider!r}; expected one of {sorted(PROVIDERS)}"
        )

    key_env = _API_KEY_ENV[provider]
    api_key = os.getenv(key_env, "")
    endpoint_url = os.getenv("RESEARCH_ENDPOINT_URL") or None
    if provider == "http":
        if not endpoint_url:
            raise ConfigurationError("RESEARCH_ENDPOINT_URL environment variable is required")
    elif not api_key:
        raise ConfigurationError(f"{key_env} environment variable is required")

    default_model, default_fast = _DEFAULT_MODELS[provider]
    model = os.getenv("RESEARCH_MODEL", default_model)

    max_retries = _env_number("RESEARCH_MAX_RETRIES", "3", int)
    if max_retries < 1:
        raise ConfigurationError("RESEARCH_MAX_RETRIES must be at least 1")

    return Settings(
        provider=provider,
        api_key=api_key,
        model=model,
        fast_model=os.getenv("RESEARCH_FAST_MODEL", default_fast or model),
        endpoint_url=endpoint_url,
        max_retries=max_retries,
        initial_delay=_env_number("RESEARCH_INITIAL_DELAY", "1.0", float),
        timeout_seconds=_env_number("RESEARCH_TIMEOUT_SECONDS", "60", float),
    )


def _env_number(name: str, default: str, cast: type) -> int | float:
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value
