"""Generation backend construction, throttling and cost estimation."""

from __future__ import annotations

import logging
import os

from genai_prices import Usage as GPUsage
from genai_prices import calc_price

from draftsmith.errors import AuthFailure
from draftsmith.llm.base_client import GenerationBackend
from draftsmith.llm.rate_limiter import RateLimiter
from draftsmith.models import BackendKind, GenerationConfig

_log = logging.getLogger(__name__)

# Maps pydantic-ai model-string prefix -> genai-prices provider_id.
_PROVIDER_ID_MAP: dict[str, str] = {
    "google-gla:":    "google",
    "google-vertex:": "google",
    "anthropic:":     "anthropic",
    "openai:":        "openai",
    "groq:":          "groq",
    "mistral:":       "mistral",
    "cohere:":        "cohere",
}

# Map model string prefixes to the env var that must be set for that provider.
PREFIX_TO_ENV: dict[str, str] = {
    "google-gla:": "GEMINI_API_KEY",
    "google-vertex:": "GEMINI_API_KEY",
    "anthropic:": "ANTHROPIC_API_KEY",
    "openai:": "OPENAI_API_KEY",
    "groq:": "GROQ_API_KEY",
    "mistral:": "MISTRAL_API_KEY",
    "cohere:": "CO_API_KEY",
}


def parse_model_ref(model: str) -> tuple[str, str | None]:
    """Split 'openai:gpt-4o-mini' -> ('gpt-4o-mini', 'openai').

    Bare model strings are assumed to be OpenAI models, matching the default
    backend.
    """
    for prefix, provider_id in _PROVIDER_ID_MAP.items():
        if model.startswith(prefix):
            return model[len(prefix):], provider_id
    return model, "openai"


def required_env_key(config: GenerationConfig) -> str:
    """Return the API key env var the configured backend/model needs."""
    if config.backend == BackendKind.OPENAI:
        return "OPENAI_API_KEY"
    for prefix, env_key in PREFIX_TO_ENV.items():
        if config.model.startswith(prefix):
            return env_key
    return "OPENAI_API_KEY"


def estimate_cost_usd(model: str, tokens_in: int, tokens_out: int) -> float:
    """Return cost (USD) using genai-prices for any supported model.

    Falls back to 0.0 for unknown models.
    """
    model_ref, provider_id = parse_model_ref(model)
    try:
        price = calc_price(
            GPUsage(input_tokens=tokens_in, output_tokens=tokens_out),
            model_ref,
            provider_id=provider_id,
        )
        return float(price.total_price)
    except Exception as exc:
        _log.debug("genai-prices: unknown model %r (%s) - cost set to 0.0", model, exc)
        return 0.0


def build_rate_limiter(config: GenerationConfig) -> RateLimiter | None:
    if config.requests_per_minute is None:
        return None

    def _on_waiting(slots_used: int, limit: int) -> None:
        _log.info("Generation throttle full (%d/%d per minute); waiting for a slot", slots_used, limit)

    return RateLimiter(config.requests_per_minute, on_waiting=_on_waiting)


def build_backend(config: GenerationConfig) -> GenerationBackend:
    """Construct the process-wide generation backend.

    The API key is validated here, once, instead of on every call.
    """
    env_key = required_env_key(config)
    api_key = (os.getenv(env_key) or "").strip()
    if not api_key:
        raise AuthFailure(f"{env_key} not set; cannot construct the generation backend.")

    if config.backend == BackendKind.OPENAI:
        from draftsmith.llm.openai_client import OpenAIChatClient

        return OpenAIChatClient(api_key=api_key, base_url=config.base_url)

    from draftsmith.llm.pydantic_client import PydanticAIClient

    return PydanticAIClient()
