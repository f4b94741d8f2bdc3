"""PydanticAI-backed client implementing the GenerationBackend protocol.

Supports every provider PydanticAI supports; the provider is inferred from the
model string prefix in config/settings.yaml (e.g. "openai:", "anthropic:",
"google-gla:").

Transient gateway errors (502/503/504) are retried inside the client. Rate
limits are never retried here: they surface as RateLimited so the caller
decides, since the four sections of a draft are generated concurrently and
blind retries compound rate pressure.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

from pydantic_ai import Agent
from pydantic_ai.exceptions import ModelHTTPError
from pydantic_ai.settings import ModelSettings

from draftsmith.errors import (
    AuthFailure,
    ContextTooLarge,
    EmptyResult,
    GenerationServiceError,
    RateLimited,
)
from draftsmith.models import GenerationResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Retry configuration
# ---------------------------------------------------------------------------
_MAX_RETRIES = 3
_BASE_DELAY = 2.0   # seconds
_MAX_DELAY = 30.0   # seconds cap

_RETRYABLE_STATUS = {502, 503, 504}
_CONTEXT_MARKERS = ("context_length_exceeded", "maximum context length", "prompt is too long", "too many tokens")


def classify_model_error(exc: BaseException) -> GenerationServiceError:
    """Translate a PydanticAI/provider exception into the pipeline taxonomy."""
    if isinstance(exc, ModelHTTPError):
        body = str(exc.body or "").lower()
        if exc.status_code == 429:
            return RateLimited()
        if exc.status_code in (401, 403):
            return AuthFailure()
        if exc.status_code in (400, 413) and any(m in body for m in _CONTEXT_MARKERS):
            return ContextTooLarge()
        return GenerationServiceError(
            f"Generation service error {exc.status_code} from {exc.model_name}: {str(exc.body)[:300]}"
        )
    text = str(exc).lower()
    if any(m in text for m in _CONTEXT_MARKERS):
        return ContextTooLarge()
    return GenerationServiceError(f"Generation service error: {exc}")


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ModelHTTPError) and exc.status_code in _RETRYABLE_STATUS


async def _run_with_retry(agent: Agent[Any, Any], prompt: str, *, model_settings: ModelSettings) -> Any:
    """Run *agent* with exponential-backoff retry on transient gateway errors."""
    for attempt in range(_MAX_RETRIES):
        try:
            return await agent.run(prompt, model_settings=model_settings)
        except Exception as exc:
            if not _is_retryable(exc) or attempt == _MAX_RETRIES - 1:
                raise
            delay = min(_BASE_DELAY * (2 ** attempt) + random.uniform(0, 1), _MAX_DELAY)
            logger.warning(
                "Generation transient error (attempt %d/%d), retrying in %.1fs: %s",
                attempt + 1,
                _MAX_RETRIES,
                delay,
                exc,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")  # pragma: no cover


class PydanticAIClient:
    """Provider-agnostic section generator backed by a PydanticAI Agent."""

    async def generate(
        self,
        instruction: str,
        user_context: str,
        *,
        temperature: float,
        max_output_tokens: int,
        model: str,
    ) -> GenerationResult:
        settings = ModelSettings(temperature=temperature, max_tokens=max_output_tokens)
        agent: Agent[None, str] = Agent(model, output_type=str, system_prompt=instruction)
        try:
            result = await _run_with_retry(agent, user_context, model_settings=settings)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            raise
        except GenerationServiceError:
            raise
        except Exception as exc:
            raise classify_model_error(exc) from exc

        text = str(result.output or "")
        if not text.strip():
            raise EmptyResult()
        usage = result.usage()
        tokens_in = usage.input_tokens or 0
        tokens_out = usage.output_tokens or 0
        return GenerationResult(
            content=text,
            tokens_used=tokens_in + tokens_out,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=model,
        )
