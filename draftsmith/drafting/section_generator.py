"""One generation call per section, and the concurrent four-section fan-out."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional, Sequence

from draftsmith.drafting.prompt_compiler import CompiledPrompt
from draftsmith.errors import EmptyResult, GenerationServiceError
from draftsmith.llm.base_client import GenerationBackend
from draftsmith.llm.provider import estimate_cost_usd
from draftsmith.llm.rate_limiter import RateLimiter
from draftsmith.models import GenerationConfig, GenerationOperation, SectionGeneration, SectionName
from draftsmith.utils.logging_config import get_logger
from draftsmith.utils.structured_log import log_generation_call

logger = get_logger(__name__)


class SectionGenerator:
    """Runs compiled prompts against the process-wide generation backend.

    No retry happens here: a failed call fails its section. Rate limits
    surface with the service's retry hint for the caller to act on.
    """

    def __init__(
        self,
        backend: GenerationBackend,
        config: GenerationConfig,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.backend = backend
        self.config = config
        self.rate_limiter = rate_limiter

    async def generate(
        self,
        prompt: CompiledPrompt,
        operation: GenerationOperation = GenerationOperation.GENERATE,
    ) -> SectionGeneration:
        section = prompt.section.value
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        t0 = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self.backend.generate(
                    prompt.instruction,
                    prompt.user_context,
                    temperature=self.config.temperature,
                    max_output_tokens=self.config.max_output_tokens,
                    model=self.config.model,
                ),
                timeout=self.config.call_timeout_seconds,
            )
        except asyncio.TimeoutError:
            latency_ms = int((time.monotonic() - t0) * 1000)
            error = EmptyResult(
                f"Generation service did not respond within {self.config.call_timeout_seconds:g} seconds."
            )
            logger.warning("Section %s timed out after %d ms", section, latency_ms)
            log_generation_call(
                section, "timeout", operation.value,
                model=self.config.model, latency_ms=latency_ms, error=error.message,
            )
            raise error
        except GenerationServiceError as exc:
            latency_ms = int((time.monotonic() - t0) * 1000)
            logger.warning("Section %s generation failed (%s): %s", section, exc.code, exc.message)
            log_generation_call(
                section, "error", operation.value,
                model=self.config.model, latency_ms=latency_ms, error=exc.message,
            )
            raise

        latency_ms = int((time.monotonic() - t0) * 1000)
        if not result.content.strip():
            log_generation_call(
                section, "empty", operation.value, model=self.config.model, latency_ms=latency_ms,
            )
            raise EmptyResult()

        model = result.model or self.config.model
        cost = estimate_cost_usd(model, result.tokens_in, result.tokens_out)
        log_generation_call(
            section, "success", operation.value,
            model=model,
            latency_ms=latency_ms,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
            cost_usd=cost,
            raw_response=result.content,
        )
        logger.debug("Section %s generated: %d tokens in %d ms", section, result.tokens_used, latency_ms)
        return SectionGeneration(
            section=prompt.section,
            content=result.content,
            tokens_used=result.tokens_used,
            model=model,
            latency_ms=latency_ms,
            cost_usd=cost,
            tokens_in=result.tokens_in,
            tokens_out=result.tokens_out,
        )

    async def generate_all(self, prompts: Sequence[CompiledPrompt]) -> Dict[SectionName, SectionGeneration]:
        """Run every prompt concurrently; all succeed or the first failure in order is raised."""
        outcomes = await asyncio.gather(
            *(self.generate(prompt) for prompt in prompts),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return {generation.section: generation for generation in outcomes}
