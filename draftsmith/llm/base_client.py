"""Abstract generation backend protocol for provider-agnostic section generation."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from draftsmith.models import GenerationResult


@runtime_checkable
class GenerationBackend(Protocol):
    """Structural protocol satisfied by any client that can author one section.

    The instruction is sent as the system message and the user context
    (the case information) as the user message. Implementors must translate
    provider errors into RateLimited, ContextTooLarge, AuthFailure or
    EmptyResult and must not retry on rate limits.
    """

    async def generate(
        self,
        instruction: str,
        user_context: str,
        *,
        temperature: float,
        max_output_tokens: int,
        model: str,
    ) -> GenerationResult:
        """Return the generated text and token usage."""
        ...
