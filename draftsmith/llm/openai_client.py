"""OpenAI Chat Completions client over aiohttp."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import aiohttp

from draftsmith.errors import (
    AuthFailure,
    ContextTooLarge,
    EmptyResult,
    GenerationServiceError,
    RateLimited,
)
from draftsmith.models import GenerationResult


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_code(body: str) -> str:
    """Extract error.code from an OpenAI error body, or '' if absent."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return ""
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return str(error.get("code") or "")
    return ""


def classify_http_error(status: int, body: str, retry_after: Optional[str] = None) -> GenerationServiceError:
    """Map a non-200 response to the pipeline's error taxonomy."""
    code = _error_code(body)
    if status == 429:
        return RateLimited(retry_after=_parse_retry_after(retry_after))
    if status in (401, 403):
        return AuthFailure()
    if code == "context_length_exceeded" or status == 413 or "maximum context length" in body:
        return ContextTooLarge()
    return GenerationServiceError(f"Generation service error {status}: {body[:300]}")


class OpenAIChatClient:
    """Calls /chat/completions once per request; no retry.

    Rate limits surface as RateLimited with the server's Retry-After hint so
    the caller decides whether to retry.
    """

    _TIMEOUT = 120

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1"):
        if not api_key:
            raise AuthFailure("OPENAI_API_KEY not set; cannot call the generation service.")
        self._api_key = api_key
        self._url = f"{base_url.rstrip('/')}/chat/completions"

    async def generate(
        self,
        instruction: str,
        user_context: str,
        *,
        temperature: float,
        max_output_tokens: int,
        model: str,
    ) -> GenerationResult:
        model_name = model.split(":", 1)[-1]
        payload: dict[str, Any] = {
            "model": model_name,
            "messages": [
                {"role": "system", "content": instruction},
                {"role": "user", "content": user_context},
            ],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._TIMEOUT)
            ) as session:
                async with session.post(self._url, json=payload, headers=headers) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        raise classify_http_error(resp.status, body, resp.headers.get("Retry-After"))
                    data = await resp.json()
        except asyncio.TimeoutError:
            raise
        except aiohttp.ClientError as exc:
            raise GenerationServiceError(f"Cannot reach generation service: {exc}") from exc

        choices = data.get("choices") or []
        content = ""
        if choices:
            content = str((choices[0].get("message") or {}).get("content") or "")
        if not content.strip():
            raise EmptyResult()
        usage = data.get("usage") or {}
        tokens_in = int(usage.get("prompt_tokens") or 0)
        tokens_out = int(usage.get("completion_tokens") or 0)
        return GenerationResult(
            content=content,
            tokens_used=int(usage.get("total_tokens") or tokens_in + tokens_out),
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            model=model,
        )
