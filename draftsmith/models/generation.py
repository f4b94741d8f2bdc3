"""Generation-service result and usage models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from draftsmith.models.enums import GenerationOperation, SectionName


class GenerationResult(BaseModel):
    content: str
    tokens_used: int = 0
    tokens_in: int = 0
    tokens_out: int = 0
    model: str = ""


class SectionGeneration(BaseModel):
    """One section's generated text plus call metadata."""

    section: SectionName
    content: str
    tokens_used: int
    model: str
    latency_ms: int
    cost_usd: float = 0.0
    tokens_in: int = 0
    tokens_out: int = 0


class UsageRecord(BaseModel):
    draft_id: str
    section: SectionName
    operation: GenerationOperation
    model: str
    tokens_in: int
    tokens_out: int
    cost_usd: float
    latency_ms: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None
