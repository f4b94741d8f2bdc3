"""Configuration models loaded from YAML."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field

from draftsmith.models.enums import BackendKind


class GenerationConfig(BaseModel):
    backend: BackendKind = BackendKind.OPENAI
    model: str = Field(
        default="gpt-4o-mini",
        description="Model identifier. For the pydantic_ai backend use a provider prefix, e.g. 'openai:gpt-4o-mini'.",
    )
    temperature: float = Field(ge=0.0, le=2.0, default=0.7)
    max_output_tokens: int = Field(ge=1, le=32000, default=2000)
    call_timeout_seconds: float = Field(gt=0, le=600, default=120.0)
    requests_per_minute: Optional[int] = Field(
        default=None,
        ge=1,
        le=10000,
        description="Client-side throttle shared by all calls in the process; None disables it.",
    )
    base_url: str = "https://api.openai.com/v1"


class ValidationConfig(BaseModel):
    min_context_chars: int = Field(ge=0, default=50)
    min_content_chars: int = Field(ge=0, default=50)


class StorageConfig(BaseModel):
    db_path: str = "data/drafts.db"


class LoggingConfig(BaseModel):
    level: Literal["minimal", "normal", "detailed"] = "normal"
    log_file: Optional[str] = None
    audit_log_dir: Optional[str] = None


class SettingsConfig(BaseModel):
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
